import threading
import time
from typing import Optional, Literal, Callable

import requests
from eth_account import Account
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import TransactionNotFound, Web3Exception

from swapbot.utils.log import log_debug, log_warn
from .utils import to_json_safe, tx_hash_hex
from .exceptions import (
    SwapBotError,
    OperationCancelled,
    TransactionRevertedError,
    TransactionSubmissionError,
    TransactionTimeoutError,
)

GasStrategy = Literal["default", "buffered", "aggressive"]
GAS_STRATEGIES = ("default", "buffered", "aggressive")
FALLBACK_GAS_LIMIT = 300_000


class TxService:
    """
    Transaction sender for the swap bot.

    Responsibilities:
    - Build, sign (local key) and broadcast contract calls.
    - Gas limit: explicit override, or node estimate padded by strategy.
    - Gas price: explicit override, or node gasPrice (legacy fee field).
    - Wait for the receipt by polling, with timeout and cancellation.
    - Normalize results so callers can log/report them.
    """

    def __init__(
        self,
        w3: Web3,
        private_key: str,
        *,
        gas_strategy: GasStrategy = "buffered",
        gas_limit: Optional[int] = None,
        gas_price_wei: Optional[int] = None,
        receipt_timeout: float = 180,
        poll_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if gas_strategy not in GAS_STRATEGIES:
            raise ValueError(f"unknown gas strategy: {gas_strategy!r}")
        self.w3 = w3
        self.pk = private_key
        self.account = Account.from_key(private_key)
        self.gas_strategy = gas_strategy
        self.gas_limit = gas_limit
        self.gas_price_wei = gas_price_wei
        self.receipt_timeout = float(receipt_timeout)
        self.poll_interval = float(poll_interval)
        self._clock = clock
        self._sleep = sleep

    def sender_address(self) -> str:
        return self.account.address

    # ---------- internal helpers ----------

    def _next_nonce(self) -> int:
        # "pending" so a retried approval never reuses the nonce of one still in the mempool
        return self.w3.eth.get_transaction_count(self.account.address, "pending")

    def _estimate_with_strategy(self, tx: dict, strategy: GasStrategy) -> int:
        """
        Calls estimateGas(tx) and applies a safety buffer depending on strategy.
        Falls back to a static 300k if node estimation fails.
        """
        try:
            base_estimate = int(self.w3.eth.estimate_gas(tx))
        except Exception as e:
            log_warn(f"estimate_gas failed ({e}); using {FALLBACK_GAS_LIMIT}")
            base_estimate = FALLBACK_GAS_LIMIT

        if strategy == "buffered":
            return int(base_estimate * 1.25) + 10_000
        if strategy == "aggressive":
            return int(base_estimate * 1.5) + 25_000
        return base_estimate

    def _finalize_fee_fields(self, tx: dict, gas_price_wei: Optional[int]) -> dict:
        """
        Explicit gas price wins; otherwise keep EIP-1559 fields if present,
        else fall back to the node's legacy gasPrice.
        """
        if gas_price_wei is not None:
            tx.pop("maxFeePerGas", None)
            tx.pop("maxPriorityFeePerGas", None)
            tx["gasPrice"] = int(gas_price_wei)
            return tx
        if "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
            return tx
        if "gasPrice" not in tx:
            tx["gasPrice"] = self.w3.eth.gas_price
        return tx

    def _build_tx_dict(self, fn: ContractFunction, value_wei: int, gas_price_wei: Optional[int]) -> dict:
        """
        Builds the bare transaction dict with from/nonce/value but no gas limit yet.
        Passing gasPrice up front keeps build_transaction from filling 1559 fields.
        """
        base_tx = {
            "from":  self.account.address,
            "nonce": self._next_nonce(),
            "value": int(value_wei or 0),
        }
        if gas_price_wei is not None:
            base_tx["gasPrice"] = int(gas_price_wei)
        return fn.build_transaction(base_tx)

    def _sign_and_send(self, tx: dict) -> str:
        signed = self.w3.eth.account.sign_transaction(tx, self.pk)
        txh = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return tx_hash_hex(txh)

    def _pause(self, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            self._sleep(self.poll_interval)
        elif cancel.wait(self.poll_interval):
            raise OperationCancelled("receipt wait cancelled")

    def _wait_receipt(self, tx_hash: str, cancel: Optional[threading.Event] = None) -> dict:
        deadline = self._clock() + self.receipt_timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled("receipt wait cancelled")
            try:
                rcpt = self.w3.eth.get_transaction_receipt(tx_hash)
                if rcpt is not None:
                    return dict(rcpt)
            except TransactionNotFound:
                pass
            except (requests.exceptions.RequestException, Web3Exception, ValueError) as e:
                # rate limits, RPC error replies: keep polling until the deadline
                log_warn(f"receipt poll error for {tx_hash}: {e}")

            if self._clock() >= deadline:
                raise TransactionTimeoutError(tx_hash, self.receipt_timeout)
            self._pause(cancel)

    # ---------- public API ----------

    def send(
        self,
        fn: ContractFunction,
        *,
        wait: bool = True,
        value: int = 0,
        gas_limit: Optional[int] = None,
        gas_price_wei: Optional[int] = None,
        gas_strategy: Optional[GasStrategy] = None,
        cancel: Optional[threading.Event] = None,
    ) -> dict:
        """
        Broadcasts a state-changing transaction for a given contract function.

        Args:
            fn: Already-parameterized ContractFunction from web3.py
            wait: If True, block until mined and attach receipt + status
            value: native value (wei) sent along with the call
            gas_limit / gas_price_wei: per-call overrides of the service defaults
            gas_strategy: padding applied to estimate_gas when no gas limit is fixed
            cancel: Event that aborts the receipt wait when set

        Returns:
            {
              "tx_hash": "0x..",
              "status": 1 | None,        # None if wait=False
              "receipt": {...} | None,
              "gas_limit_used": int,
              "gas_price_wei": int | None,
            }

        Raises:
            TransactionSubmissionError: build/sign/broadcast failed, nothing sent.
            TransactionRevertedError: mined with status == 0.
            TransactionTimeoutError: broadcast, but no receipt before the timeout.
            OperationCancelled: cancel was set while waiting.
        """
        gas_price_wei = gas_price_wei if gas_price_wei is not None else self.gas_price_wei
        gas_limit = gas_limit if gas_limit is not None else self.gas_limit

        try:
            # 1) Build base tx (without gas limit)
            tx = self._build_tx_dict(fn, value_wei=value, gas_price_wei=gas_price_wei)

            # 2) Gas limit strategy
            if gas_limit is not None:
                final_gas_limit = int(gas_limit)
            else:
                final_gas_limit = self._estimate_with_strategy(tx, gas_strategy or self.gas_strategy)
            tx["gas"] = final_gas_limit

            # 3) gasPrice / EIP-1559 fee fields
            tx = self._finalize_fee_fields(tx, gas_price_wei)

            # 4) Broadcast
            tx_hash = self._sign_and_send(tx)
        except SwapBotError:
            raise
        except Exception as e:
            raise TransactionSubmissionError(f"transaction rejected before broadcast: {e}", cause=e) from e

        used_price = tx.get("gasPrice")
        log_debug(f"[TX] sent {tx_hash} nonce={tx.get('nonce')} gas={final_gas_limit} gasPrice={used_price}")

        if not wait:
            return to_json_safe({
                "tx_hash": tx_hash,
                "status": None,
                "receipt": None,
                "gas_limit_used": final_gas_limit,
                "gas_price_wei": used_price,
            })

        # 5) Wait for mining
        rcpt = self._wait_receipt(tx_hash, cancel)
        status = int(rcpt.get("status", 0))

        if status == 0:
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                receipt=to_json_safe(rcpt),
                msg="Transaction reverted (status=0). Possibly out-of-gas, slippage or expired deadline",
            )

        return to_json_safe({
            "tx_hash": tx_hash,
            "status": status,
            "receipt": rcpt,
            "gas_limit_used": final_gas_limit,
            "gas_price_wei": used_price,
        })
