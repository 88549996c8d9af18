"""
Swap executor: one full swap attempt, from human amount to confirmed receipt.

Order of operations:
  1. token decimals
  2. human amount -> base units
  3. balances before
  4. quote (getAmountsOut) -> abort on QuoteUnavailable
  5. min output (slippage)
  6. approval for the router -> abort on ApprovalFailed
  7. swapExactTokensForTokens(amountIn, amountOutMin, path, signer, now + deadline)
  8. receipt -> balances after -> SwapOutcome

No retry here; the scheduler's next tick is the only retry.
"""

import threading
import time
from typing import Callable, Optional

from swapbot.chain import Chain
from swapbot.domain.models import ApprovalState, BalanceChange, SwapOutcome, SwapRequest, Token
from swapbot.domain.policies import deadline_from, min_output
from swapbot.utils.log import log_info, log_ok
from swapbot.utils.units import to_fixed_point, to_human
from .approval import ApprovalManager
from .exceptions import (
    ApprovalFailed,
    InsufficientBalance,
    InvalidAmount,
    SwapNotConfirmed,
    SwapSubmissionFailed,
    TransactionRevertedError,
    TransactionSubmissionError,
    TransactionTimeoutError,
)
from .quote_service import QuoteService
from .tx_service import TxService
from .utils import receipt_field


class SwapExecutor:
    def __init__(
        self,
        chain: Chain,
        tx: TxService,
        quotes: QuoteService,
        approvals: ApprovalManager,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.tx = tx
        self.quotes = quotes
        self.approvals = approvals
        self._clock = clock

    def _balances(self, token_in: Token, token_out: Token, owner: str, when: str) -> tuple[int, int]:
        b_in = self.chain.balance_of(token_in.address, owner)
        b_out = self.chain.balance_of(token_out.address, owner)
        log_info(f"Balance of {token_in.label} {when} swap: {to_human(b_in, token_in.decimals)}")
        log_info(f"Balance of {token_out.label} {when} swap: {to_human(b_out, token_out.decimals)}")
        return b_in, b_out

    def execute_swap(self, req: SwapRequest, cancel: Optional[threading.Event] = None) -> SwapOutcome:
        # 1) decimals
        token_in = self.chain.token(req.token_in)
        token_out = self.chain.token(req.token_out)

        # 2) fixed-point input; never modified after this line
        amount_in = to_fixed_point(req.amount_in, token_in.decimals)
        if amount_in <= 0:
            raise InvalidAmount(req.amount_in, token_in.decimals, "amount must be > 0")
        log_info(f"Amount in: {to_human(amount_in, token_in.decimals)} {token_in.label}")

        # 3) pre-swap snapshot
        owner = self.tx.sender_address()
        bal_in_before, bal_out_before = self._balances(token_in, token_out, owner, "before")
        if bal_in_before < amount_in:
            raise InsufficientBalance(token_in.address, have=bal_in_before, need=amount_in)

        # 4) quote
        quote = self.quotes.get_quote(req.path, amount_in)
        log_info(f"Amount out (estimated): {to_human(quote.amount_out, token_out.decimals)} {token_out.label}")

        # 5) slippage
        amount_out_min = min_output(quote.amount_out, req.slippage_bps)
        log_info(
            f"Amount out min ({req.slippage_bps / 100:.2f}% slippage): "
            f"{to_human(amount_out_min, token_out.decimals)} {token_out.label}"
        )

        # 6) approval
        spender = self.chain.router_address
        approval = self.approvals.ensure_approval(token_in.address, spender, amount_in, cancel=cancel)
        if approval.state is not ApprovalState.CONFIRMED:
            last_error = approval.errors[-1] if approval.errors else None
            raise ApprovalFailed(token_in.address, spender, approval.attempts, last_error=last_error)

        # 7) submit
        deadline = deadline_from(self._clock(), req.deadline_sec)
        fn = self.chain.fn_swap_exact_tokens_for_tokens(amount_in, amount_out_min, list(quote.path), owner, deadline)
        log_info("Waiting for swap confirmation...")
        try:
            res = self.tx.send(fn, wait=True, cancel=cancel)
        except TransactionSubmissionError as e:
            raise SwapSubmissionFailed(f"swap rejected: {e.msg}", cause=e.cause) from e
        except TransactionRevertedError as e:
            raise SwapNotConfirmed(f"swap reverted: {e.msg}", tx_hash=e.tx_hash, receipt=e.receipt) from e
        except TransactionTimeoutError as e:
            raise SwapNotConfirmed(f"swap not confirmed: {e}", tx_hash=e.tx_hash) from e

        tx_hash = res["tx_hash"]
        log_ok(f"Swap confirmed: {tx_hash}")

        # 8) post-swap snapshot
        bal_in_after, bal_out_after = self._balances(token_in, token_out, owner, "after")

        receipt = res.get("receipt")
        return SwapOutcome(
            tx_hash=tx_hash,
            confirmed=int(res.get("status") or 0) == 1,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            quoted_out=quote.amount_out,
            min_out=amount_out_min,
            deadline=deadline,
            balance_in=BalanceChange(bal_in_before, bal_in_after),
            balance_out=BalanceChange(bal_out_before, bal_out_after),
            approval_tx_hash=approval.tx_hash,
            approval_attempts=approval.attempts,
            gas_used=receipt_field(receipt, "gasUsed"),
            block_number=receipt_field(receipt, "blockNumber"),
        )
