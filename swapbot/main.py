"""
Main swap loop: swaps a fixed amount of token A into token B through the
configured router, once now and then every SWAP_INTERVAL_SEC.

Usage:
    python -m swapbot.main                 # loop forever (A -> B)
    python -m swapbot.main --once          # single cycle, exit 0/1
    python -m swapbot.main --reverse       # B -> A
    python -m swapbot.main --amount 0.5 --interval 300
"""

import argparse
import signal
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from swapbot.chain import Chain
from swapbot.config import Settings, load_settings
from swapbot.domain.models import SwapOutcome, SwapRequest
from swapbot.notify import TelegramNotifier, format_outcome
from swapbot.scheduler import Scheduler
from swapbot.services.approval import ApprovalManager
from swapbot.services.exceptions import ConfigurationError, InvalidAmount
from swapbot.services.quote_service import QuoteService
from swapbot.services.swap_executor import SwapExecutor
from swapbot.services.tx_service import TxService
from swapbot.utils.log import log_error, log_info, log_ok, set_level
from swapbot.utils.units import to_fixed_point


@dataclass
class App:
    settings: Settings
    chain: Chain
    tx: TxService
    executor: SwapExecutor
    notifier: TelegramNotifier


def build_app(s: Settings) -> App:
    """Wire collaborators explicitly; nothing here is a module-level singleton."""
    chain = Chain.from_rpc(s.rpc_url, s.router_address, timeout=s.rpc_timeout_sec)
    tx = TxService(
        chain.w3,
        s.private_key,
        gas_strategy=s.gas_strategy,
        gas_limit=s.gas_limit,
        gas_price_wei=s.gas_price_wei,
        receipt_timeout=s.receipt_timeout_sec,
        poll_interval=s.receipt_poll_sec,
    )
    approvals = ApprovalManager(
        chain,
        tx,
        max_attempts=s.approval_max_attempts,
        retry_delay=s.approval_retry_delay_sec,
        skip_if_allowed=s.approval_skip_if_allowed,
    )
    executor = SwapExecutor(chain, tx, QuoteService(chain), approvals)
    notifier = TelegramNotifier(s.telegram_bot_token, s.telegram_chat_id)
    return App(settings=s, chain=chain, tx=tx, executor=executor, notifier=notifier)


def build_request(s: Settings, amount: Optional[str] = None, reverse: bool = False) -> SwapRequest:
    token_in, token_out = s.token_a_address, s.token_b_address
    if reverse:
        token_in, token_out = token_out, token_in
    return SwapRequest(
        token_in=token_in,
        token_out=token_out,
        amount_in=amount or s.swap_amount,
        slippage_bps=s.slippage_bps,
        deadline_sec=s.deadline_sec,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Periodic ERC20 -> ERC20 swap through a UniswapV2-style router.")
    parser.add_argument("--once", action="store_true", help="Run a single swap cycle and exit (status 1 on failure).")
    parser.add_argument("--amount", type=str, help="Human amount of the input token (overrides SWAP_AMOUNT).")
    parser.add_argument("--reverse", action="store_true", help="Swap token B -> token A instead of A -> B.")
    parser.add_argument("--interval", type=int, help="Seconds between cycles (overrides SWAP_INTERVAL_SEC).")
    parser.add_argument("--max-cycles", type=int, help="Stop after this many cycles.")
    return parser.parse_args(argv)


def _install_signal_handlers(cancel: threading.Event) -> None:
    def _handler(signum, _frame):
        log_info(f"signal {signum} received, stopping after the current step...")
        cancel.set()
    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        s = load_settings()
        set_level(s.log_level)
        if args.amount is not None and to_fixed_point(args.amount, 255) <= 0:
            raise ConfigurationError("--amount must be > 0")
        if args.interval is not None and args.interval <= 0:
            raise ConfigurationError("--interval must be > 0")
        if args.max_cycles is not None and args.max_cycles < 1:
            raise ConfigurationError("--max-cycles must be >= 1")
    except ConfigurationError as e:
        log_error(str(e))
        return 1
    except InvalidAmount as e:
        log_error(f"--amount is invalid: {e.reason}")
        return 1

    log_info(f"Settings: {s.safe_dict()}")
    app = build_app(s)
    req = build_request(s, amount=args.amount, reverse=args.reverse)
    log_info(f"Wallet {app.tx.sender_address()} | router {app.chain.router_address}")

    cancel = threading.Event()
    _install_signal_handlers(cancel)

    def cycle() -> SwapOutcome:
        log_info(f"Swapping {req.amount_in} {req.token_in} -> {req.token_out}...")
        return app.executor.execute_swap(req, cancel=cancel)

    failures = []

    def on_result(n: int, outcome: SwapOutcome) -> None:
        log_ok(format_outcome(outcome, n))
        app.notifier.swap_succeeded(n, outcome)

    def on_error(n: int, err: BaseException) -> None:
        failures.append(err)
        app.notifier.swap_failed(n, err)

    scheduler = Scheduler(cancel=cancel, on_result=on_result, on_error=on_error)
    if args.once:
        ran = scheduler.run_once(1, cycle)
        return 0 if ran and not failures else 1

    interval = args.interval or s.interval_sec
    log_info(f"Swap loop up. Interval={interval}s")
    n = scheduler.run_forever(interval, cycle, max_cycles=args.max_cycles)
    log_info(f"Stopped after {n} cycle(s), {len(failures)} failed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
