"""
Approval manager: makes sure the router may pull `amount` of the input token.

State machine per swap attempt:

    UNCONFIRMED --approve mined--> CONFIRMED
    UNCONFIRMED --attempt failed, attempts < max--> UNCONFIRMED (retry)
    UNCONFIRMED --attempt failed, attempts == max--> FAILED

approve() sets an absolute allowance, so a retry after a half-submitted
attempt only rewrites the same value.
"""

import threading
import time
from typing import Callable, Optional

from swapbot.chain import Chain
from swapbot.domain.models import ApprovalResult, ApprovalState
from swapbot.utils.log import log_info, log_ok, log_warn, log_error
from .exceptions import (
    OperationCancelled,
    TransactionRevertedError,
    TransactionSubmissionError,
    TransactionTimeoutError,
)
from .tx_service import TxService

DEFAULT_MAX_ATTEMPTS = 5

# failures that consume one attempt; anything else propagates
ATTEMPT_FAILURES = (TransactionSubmissionError, TransactionRevertedError, TransactionTimeoutError)


def next_approval_state(state: ApprovalState, attempts: int, max_attempts: int, succeeded: bool) -> ApprovalState:
    """
    Pure transition function. `attempts` counts the attempt just made (1-based).
    Terminal states are absorbing.
    """
    if state.terminal:
        return state
    if succeeded:
        return ApprovalState.CONFIRMED
    if attempts < max_attempts:
        return ApprovalState.UNCONFIRMED
    return ApprovalState.FAILED


class ApprovalManager:
    def __init__(
        self,
        chain: Chain,
        tx: TxService,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = 0.0,
        skip_if_allowed: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.chain = chain
        self.tx = tx
        self.max_attempts = int(max_attempts)
        self.retry_delay = float(retry_delay)
        self.skip_if_allowed = skip_if_allowed
        self._sleep = sleep

    def _pause(self, cancel: Optional[threading.Event]) -> None:
        if self.retry_delay <= 0:
            return
        if cancel is None:
            self._sleep(self.retry_delay)
        elif cancel.wait(self.retry_delay):
            raise OperationCancelled("approval retry cancelled")

    def ensure_approval(
        self,
        token: str,
        spender: str,
        amount: int,
        cancel: Optional[threading.Event] = None,
    ) -> ApprovalResult:
        if self.skip_if_allowed:
            current = self.chain.allowance(token, self.tx.sender_address(), spender)
            if current >= int(amount):
                log_info(f"Allowance already {current} >= {amount}; approval skipped.")
                return ApprovalResult(state=ApprovalState.CONFIRMED, attempts=0, skipped=True)

        state = ApprovalState.UNCONFIRMED
        result = ApprovalResult(state=state, attempts=0)

        while not state.terminal:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled("approval cancelled")

            result.attempts += 1
            succeeded = False
            try:
                res = self.tx.send(self.chain.fn_approve(token, spender, amount), wait=True, cancel=cancel)
                result.tx_hash = res["tx_hash"]
                log_info(f"Approval transaction hash: {result.tx_hash}")
                succeeded = True
            except ATTEMPT_FAILURES as e:
                result.errors.append(f"{type(e).__name__}: {e}")
                log_warn(f"Approval failed ({e}). Attempt {result.attempts}/{self.max_attempts}")

            state = next_approval_state(state, result.attempts, self.max_attempts, succeeded)
            result.state = state

            if state is ApprovalState.UNCONFIRMED:
                self._pause(cancel)

        if state is ApprovalState.CONFIRMED:
            log_ok("Approval confirmed.")
        else:
            log_error(f"Max retries reached for approval ({self.max_attempts}).")
        return result
