from typing import Optional, Union


class SwapBotError(Exception):
    """Base class for every error raised by the swap engine."""


class ConfigurationError(SwapBotError):
    """
    Missing or invalid startup configuration.
    Raised before any swap cycle runs; the process exits non-zero.
    """
    def __init__(self, msg: str, missing: Optional[list[str]] = None):
        super().__init__(msg)
        self.missing = list(missing or [])


class InvalidAmount(SwapBotError):
    """Human amount is not a non-negative decimal representable at the token precision."""
    def __init__(self, amount, decimals: Optional[int], reason: str):
        super().__init__(f"invalid amount {amount!r} (decimals={decimals}): {reason}")
        self.amount = amount
        self.decimals = decimals
        self.reason = reason


class InsufficientBalance(SwapBotError):
    """Signer holds less of the input token than the swap needs."""
    def __init__(self, token: str, have: int, need: int):
        super().__init__(f"insufficient balance of {token}: have {have}, need {need}")
        self.token = token
        self.have = have
        self.need = need


class QuoteUnavailable(SwapBotError):
    """Router returned no quote, or a quote whose shape does not match the path."""
    def __init__(self, msg: str, path: Optional[list[str]] = None, amounts=None):
        super().__init__(msg)
        self.path = list(path or [])
        self.amounts = amounts


class ApprovalFailed(SwapBotError):
    """Approval did not reach Confirmed after the maximum number of attempts."""
    def __init__(self, token: str, spender: str, attempts: int, last_error: Union[BaseException, str, None] = None):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"approval of {spender} on {token} failed after {attempts} attempt(s){detail}")
        self.token = token
        self.spender = spender
        self.attempts = attempts
        self.last_error = last_error


class SwapSubmissionFailed(SwapBotError):
    """Swap transaction was rejected before inclusion (build/sign/broadcast)."""
    def __init__(self, msg: str, cause: Optional[BaseException] = None):
        super().__init__(msg)
        self.cause = cause


class SwapNotConfirmed(SwapBotError):
    """Swap transaction was broadcast but no success receipt was obtained."""
    def __init__(self, msg: str, tx_hash: Optional[str] = None, receipt: Optional[dict] = None):
        super().__init__(msg)
        self.tx_hash = tx_hash
        self.receipt = receipt


class OperationCancelled(SwapBotError):
    """A wait (interval, retry pause, receipt) was interrupted by shutdown."""


# ---------- transport level (raised by TxService) ----------

class TransactionSubmissionError(SwapBotError):
    """
    Raised when building, signing or broadcasting fails.
    Nothing reached the mempool; no tx hash exists.
    """
    def __init__(self, msg: str, cause: Optional[BaseException] = None):
        super().__init__(msg)
        self.msg = msg
        self.cause = cause


class TransactionRevertedError(SwapBotError):
    """
    Raised when the tx was actually sent on-chain, mined, and status == 0.
    Gas was ALREADY paid, the chain executed and reverted.
    """
    def __init__(self, tx_hash: str, receipt: dict, msg: str):
        super().__init__(msg)
        self.tx_hash = tx_hash
        self.receipt = receipt
        self.msg = msg


class TransactionTimeoutError(SwapBotError):
    """Broadcast succeeded but no receipt showed up before the timeout."""
    def __init__(self, tx_hash: str, timeout_sec: float):
        super().__init__(f"no receipt for {tx_hash} after {timeout_sec:.0f}s")
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec
