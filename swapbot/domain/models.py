"""
Value types shared by the swap cycle: tokens, requests, quotes, outcomes.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3

DEFAULT_SLIPPAGE_BPS = 500          # 5%
DEFAULT_DEADLINE_SEC = 10 * 60      # 10 minutes from submission


@dataclass(frozen=True)
class Token:
    address: str
    decimals: int
    symbol: str = ""

    @property
    def label(self) -> str:
        return self.symbol or f"{self.address[:6]}…{self.address[-4:]}"


class SwapRequest(BaseModel):
    """One swap intent. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    token_in: str                       # address
    token_out: str                      # address
    amount_in: str                      # human, e.g. "0.001"
    slippage_bps: int = Field(default=DEFAULT_SLIPPAGE_BPS, ge=0, le=10_000)
    deadline_sec: int = Field(default=DEFAULT_DEADLINE_SEC, gt=0)

    @field_validator("token_in", "token_out")
    @classmethod
    def _checksum(cls, v: str) -> str:
        if not Web3.is_address(v):
            raise ValueError(f"not an address: {v!r}")
        return Web3.to_checksum_address(v)

    @field_validator("amount_in", mode="before")
    @classmethod
    def _amount_as_text(cls, v):
        # keep the human string verbatim; parsing happens against token decimals
        return v if isinstance(v, str) else str(v)

    @property
    def path(self) -> list[str]:
        return [self.token_in, self.token_out]


@dataclass(frozen=True)
class Quote:
    """Router pricing for amount_in along path. Valid only at quoted_at."""
    path: Tuple[str, ...]
    amount_in: int
    amount_out: int
    amounts: Tuple[int, ...]
    quoted_at: float = field(default_factory=time.time)


class ApprovalState(str, Enum):
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not ApprovalState.UNCONFIRMED


@dataclass
class ApprovalResult:
    state: ApprovalState
    attempts: int
    tx_hash: Optional[str] = None
    skipped: bool = False               # allowance already covered the amount
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BalanceChange:
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before


@dataclass
class SwapOutcome:
    tx_hash: str
    confirmed: bool
    token_in: Token
    token_out: Token
    amount_in: int
    quoted_out: int
    min_out: int
    deadline: int
    balance_in: BalanceChange
    balance_out: BalanceChange
    approval_tx_hash: Optional[str] = None
    approval_attempts: int = 0
    gas_used: Optional[int] = None
    block_number: Optional[int] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["balance_in"]["delta"] = self.balance_in.delta
        d["balance_out"]["delta"] = self.balance_out.delta
        return d
