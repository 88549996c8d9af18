# swapbot/config.py
import math
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

from swapbot.domain.models import DEFAULT_DEADLINE_SEC, DEFAULT_SLIPPAGE_BPS
from swapbot.services.exceptions import ConfigurationError, InvalidAmount
from swapbot.services.tx_service import GAS_STRATEGIES
from swapbot.utils.units import to_fixed_point

load_dotenv()

REQUIRED = ("PRIVATE_KEY", "RPC_URL", "ROUTER_ADDRESS", "TOKEN_A_ADDRESS", "TOKEN_B_ADDRESS")


@dataclass(frozen=True)
class Settings:
    private_key: str
    rpc_url: str
    router_address: str
    token_a_address: str
    token_b_address: str

    # --- Swap parameters ---
    swap_amount: str = "0.001"                  # human units of the input token
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS    # 500 = 5%
    deadline_sec: int = DEFAULT_DEADLINE_SEC
    interval_sec: int = 600                     # 10 min between cycles

    # --- Gas (unset = estimate / node price) ---
    gas_limit: Optional[int] = None             # old fixed value: 136195
    gas_price_gwei: Optional[Decimal] = None    # old fixed value: 10
    gas_strategy: str = "buffered"

    # --- Approval ---
    approval_max_attempts: int = 5
    approval_retry_delay_sec: float = 2.0
    approval_skip_if_allowed: bool = False

    # --- RPC / receipts ---
    receipt_timeout_sec: int = 180
    receipt_poll_sec: float = 2.0
    rpc_timeout_sec: int = 30

    # --- Generic ---
    log_level: str = "INFO"
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    @property
    def gas_price_wei(self) -> Optional[int]:
        if self.gas_price_gwei is None:
            return None
        return int(self.gas_price_gwei * 10**9)

    def safe_dict(self) -> dict:
        """Settings with secrets redacted, for the startup log."""
        d = asdict(self)
        d["private_key"] = "***"
        d["telegram_bot_token"] = "***" if self.telegram_bot_token else "(not set)"
        d["gas_price_gwei"] = None if self.gas_price_gwei is None else str(self.gas_price_gwei)
        return d


def normalize_pk(raw: str | None) -> str:
    """
    Normalize a private key string:
    - strip whitespace and surrounding quotes
    - accept with or without 0x
    - validate 64 hex chars
    Return lowercase '0x' + 64 hex.
    """
    if not raw:
        raise ConfigurationError("PRIVATE_KEY missing", missing=["PRIVATE_KEY"])

    pk = raw.strip()

    # strip accidental quotes
    if (pk.startswith('"') and pk.endswith('"')) or (pk.startswith("'") and pk.endswith("'")):
        pk = pk[1:-1].strip()

    body = pk[2:] if pk.lower().startswith("0x") else pk
    if not re.fullmatch(r"[0-9a-fA-F]{64}", body):
        raise ConfigurationError("Invalid PRIVATE_KEY: expected 64 hex chars (with or without 0x)")

    return "0x" + body.lower()


def _bool(s: str | None) -> bool:
    return str(s or "").strip().lower() in ("1", "true", "yes", "y", "on")


def _get(env: Mapping, key: str) -> str:
    return str(env.get(key, "") or "").strip()


def _int(env: Mapping, key: str, default: Optional[int], *, minimum: int = 1) -> Optional[int]:
    raw = _get(env, key)
    if not raw:
        return default
    try:
        v = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")
    if v < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {v}")
    return v


def _float(env: Mapping, key: str, default: float, *, minimum: float = 0.0) -> float:
    raw = _get(env, key)
    if not raw:
        return default
    try:
        v = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")
    if not math.isfinite(v):
        raise ConfigurationError(f"{key} must be a finite number, got {raw!r}")
    if v < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {v}")
    return v


def _address(env: Mapping, key: str) -> str:
    raw = _get(env, key)
    if not Web3.is_address(raw):
        raise ConfigurationError(f"{key} is not a valid address: {raw!r}")
    return Web3.to_checksum_address(raw)


def load_settings(env: Optional[Mapping] = None) -> Settings:
    """
    Build Settings from an env mapping (defaults to os.environ, .env already loaded).
    Raises ConfigurationError listing every missing required variable, or the first invalid one.
    """
    env = os.environ if env is None else env

    missing = [k for k in REQUIRED if not _get(env, k)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}. Check your .env file.",
            missing=missing,
        )

    token_a = _address(env, "TOKEN_A_ADDRESS")
    token_b = _address(env, "TOKEN_B_ADDRESS")
    if token_a == token_b:
        raise ConfigurationError("TOKEN_A_ADDRESS and TOKEN_B_ADDRESS must differ")

    swap_amount = _get(env, "SWAP_AMOUNT") or "0.001"
    try:
        # syntax only; precision is checked against on-chain decimals per cycle
        if to_fixed_point(swap_amount, 255) <= 0:
            raise ConfigurationError(f"SWAP_AMOUNT must be > 0, got {swap_amount!r}")
    except InvalidAmount as e:
        raise ConfigurationError(f"SWAP_AMOUNT is invalid: {e.reason}") from e

    slippage = _int(env, "SLIPPAGE_BPS", DEFAULT_SLIPPAGE_BPS, minimum=0)
    if slippage > 10_000:
        raise ConfigurationError(f"SLIPPAGE_BPS must be <= 10000, got {slippage}")

    gas_strategy = (_get(env, "GAS_STRATEGY") or "buffered").lower()
    if gas_strategy not in GAS_STRATEGIES:
        raise ConfigurationError(f"GAS_STRATEGY must be one of {', '.join(GAS_STRATEGIES)}, got {gas_strategy!r}")

    gas_price_raw = _get(env, "GAS_PRICE_GWEI")
    gas_price_gwei = None
    if gas_price_raw:
        try:
            gas_price_gwei = Decimal(gas_price_raw)
        except ArithmeticError:
            raise ConfigurationError(f"GAS_PRICE_GWEI must be a number, got {gas_price_raw!r}")
        if not gas_price_gwei.is_finite() or gas_price_gwei <= 0:
            raise ConfigurationError(f"GAS_PRICE_GWEI must be > 0, got {gas_price_raw!r}")

    log_level = (_get(env, "LOG_LEVEL") or "INFO").upper()
    if log_level not in ("DEBUG", "INFO", "WARN", "WARNING", "ERROR"):
        raise ConfigurationError(f"LOG_LEVEL must be DEBUG/INFO/WARN/ERROR, got {log_level!r}")

    return Settings(
        private_key=normalize_pk(_get(env, "PRIVATE_KEY")),
        rpc_url=_get(env, "RPC_URL"),
        router_address=_address(env, "ROUTER_ADDRESS"),
        token_a_address=token_a,
        token_b_address=token_b,

        swap_amount=swap_amount,
        slippage_bps=slippage,
        deadline_sec=_int(env, "SWAP_DEADLINE_SEC", DEFAULT_DEADLINE_SEC),
        interval_sec=_int(env, "SWAP_INTERVAL_SEC", 600),

        gas_limit=_int(env, "GAS_LIMIT", None, minimum=21_000),
        gas_price_gwei=gas_price_gwei,
        gas_strategy=gas_strategy,

        approval_max_attempts=_int(env, "APPROVAL_MAX_ATTEMPTS", 5),
        approval_retry_delay_sec=_float(env, "APPROVAL_RETRY_DELAY_SEC", 2.0),
        approval_skip_if_allowed=_bool(env.get("APPROVAL_SKIP_IF_ALLOWED")),

        receipt_timeout_sec=_int(env, "RECEIPT_TIMEOUT_SEC", 180),
        receipt_poll_sec=_float(env, "RECEIPT_POLL_SEC", 2.0, minimum=0.1),
        rpc_timeout_sec=_int(env, "RPC_TIMEOUT_SEC", 30),

        log_level=log_level,
        telegram_bot_token=_get(env, "TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=_get(env, "TELEGRAM_CHAT_ID"),
    )
