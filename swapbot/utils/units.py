"""
Human <-> fixed-point conversion for ERC20 amounts.

All math is done on integers so the values match what the token
contract stores, with no float drift.
"""

import re
from decimal import Decimal

from swapbot.services.exceptions import InvalidAmount

_AMOUNT_RE = re.compile(r"^(\d*)(?:\.(\d*))?$")
MAX_DECIMALS = 255  # decimals() is uint8


def _check_decimals(decimals, amount) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidAmount(amount, decimals, "decimals must be an integer")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise InvalidAmount(amount, decimals, f"decimals must be within 0..{MAX_DECIMALS}")
    return decimals


def to_fixed_point(amount, decimals: int) -> int:
    """
    Parse a human decimal ("0.001", "12", "3.50") into base units.

    Extra fractional digits are accepted only when they are zeros; anything
    that would need rounding raises InvalidAmount. Decimal instances are
    accepted too and go through the same string path.
    """
    _check_decimals(decimals, amount)
    if isinstance(amount, Decimal):
        if not amount.is_finite():
            raise InvalidAmount(amount, decimals, "not a finite number")
        text = format(amount, "f")
    elif isinstance(amount, str):
        text = amount.strip()
    else:
        raise InvalidAmount(amount, decimals, "amount must be a decimal string")

    m = _AMOUNT_RE.match(text)
    if not text or not m or (not m.group(1) and not m.group(2)):
        raise InvalidAmount(amount, decimals, "not a non-negative decimal number")

    whole = m.group(1) or "0"
    frac = m.group(2) or ""

    if len(frac) > decimals:
        excess = frac[decimals:]
        if excess.strip("0"):
            raise InvalidAmount(amount, decimals, f"more than {decimals} fractional digits")
        frac = frac[:decimals]

    return int(whole) * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")


def to_human(raw: int, decimals: int) -> str:
    """
    Render base units as a decimal string, trimming trailing zeros but
    keeping one fractional digit ("1.0", "0.001", "2000.25").
    """
    _check_decimals(decimals, raw)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAmount(raw, decimals, "fixed-point amount must be an integer")

    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10 ** decimals)
    if decimals == 0:
        return f"{sign}{whole}"
    frac_s = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_s}"
