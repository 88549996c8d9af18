"""
Policy helpers used by the swap executor.
"""

BPS_DENOMINATOR = 10_000


def min_output(quoted_out: int, tolerance_bps: int) -> int:
    """
    Minimum acceptable output for a quote, floor-rounded in integer math:
        quoted_out * (10_000 - bps) // 10_000
    """
    quoted_out = int(quoted_out)
    bps = int(tolerance_bps)
    if quoted_out < 0:
        raise ValueError("quoted output must be >= 0")
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise ValueError(f"tolerance must be within 0..{BPS_DENOMINATOR} bps")
    return quoted_out * (BPS_DENOMINATOR - bps) // BPS_DENOMINATOR


def deadline_from(now_ts: float, offset_sec: int) -> int:
    """Unix deadline for router calls: submission time + offset, in whole seconds."""
    if int(offset_sec) <= 0:
        raise ValueError("deadline offset must be > 0")
    return int(now_ts) + int(offset_sec)
