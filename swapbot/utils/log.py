"""
Simple colored logger for the swap bot console output.
"""

from datetime import datetime

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}
_threshold = _LEVELS["INFO"]


def set_level(level: str) -> None:
    global _threshold
    name = str(level or "INFO").strip().upper()
    if name not in _LEVELS:
        raise ValueError(f"unknown log level: {level!r}")
    _threshold = _LEVELS[name]


def _ts():
    return datetime.now().strftime("%H:%M:%S")


def _emit(level: str, color: str, msg: str):
    if _LEVELS[level] < _threshold:
        return
    print(f"\033[{color}m[{_ts()}][{level}]\033[0m {msg}", flush=True)


def log_debug(msg: str):
    _emit("DEBUG", "90", msg)

def log_info(msg: str):
    _emit("INFO", "94", msg)

def log_ok(msg: str):
    # same threshold as INFO, green tag
    _emit("INFO", "92", msg)

def log_warn(msg: str):
    _emit("WARN", "93", msg)

def log_error(msg: str):
    _emit("ERROR", "91", msg)
