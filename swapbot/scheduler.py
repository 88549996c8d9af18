"""
Fixed-interval, non-overlapping cycle runner.

Cycles start at t0, t0 + interval, t0 + 2*interval, ... A cycle always runs
to completion before the next one starts (one signer, one nonce sequence).
If a cycle overruns one or more boundaries, the missed ticks are skipped and
the next cycle starts at the first boundary still in the future.
"""

import threading
import time
from typing import Any, Callable, Optional

from swapbot.services.exceptions import OperationCancelled
from swapbot.utils.log import log_error, log_info, log_warn


class Scheduler:
    def __init__(
        self,
        *,
        cancel: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        on_result: Optional[Callable[[int, Any], None]] = None,
        on_error: Optional[Callable[[int, BaseException], None]] = None,
    ):
        self.cancel = cancel or threading.Event()
        self._clock = clock
        self._sleep = sleep
        self.on_result = on_result
        self.on_error = on_error

    def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`. Returns True if cancelled."""
        if seconds <= 0:
            return self.cancel.is_set()
        if self._sleep is None:
            return self.cancel.wait(seconds)
        self._sleep(seconds)
        return self.cancel.is_set()

    def _report(self, n: int, fn: Optional[Callable], payload) -> None:
        if fn is None:
            return
        try:
            fn(n, payload)
        except Exception as e:
            log_warn(f"cycle {n} report hook failed: {e}")

    def run_once(self, n: int, cycle: Callable[[], Any]) -> bool:
        """Run one cycle, report it. Returns False only when the cycle was cancelled."""
        try:
            result = cycle()
        except OperationCancelled:
            log_warn(f"cycle {n} cancelled")
            return False
        except Exception as e:
            log_error(f"cycle {n} failed: {type(e).__name__}: {e}")
            self._report(n, self.on_error, e)
            return True
        self._report(n, self.on_result, result)
        return True

    def run_forever(self, interval_sec: float, cycle: Callable[[], Any], max_cycles: Optional[int] = None) -> int:
        """
        Runs `cycle` now and then on every interval boundary until cancelled
        (or until max_cycles have run). Returns the number of cycles started.
        """
        if interval_sec <= 0:
            raise ValueError("interval must be > 0")

        t0 = self._clock()
        tick = 0
        cycles = 0
        while not self.cancel.is_set():
            cycles += 1
            log_info(f"Starting swap cycle #{cycles}...")
            if not self.run_once(cycles, cycle):
                break
            if max_cycles is not None and cycles >= max_cycles:
                break

            now = self._clock()
            tick += 1
            next_tick = t0 + tick * interval_sec
            if now > next_tick:
                ahead = int((now - t0) // interval_sec) + 1
                log_warn(f"cycle #{cycles} overran {ahead - tick} interval(s); skipping to the next boundary")
                tick = ahead
                next_tick = t0 + tick * interval_sec
            if self._wait(next_tick - now):
                break
        return cycles
