# hotspot_sync/scheduler.py
"""
Keyed debounce timers over an injectable clock.

Timers never fire on their own: whoever owns the scheduler calls run_due()
(the flush guard's poll loop in production, tests after advancing a
VirtualClock). Re-scheduling a key restarts its timer.
"""

import threading
import time
from typing import Callable, Dict, Hashable, Tuple

from hotspot_sync.settings import logger


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class VirtualClock:
    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("VirtualClock cannot go backwards")
        self._now += seconds
        return self._now


class DebounceScheduler:
    def __init__(self, clock=None) -> None:
        self.clock = clock if clock is not None else MonotonicClock()
        self._lock = threading.Lock()
        # key -> (deadline, callback)
        self._timers: Dict[Hashable, Tuple[float, Callable[[], None]]] = {}

    def schedule(self, key: Hashable, delay: float, callback: Callable[[], None]) -> float:
        """(Re)start the timer for `key`; returns its deadline."""
        deadline = self.clock.now() + max(0.0, delay)
        with self._lock:
            self._timers[key] = (deadline, callback)
        return deadline

    def cancel(self, key: Hashable) -> bool:
        with self._lock:
            return self._timers.pop(key, None) is not None

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._timers

    def run_due(self) -> int:
        """Fire every timer whose deadline has passed, earliest first."""
        now = self.clock.now()
        with self._lock:
            due = sorted(
                ((deadline, key, cb) for key, (deadline, cb) in self._timers.items() if deadline <= now),
                key=lambda item: item[0],
            )
            for _, key, _ in due:
                del self._timers[key]

        for _, key, cb in due:
            try:
                cb()
            except Exception:
                logger.exception(f"Timer callback for {key!r} failed")
        return len(due)

    def clear(self) -> None:
        with self._lock:
            self._timers.clear()
