from __future__ import annotations

import threading
import time
from typing import Any, Callable, TypeVar


T = TypeVar("T")

MIN_INTERVAL_SECONDS = 0.150


class RateLimiter:
    """Spaces out backend calls so that dispatches are at least
    ``min_interval`` seconds apart.

    One limiter is shared by every component talking to the same backend.
    The lock is held across the wait, so threads sharing a limiter are
    dispatched one at a time and never observe a stale last-dispatch time.
    """

    def __init__(
        self,
        min_interval: float = MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_dispatch: float | None = None

    @property
    def last_dispatch(self) -> float | None:
        return self._last_dispatch

    def wait_turn(self) -> float:
        with self._lock:
            if self._last_dispatch is not None:
                remaining = self._last_dispatch + self.min_interval - self._clock()
                if remaining > 0:
                    self._sleep(remaining)
            self._last_dispatch = self._clock()
            return self._last_dispatch

    def schedule(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self.wait_turn()
        return operation(*args, **kwargs)


def call(limiter: RateLimiter | None, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    if limiter is None:
        return operation(*args, **kwargs)
    return limiter.schedule(operation, *args, **kwargs)
