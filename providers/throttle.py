# providers/throttle.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

log = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_S = 3.0


class RateLimiter:
    """
    Token bucket shared by every caller of one supplier.

    With the default capacity of 1 this degrades to "one call every
    `min_interval_s` seconds", which is what CJ enforces per account.
    The lock is held while waiting, so concurrent callers queue up behind
    each other instead of bursting when the bucket refills.
    """

    def __init__(
        self,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        *,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.min_interval_s = max(float(min_interval_s), 0.0)
        self.capacity = int(capacity)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(self.capacity)
        self._updated: Optional[float] = None
        self.last_acquired_at: Optional[float] = None

    def _refill(self, now: float) -> None:
        if self._updated is None or self.min_interval_s <= 0:
            self._tokens = float(self.capacity)
        else:
            gained = (now - self._updated) / self.min_interval_s
            self._tokens = min(float(self.capacity), self._tokens + gained)
        self._updated = now

    def acquire(self) -> float:
        """Block until a slot is free. Returns the clock value at which it was granted."""
        with self._lock:
            while True:
                now = self._clock()
                self._refill(now)
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    self.last_acquired_at = now
                    return now
                wait = (1.0 - self._tokens) * self.min_interval_s
                log.debug("throttle.wait seconds=%.2f", wait)
                self._sleep(wait)


_registry: Dict[str, RateLimiter] = {}
_registry_lock = threading.Lock()


def limiter_for(key: str, min_interval_s: float = DEFAULT_MIN_INTERVAL_S) -> RateLimiter:
    """One limiter per supplier account for the whole process."""
    key = (key or "").lower()
    with _registry_lock:
        limiter = _registry.get(key)
        if limiter is None:
            limiter = RateLimiter(min_interval_s)
            _registry[key] = limiter
        return limiter


def reset_limiters() -> None:
    with _registry_lock:
        _registry.clear()
