import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Tuple

from gateway.config import RateLimitPolicy

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
AI_SCOPE = "ai"


class RateLimitExceeded(Exception):
    def __init__(self, scope: str, key: str, message: str, limit: int, retry_after: int):
        super().__init__(message)
        self.scope = scope
        self.key = key
        self.message = message
        self.limit = limit
        self.retry_after = retry_after

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
        }

    def __str__(self) -> str:
        return f"RateLimitExceeded(scope={self.scope}, key={self.key}, retry_after={self.retry_after})"


@dataclass
class WindowCount:
    count: int
    window_start: float


class RateLimiter:
    """Fixed-window request counters, one table per scope.

    Windows are keyed by (scope, client key). A window restarts once its
    duration has elapsed, so bursts straddling a boundary can briefly see up to
    twice the limit.
    """

    def __init__(
        self,
        policies: Mapping[str, RateLimitPolicy],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policies = dict(policies)
        self._clock = clock
        self._windows: Dict[str, Dict[str, WindowCount]] = {scope: {} for scope in self._policies}
        self._locks: Dict[str, threading.Lock] = {scope: threading.Lock() for scope in self._policies}
        self._last_sweep: Dict[str, float] = {scope: clock() for scope in self._policies}

    def check_and_consume(self, scope: str, key: str) -> bool:
        allowed, _ = self._consume(scope, key)
        return allowed

    def enforce(self, scope: str, key: str) -> None:
        """Consume one request from the window or raise RateLimitExceeded."""
        allowed, retry_after = self._consume(scope, key)
        if not allowed:
            policy = self._policies[scope]
            logger.info("Rate limit '%s' exceeded for %s; retry in %ss", scope, key, retry_after)
            raise RateLimitExceeded(scope, key, policy.message, policy.max_requests, retry_after)

    def _consume(self, scope: str, key: str) -> Tuple[bool, int]:
        try:
            policy = self._policies[scope]
        except KeyError:
            raise ValueError(f"Unknown rate limit scope: {scope}") from None

        now = self._clock()
        with self._locks[scope]:
            table = self._windows[scope]
            if now - self._last_sweep[scope] >= policy.window_seconds:
                self._sweep(table, now, policy.window_seconds)
                self._last_sweep[scope] = now

            window = table.get(key)
            if window is None or now - window.window_start >= policy.window_seconds:
                window = WindowCount(count=0, window_start=now)
                table[key] = window

            if window.count < policy.max_requests:
                window.count += 1
                return True, 0

            reset_in = window.window_start + policy.window_seconds - now
            return False, max(1, math.ceil(reset_in))

    @staticmethod
    def _sweep(table: Dict[str, WindowCount], now: float, window_seconds: float) -> None:
        # Caller holds the scope lock
        expired = [k for k, w in table.items() if now - w.window_start >= window_seconds]
        for k in expired:
            del table[k]
        if expired:
            logger.debug("Dropped %d expired rate limit windows", len(expired))
