"""In-memory sliding window rate limiter for authenticated endpoints.

State is per process, so a multi-instance deployment enforces the limit per
instance. Keys are the authenticated user id.
"""

from __future__ import annotations

import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends

from swadeshi.api.auth import CurrentUser, get_current_user
from swadeshi.api.errors import ApiError

_DEFAULT_STANDARD = (100, 60)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # unix seconds when the oldest counted request leaves the window


class SlidingWindowRateLimiter:
    """Sliding window limiter: at most max_requests per window_seconds per key."""

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._counters: dict[str, list[float]] = {}
        self._last_purge = 0.0
        self._lock = threading.Lock()

    def check(self, key: str, now: float | None = None) -> RateLimitResult:
        """Count one request for key and report whether it is allowed."""
        now = time.time() if now is None else now
        cutoff = now - self.window_seconds

        with self._lock:
            if now - self._last_purge >= self.window_seconds:
                self._purge_idle(cutoff)
                self._last_purge = now

            timestamps = [t for t in self._counters.get(key, []) if t > cutoff]

            if len(timestamps) >= self.max_requests:
                self._counters[key] = timestamps
                return RateLimitResult(False, 0, timestamps[0] + self.window_seconds)

            timestamps.append(now)
            self._counters[key] = timestamps
            return RateLimitResult(
                True,
                self.max_requests - len(timestamps),
                timestamps[0] + self.window_seconds,
            )

    def _purge_idle(self, cutoff: float) -> None:
        idle = [key for key, stamps in self._counters.items() if not stamps or stamps[-1] <= cutoff]
        for key in idle:
            del self._counters[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._last_purge = 0.0


def parse_limit(raw: str | None, default: tuple[int, int]) -> tuple[int, int]:
    """Parse ``"<max>/<window_seconds>"``; malformed values fall back to default."""
    if not raw:
        return default
    try:
        max_raw, window_raw = raw.split("/", 1)
        max_requests, window = int(max_raw), int(window_raw)
    except ValueError:
        return default
    if max_requests <= 0 or window <= 0:
        return default
    return max_requests, window


standard_limiter = SlidingWindowRateLimiter(
    *parse_limit(os.environ.get("RATE_LIMIT_STANDARD"), _DEFAULT_STANDARD)
)


def limit_per_user(limiter: SlidingWindowRateLimiter) -> Callable[..., CurrentUser]:
    """Create a dependency that authenticates the caller and counts the request.

    Usage:
        @router.post("/something")
        def endpoint(user: CurrentUser = Depends(limit_per_user(standard_limiter))):
            ...
    """

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        result = limiter.check(f"user:{user.id}")
        if not result.allowed:
            retry_after = max(1, math.ceil(result.reset_at - time.time()))
            raise ApiError(
                429,
                "Rate limit exceeded",
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limiter.max_requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(result.reset_at)),
                },
                message=f"Too many requests. Please try again in {retry_after} seconds.",
                retryAfter=retry_after,
            )
        return user

    return dependency
