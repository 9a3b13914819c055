"""
Per-identity sliding-window limiter for password-reset issuance.

Built on the ``limits`` moving-window strategy; the backing store comes
from ``RATE_LIMIT_STORAGE_URI`` (``memory://`` for a single instance,
``redis://...`` when several workers share counters).
"""

from __future__ import annotations

import logging

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from devcore.core.config import settings

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Allow at most *amount* hits per key within any *window_seconds* span."""

    def __init__(
        self,
        amount: int,
        window_seconds: int,
        storage_uri: str = "memory://",
        namespace: str = "devcore",
    ) -> None:
        self.item = RateLimitItemPerSecond(amount, window_seconds)
        self.storage = storage_from_string(storage_uri)
        self.namespace = namespace
        self._limiter = MovingWindowRateLimiter(self.storage)

    def hit(self, key: str | int) -> bool:
        """Count one request for *key*; ``False`` when the window is already full."""
        allowed = self._limiter.hit(self.item, self.namespace, str(key))
        if not allowed:
            logger.warning("Rate limit reached for %s:%s", self.namespace, key)
        return allowed

    def reset(self) -> None:
        self.storage.reset()

    def check(self) -> bool:
        """Storage health probe."""
        return bool(self.storage.check())


_reset_limiter: SlidingWindowLimiter | None = None


def get_reset_limiter() -> SlidingWindowLimiter:
    """FastAPI dependency: process-wide password-reset limiter."""
    global _reset_limiter
    if _reset_limiter is None:
        _reset_limiter = SlidingWindowLimiter(
            settings.PASSWORD_RESET_MAX_REQUESTS,
            settings.PASSWORD_RESET_WINDOW_SECONDS,
            settings.RATE_LIMIT_STORAGE_URI,
            namespace="password-reset",
        )
    return _reset_limiter
