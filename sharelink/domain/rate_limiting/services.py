"""
Rate Limiting Domain Services

Fixed-window throttling keyed by client identity.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..errors import RateLimitedError
from .entities import RateLimitDecision, RateLimitWindow
from .repositories import IRateLimitRepository
from .value_objects import ClientIdentifier, RateLimit

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimitManager:
    """
    Domain service for fixed-window rate limiting.

    A new window starts with count 1 on the first request or once the
    previous window has elapsed. Within a window the request is allowed
    while the count is below the limit and denied once it reaches it.

    State lives in the repository; with the in-memory repository it is
    process-local, so limits are enforced per instance only.
    """

    def __init__(
        self,
        repository: IRateLimitRepository,
        clock: Callable[[], datetime] = _utc_now,
        grace_seconds: int = DEFAULT_GRACE_SECONDS,
    ):
        """
        Initialize with repository interface.

        Args:
            repository: Window storage
            clock: Returns the current aware UTC datetime
            grace_seconds: How long an elapsed window is kept before reaping
        """
        self.repository = repository
        self.clock = clock
        self.grace = timedelta(seconds=grace_seconds)
        self._lock = threading.Lock()

    def check(self, identifier: ClientIdentifier, rate_limit: RateLimit) -> RateLimitDecision:
        """
        Count a request against the client's current window.

        Args:
            identifier: Client identity
            rate_limit: Limit and window to apply

        Returns:
            RateLimitDecision with allowed flag, remaining count and reset time
        """
        now = self.clock()
        key = f"{rate_limit.limit_type}:{identifier.hash_for_key()}"
        with self._lock:
            window = self.repository.get(key)
            if window is None or window.has_elapsed(now):
                window = RateLimitWindow(
                    identifier=identifier,
                    limit_type=rate_limit.limit_type,
                    count=1,
                    reset_at=now + rate_limit.window,
                )
                self.repository.save(window)
                return RateLimitDecision(
                    allowed=True,
                    limit=rate_limit.limit,
                    remaining=rate_limit.limit - 1,
                    reset_at=window.reset_at,
                )

            if window.is_exceeded(rate_limit.limit):
                return RateLimitDecision(
                    allowed=False,
                    limit=rate_limit.limit,
                    remaining=0,
                    reset_at=window.reset_at,
                )

            window.count += 1
            self.repository.save(window)
            return RateLimitDecision(
                allowed=True,
                limit=rate_limit.limit,
                remaining=max(0, rate_limit.limit - window.count),
                reset_at=window.reset_at,
            )

    def enforce(self, identifier: ClientIdentifier, rate_limit: RateLimit) -> RateLimitDecision:
        """
        Check a request and raise when it is denied.

        Raises:
            RateLimitedError: If the limit is exceeded; carries retry_after
        """
        decision = self.check(identifier, rate_limit)
        if not decision.allowed:
            raise RateLimitedError(
                retry_after=decision.retry_after_seconds(self.clock()),
                technical_message=f"Rate limit exceeded for {rate_limit.limit_type}",
                context={
                    "limit_type": rate_limit.limit_type,
                    "limit": rate_limit.limit,
                    "reset_at": decision.reset_at.isoformat(),
                },
            )
        return decision

    def reap(self, now: Optional[datetime] = None) -> int:
        """
        Remove windows whose reset time plus the grace period has passed.

        Returns:
            Number of windows removed
        """
        now = now or self.clock()
        with self._lock:
            removed = self.repository.delete_expired(now - self.grace)
        if removed:
            logger.debug("Reaped %d rate limit windows", removed)
        return removed
