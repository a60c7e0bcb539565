"""
Rate Limiting Entities

Fixed-window state and the decision returned for each checked request.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict

from .value_objects import ClientIdentifier


@dataclass
class RateLimitWindow:
    """
    Entity holding the current fixed window for one client and limit type.
    """

    identifier: ClientIdentifier
    limit_type: str
    count: int
    reset_at: datetime

    @property
    def key(self) -> str:
        return f"{self.limit_type}:{self.identifier.hash_for_key()}"

    def has_elapsed(self, now: datetime) -> bool:
        return now >= self.reset_at

    def is_exceeded(self, limit: int) -> bool:
        return self.count >= limit


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate-limit check: ``{allowed, remaining, resetAt}``."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def retry_after_seconds(self, now: datetime) -> int:
        """
        Seconds until the window resets, rounded up.

        Returns:
            0 when the request was allowed
        """
        if self.allowed:
            return 0
        return max(0, math.ceil((self.reset_at - now).total_seconds()))

    def to_headers(self, now: datetime) -> Dict[str, str]:
        """
        Generate HTTP headers for rate limit information.

        Returns:
            Dictionary with X-RateLimit-* headers, plus Retry-After when denied
        """
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at.timestamp())),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds(now))
        return headers
