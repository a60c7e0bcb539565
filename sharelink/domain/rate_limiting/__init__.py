"""
Rate Limiting Domain

Fixed-window request throttling keyed by client identity.
"""

from .entities import RateLimitDecision, RateLimitWindow
from .repositories import IRateLimitRepository
from .services import RateLimitManager
from .value_objects import ClientIdentifier, RateLimit

__all__ = [
    "ClientIdentifier",
    "IRateLimitRepository",
    "RateLimit",
    "RateLimitDecision",
    "RateLimitManager",
    "RateLimitWindow",
]
