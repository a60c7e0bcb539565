"""
Rate Limiting Value Objects

Immutable value objects for rate limiting with zero external dependencies.
"""

import hashlib
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class ClientIdentifier:
    """
    Immutable client identity value object.

    Usually the client IP address; a session id works as well.
    """

    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise ValueError("Client identifier must not be empty")

    def hash_for_key(self) -> str:
        """
        Generate a key-safe hash of the identifier.

        Returns:
            16-character hexadecimal hash
        """
        return hashlib.sha256(self.value.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class RateLimit:
    """
    Immutable rate limit configuration value object.

    Allows ``limit`` requests per fixed window of ``window_ms`` milliseconds.
    """

    limit: int
    window_ms: int
    limit_type: str = "default"

    def __post_init__(self):
        if self.limit <= 0:
            raise ValueError(f"Limit must be positive, got {self.limit}")
        if self.window_ms <= 0:
            raise ValueError(f"Window must be positive, got {self.window_ms}")
        if not self.limit_type:
            raise ValueError("Limit type is required")

    @property
    def window(self) -> timedelta:
        return timedelta(milliseconds=self.window_ms)

    @classmethod
    def parse(cls, value: str, limit_type: str = "default") -> "RateLimit":
        """
        Parse a ``<limit>/<window_ms>`` string such as ``20/60000``.

        Raises:
            ValueError: If the string is malformed
        """
        try:
            limit_text, window_text = value.split("/", 1)
            return cls(int(limit_text), int(window_text), limit_type)
        except (AttributeError, ValueError) as e:
            raise ValueError(
                f"Invalid rate limit '{value}', expected '<limit>/<window_ms>'"
            ) from e
