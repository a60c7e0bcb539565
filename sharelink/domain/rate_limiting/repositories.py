"""
Rate Limiting Repositories

Repository interface for rate limit window persistence.
Concrete implementations are in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .entities import RateLimitWindow


class IRateLimitRepository(ABC):
    """Abstract repository interface for rate limit windows."""

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitWindow]:
        """
        Get the window stored under a key.

        Args:
            key: Window key (``RateLimitWindow.key``)

        Returns:
            The window, or None if there is none
        """
        ...

    @abstractmethod
    def save(self, window: RateLimitWindow) -> None:
        """Store a window under its key, replacing any previous one."""
        ...

    @abstractmethod
    def delete_expired(self, cutoff: datetime) -> int:
        """
        Drop windows whose reset time is at or before ``cutoff``.

        Returns:
            Number of windows removed
        """
        ...

    @abstractmethod
    def count(self) -> int:
        ...
