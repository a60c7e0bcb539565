"""
In-Memory Rate Limit Repository

Process-local IRateLimitRepository. Limits are enforced per process only;
running several instances multiplies the effective limit.
"""

import threading
from datetime import datetime
from typing import Dict, Optional

from ..domain.rate_limiting.entities import RateLimitWindow
from ..domain.rate_limiting.repositories import IRateLimitRepository


class InMemoryRateLimitRepository(IRateLimitRepository):
    """Dictionary-backed window storage guarded by a lock."""

    def __init__(self):
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitWindow]:
        with self._lock:
            return self._windows.get(key)

    def save(self, window: RateLimitWindow) -> None:
        with self._lock:
            self._windows[window.key] = window

    def delete_expired(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [k for k, w in self._windows.items() if w.reset_at <= cutoff]
            for key in expired:
                del self._windows[key]
            return len(expired)

    def count(self) -> int:
        with self._lock:
            return len(self._windows)
