"""
Backend Selection

Health-check-on-failure policy choosing between the primary and fallback
document stores.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from ..errors import BackendUnavailableError
from .document_store import IDocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COOLDOWN_SECONDS = 30.0


class BackendSelector:
    """
    Routes document-store calls to the primary or the fallback backend.

    The primary is always tried first. When a primary call raises
    BackendUnavailableError the primary is checked with ``ping()``; if the
    check fails too, the primary is marked down for ``cooldown_seconds``
    and calls go straight to the fallback until the cooldown elapses.
    Nothing is detected upfront, so a healthy primary costs no health checks.
    """

    def __init__(
        self,
        primary: IDocumentStore,
        fallback: IDocumentStore,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.primary = primary
        self.fallback = fallback
        self.cooldown_seconds = cooldown_seconds
        self._monotonic = monotonic
        self._down_until: Optional[float] = None
        self._lock = threading.Lock()

    def primary_available(self) -> bool:
        with self._lock:
            if self._down_until is None:
                return True
            if self._monotonic() >= self._down_until:
                self._down_until = None
                logger.info(
                    "Cooldown elapsed, retrying primary backend %s", self.primary.name
                )
                return True
            return False

    def report_failure(self, operation: str, error: BackendUnavailableError) -> None:
        """
        Record a failed primary call and health-check the primary.

        Args:
            operation: Name of the failed operation, for the log line
            error: The error raised by the primary
        """
        logger.warning(
            "Primary backend %s failed during %s, degrading to fallback %s: %s",
            self.primary.name,
            operation,
            self.fallback.name,
            error,
        )
        if self.primary.ping():
            return
        with self._lock:
            self._down_until = self._monotonic() + self.cooldown_seconds
        logger.warning(
            "Primary backend %s did not answer health check; using fallback for %.0fs",
            self.primary.name,
            self.cooldown_seconds,
        )

    def call(self, operation: str, fn: Callable[[IDocumentStore], T]) -> T:
        """
        Run ``fn`` against the primary, retrying once against the fallback.

        Raises:
            BackendUnavailableError: If the fallback fails as well
        """
        if self.primary_available():
            try:
                return fn(self.primary)
            except BackendUnavailableError as e:
                self.report_failure(operation, e)
        return fn(self.fallback)

    def status(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.name,
            "fallback": self.fallback.name,
            "primary_marked_down": not self.primary_available(),
        }
