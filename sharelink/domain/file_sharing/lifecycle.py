"""
Lifecycle Coordinator

Expiry computation, expiry extension and the periodic sweep that deletes
expired records. A record is either Active or Deleted; deletion removes the
blob and the metadata and is never undone.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ...infrastructure.scheduler import IntervalScheduler
from ..errors import ValidationError
from .entities import FileRecord, utc_now
from .services import DEFAULT_TTL_MINUTES, MetadataStore

logger = logging.getLogger(__name__)

EXPIRING_SOON_THRESHOLD = timedelta(seconds=60)


@dataclass
class SweepResult:
    """Outcome of one sweep pass."""

    scanned: int = 0
    expired: int = 0
    migrated: int = 0
    purged: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "expired": self.expired,
            "migrated": self.migrated,
            "purged": self.purged,
            "errors": list(self.errors),
        }


class LifecycleCoordinator:
    """
    Orchestrates record expiry on top of the metadata store.

    TTLs are clamped to ``[min_ttl_minutes, max_ttl_minutes]`` before use.
    The sweep runs on a daemon thread created by ``scheduler_factory`` and
    never blocks request handling.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        *,
        min_ttl_minutes: int = 1,
        max_ttl_minutes: int = 120,
        default_ttl_minutes: int = DEFAULT_TTL_MINUTES,
        clock: Callable[[], datetime] = utc_now,
        scheduler_factory: Callable[..., Any] = IntervalScheduler,
    ):
        if min_ttl_minutes <= 0 or max_ttl_minutes < min_ttl_minutes:
            raise ValueError(
                f"Invalid TTL range {min_ttl_minutes}-{max_ttl_minutes} minutes"
            )
        self.metadata_store = metadata_store
        self.min_ttl_minutes = min_ttl_minutes
        self.max_ttl_minutes = max_ttl_minutes
        self.default_ttl_minutes = default_ttl_minutes
        self.clock = clock
        self.scheduler_factory = scheduler_factory
        self._scheduler = None
        self._scheduler_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Expiry computation
    # ------------------------------------------------------------------

    def clamp_ttl(self, ttl_minutes: Optional[Any]) -> int:
        """
        Clamp a TTL to the configured range.

        ``None`` selects the default TTL. Numeric strings from form fields
        are accepted.

        Raises:
            ValidationError: If the TTL is not an integer
        """
        if ttl_minutes is None or ttl_minutes == "":
            ttl_minutes = self.default_ttl_minutes
        if isinstance(ttl_minutes, bool):
            raise ValidationError("TTL must be an integer number of minutes")
        try:
            value = int(ttl_minutes)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"TTL must be an integer, got {ttl_minutes!r}") from e
        if isinstance(ttl_minutes, float) and value != ttl_minutes:
            raise ValidationError(f"TTL must be a whole number of minutes, got {ttl_minutes}")
        return max(self.min_ttl_minutes, min(self.max_ttl_minutes, value))

    def compute_expiry(self, created_at: datetime, ttl_minutes: Optional[Any]) -> datetime:
        return created_at + timedelta(minutes=self.clamp_ttl(ttl_minutes))

    def extend(
        self, file_id: str, extra_minutes: Any, requesting_owner_id: str
    ) -> FileRecord:
        """
        Push a record's expiry back by ``extra_minutes``.

        Fails exactly the way ``MetadataStore.update`` fails.

        Raises:
            ValidationError: If extra_minutes is not a positive integer
            NotFoundError: If the record is missing or expired
            UnauthorizedError: If the caller does not own the record
        """
        if isinstance(extra_minutes, bool):
            raise ValidationError("Extension must be a positive number of minutes")
        try:
            minutes = int(extra_minutes)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid extension {extra_minutes!r}") from e
        if minutes <= 0:
            raise ValidationError(f"Extension must be positive, got {minutes}")

        record = self.metadata_store.get_by_id(file_id)
        base = record.expires_at or self.clock()
        new_expiry = base + timedelta(minutes=minutes)
        return self.metadata_store.update(
            file_id, {"expiresAt": new_expiry}, requesting_owner_id
        )

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    def time_until_expiry(self, expires_at: Optional[datetime]) -> timedelta:
        if expires_at is None:
            return timedelta(0)
        return max(timedelta(0), expires_at - self.clock())

    def is_expiring_soon(self, expires_at: Optional[datetime]) -> bool:
        remaining = self.time_until_expiry(expires_at)
        return timedelta(0) < remaining < EXPIRING_SOON_THRESHOLD

    @staticmethod
    def format_time_remaining(remaining: timedelta) -> str:
        """Format a remaining duration as ``3m 12s``, ``45s`` or ``expired``."""
        total_seconds = int(remaining.total_seconds())
        if total_seconds <= 0:
            return "expired"
        minutes, seconds = divmod(total_seconds, 60)
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep_once(self, ttl_minutes: Optional[int] = None) -> SweepResult:
        """
        Run one sweep pass over every visible record.

        Records past ``expiresAt`` (or ``uploadedAt + ttl_minutes`` when they
        carry no expiry) are deleted; legacy plaintext passwords on the
        survivors are rehashed. Primary deletions that failed earlier are
        retried first. Failures are logged and counted so one bad
        record cannot halt the pass.

        Returns:
            SweepResult with counts and error messages
        """
        ttl = self.clamp_ttl(ttl_minutes)
        result = SweepResult()
        result.purged = self.metadata_store.purge_tombstones()
        try:
            records = self.metadata_store.all_records()
        except Exception as e:
            logger.warning("Sweep could not list records: %s", e)
            result.errors.append(f"list: {e}")
            return result

        now = self.clock()
        for record in records:
            result.scanned += 1
            try:
                if now >= record.effective_expiry(ttl):
                    if self.metadata_store.expire(record):
                        result.expired += 1
                    else:
                        result.errors.append(f"{record.id}: metadata not removed")
                elif record.has_legacy_password:
                    if self.metadata_store.migrate_legacy_password(record):
                        result.migrated += 1
            except Exception as e:
                logger.warning("Sweep failed for file %s: %s", record.id, e)
                result.errors.append(f"{record.id}: {e}")

        if result.expired or result.migrated or result.purged or result.errors:
            logger.info(
                "Sweep finished: %d scanned, %d expired, %d migrated, %d purged, %d errors",
                result.scanned,
                result.expired,
                result.migrated,
                result.purged,
                len(result.errors),
            )
        return result

    def start_sweep(self, interval_minutes: float, ttl_minutes: Optional[int] = None) -> None:
        """
        Start the recurring sweep, replacing any running schedule.

        The first pass runs immediately on the scheduler thread.
        """
        if interval_minutes <= 0:
            raise ValidationError(f"Sweep interval must be positive, got {interval_minutes}")
        with self._scheduler_lock:
            if self._scheduler is not None:
                self._scheduler.shutdown()
            self._scheduler = self.scheduler_factory(
                lambda: self.sweep_once(ttl_minutes),
                interval_seconds=interval_minutes * 60,
                name="expiry-sweep",
                run_immediately=True,
            )
            self._scheduler.start()
        logger.info("Expiry sweep scheduled every %s minute(s)", interval_minutes)

    def stop_sweep(self) -> None:
        with self._scheduler_lock:
            if self._scheduler is not None:
                self._scheduler.shutdown()
                self._scheduler = None
