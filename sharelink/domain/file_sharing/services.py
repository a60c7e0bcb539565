"""
Metadata Store

Dual-backend CRUD for file records. Ownership and expiry are enforced on
every read and write; the primary and fallback backends are composed here
and never reconciled.
"""

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..errors import (
    BackendUnavailableError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .backend_selector import BackendSelector
from .blob_store import IBlobStore
from .document_store import IDocumentStore
from .entities import FileRecord, parse_timestamp, utc_now
from .passwords import PasswordGuard
from .value_objects import HashedPassword, LegacyPlaintextPassword

logger = logging.getLogger(__name__)

COLLECTION = "files"
# Ids deleted from the fallback while the primary could not be reached
TOMBSTONES = "tombstones"
UPDATABLE_FIELDS = frozenset({"originalName", "expiresAt"})
DEFAULT_TTL_MINUTES = 5


class MetadataStore:
    """
    Persists FileRecords across a primary and a fallback document store.

    Writes go to the primary and fall back to the local store on failure,
    so a write is never lost. Reads look in the primary first, then the
    fallback, because a record written during an outage lives only there.
    Expired records observed on any read path are reported as not found
    and deleted in the background.
    """

    def __init__(
        self,
        primary: IDocumentStore,
        fallback: IDocumentStore,
        blob_store: IBlobStore,
        password_guard: PasswordGuard,
        *,
        default_ttl_minutes: int = DEFAULT_TTL_MINUTES,
        clock: Callable[[], datetime] = utc_now,
        executor: Optional[Executor] = None,
        selector: Optional[BackendSelector] = None,
    ):
        """
        Initialize metadata store.

        Args:
            primary: Remote document store tried first
            fallback: Local document store used when the primary is unreachable
            blob_store: Storage holding file content
            password_guard: Hashing and verification of gate passwords
            default_ttl_minutes: Expiry window applied when a record has none
            clock: Returns the current aware UTC datetime
            executor: Runs background deletions; a thread pool when omitted
            selector: Primary/fallback routing policy
        """
        self.primary = primary
        self.fallback = fallback
        self.blob_store = blob_store
        self.password_guard = password_guard
        self.default_ttl = timedelta(minutes=default_ttl_minutes)
        self.clock = clock
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="sharelink-expiry"
        )
        self.selector = selector or BackendSelector(primary, fallback)
        self._pending_expiry: set = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, record: FileRecord, password: Optional[str] = None) -> FileRecord:
        """
        Persist a full record.

        Missing expiry defaults to now plus the default window. A supplied
        password is hashed unless it already is; legacy plaintext carried
        on the record is hashed as well, so new writes never store a raw
        secret.

        Args:
            record: Record to store
            password: Raw or already-hashed gate password

        Returns:
            The record as stored

        Raises:
            EmptyInputError: If password is an empty string
            BackendUnavailableError: If both backends fail
        """
        if record.expires_at is None:
            record = record.with_changes(expires_at=self.clock() + self.default_ttl)

        if password is not None:
            record = record.with_changes(password=self.password_guard.to_stored(password))
        elif isinstance(record.password, LegacyPlaintextPassword):
            record = record.with_changes(
                password=self.password_guard.to_stored(record.password.value)
            )

        document = record.to_document()
        self.selector.call(
            "put", lambda store: store.put(COLLECTION, record.id, document)
        )
        logger.info("Stored metadata for file %s", record.id)
        return record

    def update(
        self, file_id: str, fields: Dict[str, Any], requesting_owner_id: str
    ) -> FileRecord:
        """
        Rename a record or change its expiry.

        Args:
            file_id: Record id
            fields: Subset of ``originalName`` and ``expiresAt``
            requesting_owner_id: Session id of the caller

        Returns:
            Updated record

        Raises:
            ValidationError: For unknown fields, an empty name or a bad timestamp
            NotFoundError: If the record is missing or expired
            UnauthorizedError: If the caller does not own the record
        """
        changes = self._validate_update(fields)
        record, source = self._locate(file_id)
        if record.owner_id != requesting_owner_id:
            raise UnauthorizedError(
                f"Owner mismatch updating file {file_id}",
                context={"file_id": file_id},
            )
        updated = record.with_changes(**changes)
        self._persist(updated, source, "update")
        return updated

    def increment_download_count(self, file_id: str) -> int:
        """
        Add one to a record's download counter.

        Any caller who can reach the file may trigger this. Concurrent
        increments are last-write-wins.

        Returns:
            The new count

        Raises:
            NotFoundError: If the record is missing or expired
        """
        record, source = self._locate(file_id)
        updated = record.with_changes(download_count=record.download_count + 1)
        self._persist(updated, source, "increment_download_count")
        return updated.download_count

    def delete(self, file_id: str, requesting_owner_id: str) -> bool:
        """
        Delete a record and its blob on behalf of its owner.

        Returns:
            True if the record was removed; False when it does not exist,
            the caller is not the owner, or the metadata could not be removed
        """
        try:
            record, _ = self._locate(file_id)
        except NotFoundError:
            return False
        if record.owner_id != requesting_owner_id:
            logger.info("Rejected delete of file %s by non-owner", file_id)
            return False
        return self._remove(record)

    def expire(self, record: FileRecord) -> bool:
        """
        System deletion used by lazy expiry and the sweep.

        Removes the blob, then the metadata from both backends. Never raises.

        Returns:
            True if metadata removal succeeded
        """
        removed = self._remove(record)
        if removed:
            logger.info("Expired file %s", record.id)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, file_id: str) -> FileRecord:
        """
        Fetch a live record.

        Raises:
            NotFoundError: If the record is missing or has expired
            BackendUnavailableError: If both backends fail
        """
        record, _ = self._locate(file_id)
        return record

    def list_by_owner(self, owner_id: str) -> List[FileRecord]:
        """
        List an owner's live records, newest first.

        Expired records met during the scan are dropped from the result and
        deleted in the background.
        """
        records = self._collect(lambda store: self._query_owner(store, owner_id))
        now = self.clock()
        live = []
        for record in records:
            if record.is_expired(now):
                self._schedule_expiry(record)
                continue
            live.append(record)
        live.sort(key=lambda r: r.uploaded_at, reverse=True)
        return live

    def all_records(self) -> List[FileRecord]:
        """Every record visible in either backend, expired ones included."""
        return self._collect(lambda store: store.query(COLLECTION, {}))

    def id_exists(self, file_id: str) -> bool:
        """True if any backend holds a document with this id, live, expired or tombstoned."""
        return self._find_document(file_id) is not None or self._is_tombstoned(file_id)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def verify_file_password(self, record: FileRecord, secret: str) -> bool:
        """
        Check a caller-supplied secret against a record's password gate.

        Unprotected records always verify. A legacy plaintext password that
        verifies is rewritten as a hash.
        """
        if not record.password_protected:
            return True
        ok = self.password_guard.verify_stored(secret, record.password, record.id)
        if ok and record.has_legacy_password:
            self._upgrade_password(record.id, secret)
        return ok

    def migrate_legacy_password(self, record: FileRecord) -> bool:
        """
        Rehash a legacy plaintext password in place.

        Returns:
            True if the record was migrated
        """
        if not record.has_legacy_password:
            return False
        return self._upgrade_password(record.id, record.password.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=False)

    def _schedule_expiry(self, record: FileRecord) -> None:
        with self._pending_lock:
            if record.id in self._pending_expiry:
                return
            self._pending_expiry.add(record.id)
        self.executor.submit(self._run_expiry, record)

    def _run_expiry(self, record: FileRecord) -> None:
        try:
            self.expire(record)
        finally:
            with self._pending_lock:
                self._pending_expiry.discard(record.id)

    def _remove(self, record: FileRecord) -> bool:
        try:
            self.blob_store.delete(record.url)
        except Exception as e:
            logger.warning(
                "Storage inconsistency: blob for file %s not deleted, "
                "removing metadata anyway: %s",
                record.id,
                e,
            )

        # The primary is tried even during its cooldown; skipping it would let
        # the record reappear once the primary is back.
        primary_removed = True
        try:
            self.primary.delete(COLLECTION, record.id)
        except BackendUnavailableError as e:
            primary_removed = False
            self.selector.report_failure("delete", e)

        try:
            self.fallback.delete(COLLECTION, record.id)
            if not primary_removed:
                self._write_tombstone(record.id)
        except BackendUnavailableError as e:
            logger.warning(
                "Could not delete metadata for file %s from %s: %s",
                record.id,
                self.fallback.name,
                e,
            )
            if not primary_removed:
                logger.warning(
                    "Storage inconsistency: metadata for file %s could not be deleted "
                    "from any backend after blob removal",
                    record.id,
                )
                return False

        if not primary_removed:
            logger.warning(
                "Metadata for file %s left in primary %s; tombstoned until the next sweep",
                record.id,
                self.primary.name,
            )
        return True

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------

    def purge_tombstones(self) -> int:
        """
        Retry primary deletions that failed and drop their tombstones.

        Returns:
            Number of tombstones cleared
        """
        try:
            tombstones = self.fallback.query(TOMBSTONES, {})
        except BackendUnavailableError as e:
            logger.warning("Could not read tombstones from %s: %s", self.fallback.name, e)
            return 0

        cleared = 0
        for tombstone in tombstones:
            file_id = tombstone.get("id")
            if not file_id:
                continue
            try:
                self.primary.delete(COLLECTION, file_id)
                self.fallback.delete(TOMBSTONES, file_id)
            except BackendUnavailableError as e:
                logger.info("Tombstoned file %s still pending removal: %s", file_id, e)
                continue
            cleared += 1
            logger.info("Removed tombstoned file %s from primary", file_id)
        return cleared

    def _write_tombstone(self, file_id: str) -> None:
        self.fallback.put(
            TOMBSTONES,
            file_id,
            {"id": file_id, "deletedAt": self.clock().isoformat()},
        )

    def _tombstoned_ids(self) -> Set[str]:
        try:
            return {t["id"] for t in self.fallback.query(TOMBSTONES, {}) if t.get("id")}
        except BackendUnavailableError:
            return set()

    def _is_tombstoned(self, file_id: str) -> bool:
        try:
            return self.fallback.get(TOMBSTONES, file_id) is not None
        except BackendUnavailableError:
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not fields:
            raise ValidationError("No fields to update")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                context={"fields": sorted(unknown)},
            )

        changes: Dict[str, Any] = {}
        if "originalName" in fields:
            name = fields["originalName"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("originalName must be a non-empty string")
            changes["original_name"] = name.strip()
        if "expiresAt" in fields:
            try:
                expires_at = parse_timestamp(fields["expiresAt"])
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid expiresAt: {e}") from e
            if expires_at is None:
                raise ValidationError("expiresAt must be a timestamp")
            changes["expires_at"] = expires_at
        return changes

    def _locate(self, file_id: str) -> Tuple[FileRecord, IDocumentStore]:
        found = self._find_document(file_id)
        if found is None:
            raise NotFoundError(f"File {file_id} not found", context={"file_id": file_id})
        document, source = found
        try:
            record = FileRecord.from_document(document)
        except ValueError as e:
            logger.warning("Unreadable metadata for file %s in %s: %s", file_id, source.name, e)
            raise NotFoundError(f"File {file_id} has unreadable metadata") from e

        if record.is_expired(self.clock()):
            self._schedule_expiry(record)
            raise NotFoundError(f"File {file_id} has expired", context={"file_id": file_id})
        return record, source

    def _find_document(
        self, file_id: str
    ) -> Optional[Tuple[Dict[str, Any], IDocumentStore]]:
        primary_failed = False
        if self.selector.primary_available():
            try:
                document = self.primary.get(COLLECTION, file_id)
                if document is not None and not self._is_tombstoned(file_id):
                    return document, self.primary
            except BackendUnavailableError as e:
                primary_failed = True
                self.selector.report_failure("get", e)
        else:
            primary_failed = True

        try:
            document = self.fallback.get(COLLECTION, file_id)
        except BackendUnavailableError:
            if primary_failed:
                raise
            logger.warning("Fallback backend %s unreachable during get", self.fallback.name)
            return None
        if document is not None:
            return document, self.fallback
        return None

    def _collect(
        self, fetch: Callable[[IDocumentStore], List[Dict[str, Any]]]
    ) -> List[FileRecord]:
        documents: List[Dict[str, Any]] = []
        primary_failed = False
        if self.selector.primary_available():
            try:
                documents.extend(fetch(self.primary))
            except BackendUnavailableError as e:
                primary_failed = True
                self.selector.report_failure("query", e)
        else:
            primary_failed = True

        try:
            fallback_documents = fetch(self.fallback)
        except BackendUnavailableError:
            if primary_failed:
                raise
            logger.warning("Fallback backend %s unreachable during query", self.fallback.name)
            fallback_documents = []

        seen = self._tombstoned_ids() if documents else set()
        records: List[FileRecord] = []
        # Primary documents come first and win on duplicate ids.
        for document in documents + fallback_documents:
            try:
                record = FileRecord.from_document(document)
            except ValueError as e:
                logger.warning("Skipping unreadable metadata document: %s", e)
                continue
            if record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)
        return records

    @staticmethod
    def _query_owner(store: IDocumentStore, owner_id: str) -> List[Dict[str, Any]]:
        documents = store.query(COLLECTION, {"ownerId": owner_id})
        # Documents written by older releases carry userId instead.
        documents.extend(store.query(COLLECTION, {"userId": owner_id}))
        return documents

    def _persist(self, record: FileRecord, source: IDocumentStore, operation: str) -> None:
        document = record.to_document()
        if source is self.fallback:
            self.fallback.put(COLLECTION, record.id, document)
            return
        try:
            self.primary.put(COLLECTION, record.id, document)
        except BackendUnavailableError as e:
            self.selector.report_failure(operation, e)
            self.fallback.put(COLLECTION, record.id, document)

    def _upgrade_password(self, file_id: str, secret: str) -> bool:
        try:
            record, source = self._locate(file_id)
        except NotFoundError:
            return False
        if not record.has_legacy_password:
            return False
        upgraded = record.with_changes(
            password=HashedPassword(self.password_guard.hash(secret))
        )
        try:
            self._persist(upgraded, source, "password upgrade")
        except BackendUnavailableError as e:
            logger.warning("Could not upgrade legacy password for file %s: %s", file_id, e)
            return False
        logger.info("Upgraded legacy plaintext password for file %s", file_id)
        return True
