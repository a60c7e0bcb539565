"""
File Application Service

Facade the HTTP layer calls for every operation on an existing file. Each
method maps onto one metadata store or lifecycle coordinator operation.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config.settings import ShareConfig
from ..domain.errors import (
    InvalidPasswordError,
    NotFoundError,
    StorageInconsistencyError,
    UnauthorizedError,
)
from ..domain.file_sharing import FileRecord, LifecycleCoordinator, MetadataStore

logger = logging.getLogger(__name__)


class FileService:
    """Read, mutate and delete shared files on behalf of API callers."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        lifecycle: LifecycleCoordinator,
        config: ShareConfig,
    ):
        self.metadata_store = metadata_store
        self.lifecycle = lifecycle
        self.config = config

    def describe(self, record: FileRecord, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Public representation of a record.

        Adds the share URL and the remaining lifetime; never includes the
        password hash. The blob URL of a protected record is shown to its
        owner only; everyone else goes through the password-gated download.
        """
        remaining = self.lifecycle.time_until_expiry(record.expires_at)
        data = record.to_public_dict()
        if record.password_protected and viewer_id != record.owner_id:
            data.pop("url", None)
        data["shareUrl"] = self.config.share_url(record.id)
        data["remainingSeconds"] = int(remaining.total_seconds())
        data["expiringSoon"] = self.lifecycle.is_expiring_soon(record.expires_at)
        data["timeRemaining"] = self.lifecycle.format_time_remaining(remaining)
        return data

    def get_file(self, file_id: str) -> FileRecord:
        return self.metadata_store.get_by_id(file_id)

    def list_files(self, owner_id: str) -> List[FileRecord]:
        return self.metadata_store.list_by_owner(owner_id)

    def update_file(
        self, file_id: str, fields: Dict[str, Any], owner_id: str
    ) -> FileRecord:
        return self.metadata_store.update(file_id, fields, owner_id)

    def extend_file(self, file_id: str, minutes: Any, owner_id: str) -> FileRecord:
        return self.lifecycle.extend(file_id, minutes, owner_id)

    def delete_file(self, file_id: str, owner_id: str) -> None:
        """
        Delete a file for its owner.

        The metadata store reports every refusal as False; the record is
        looked up first so the caller learns which refusal it was.

        Raises:
            NotFoundError: If the record is missing or expired
            UnauthorizedError: If the caller does not own the record
            StorageInconsistencyError: If the metadata could not be removed
        """
        record = self.metadata_store.get_by_id(file_id)
        if record.owner_id != owner_id:
            raise UnauthorizedError(
                f"Owner mismatch deleting file {file_id}", context={"file_id": file_id}
            )
        if not self.metadata_store.delete(file_id, owner_id):
            try:
                self.metadata_store.get_by_id(file_id)
            except NotFoundError:
                # Removed concurrently by the sweep or lazy expiry.
                return
            raise StorageInconsistencyError(
                f"Metadata for file {file_id} could not be deleted",
                context={"file_id": file_id},
            )
        logger.info("Deleted file %s on owner request", file_id)

    def verify_password(self, file_id: str, secret: Optional[str]) -> bool:
        record = self.metadata_store.get_by_id(file_id)
        return self.metadata_store.verify_file_password(record, secret or "")

    def record_download(self, file_id: str) -> int:
        return self.metadata_store.increment_download_count(file_id)

    def prepare_download(self, file_id: str, secret: Optional[str]) -> FileRecord:
        """
        Pass the password gate and count the download.

        Returns:
            The record, whose ``url`` the caller redirects to

        Raises:
            NotFoundError: If the record is missing or expired
            InvalidPasswordError: If the file is protected and the secret is wrong
        """
        record = self.metadata_store.get_by_id(file_id)
        if not self.metadata_store.verify_file_password(record, secret or ""):
            raise InvalidPasswordError(
                f"Wrong password for file {file_id}", context={"file_id": file_id}
            )
        count = self.metadata_store.increment_download_count(file_id)
        return record.with_changes(download_count=count)
