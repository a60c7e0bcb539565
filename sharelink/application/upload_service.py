"""
Upload Application Service

Validates an upload, stores the content in the blob store and persists the
record through the metadata store.
"""

import logging
import mimetypes
from datetime import datetime
from typing import Callable, Optional

from ..config.settings import ShareConfig
from ..domain.errors import ErrorCategory, ValidationError
from ..domain.file_sharing import (
    FileRecord,
    HashedPassword,
    IBlobStore,
    LifecycleCoordinator,
    MetadataStore,
    build_storage_filename,
    generate_unique_file_id,
    utc_now,
)

logger = logging.getLogger(__name__)

GENERIC_MIME_TYPE = "application/octet-stream"


class UploadService:
    """
    Application service for creating shared files.

    The blob is written before the metadata. If the metadata write fails
    the blob is left behind as an orphan; there is no rollback.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        lifecycle: LifecycleCoordinator,
        blob_store: IBlobStore,
        config: ShareConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.metadata_store = metadata_store
        self.lifecycle = lifecycle
        self.blob_store = blob_store
        self.config = config
        self.clock = clock

    @staticmethod
    def resolve_mime_type(original_name: str, declared: Optional[str]) -> str:
        """
        Use the declared content type, sniffing from the name when it is generic.
        """
        declared = (declared or "").split(";", 1)[0].strip().lower()
        if declared and declared != GENERIC_MIME_TYPE:
            return declared
        guessed, _ = mimetypes.guess_type(original_name)
        return guessed or declared or GENERIC_MIME_TYPE

    def validate(
        self,
        original_name: str,
        size: int,
        mime_type: str,
        password: Optional[str] = None,
    ) -> None:
        """
        Check an upload against the configured limits.

        Raises:
            ValidationError: With a category naming the violated rule
        """
        if not original_name or not original_name.strip():
            raise ValidationError("A file name is required")

        if size > self.config.max_file_size:
            raise ValidationError(
                f"File is {size} bytes, limit is {self.config.max_file_size}",
                context={"size": size, "max_file_size": self.config.max_file_size},
                category=ErrorCategory.FILE_TOO_LARGE,
            )

        if not any(mime_type.startswith(prefix) for prefix in self.config.allowed_mime_prefixes):
            raise ValidationError(
                f"MIME type {mime_type} is not allowed",
                context={"mime_type": mime_type},
                category=ErrorCategory.FILE_TYPE_NOT_ALLOWED,
            )

        lowered = original_name.strip().lower()
        if any(lowered.endswith(ext) for ext in self.config.blocked_extensions):
            raise ValidationError(
                f"Executable file {original_name} is not allowed",
                context={"filename": original_name},
                category=ErrorCategory.FILE_TYPE_NOT_ALLOWED,
            )

        if password is not None and len(password) < self.config.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.config.password_min_length} characters",
                context={"min_length": self.config.password_min_length},
            )

    def upload(
        self,
        content: bytes,
        original_name: str,
        owner_id: str,
        mime_type: Optional[str] = None,
        password: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        encrypted: bool = False,
    ) -> FileRecord:
        """
        Create a shared file.

        Args:
            content: File bytes
            original_name: User-supplied display name
            owner_id: Session id of the uploader
            mime_type: Declared content type
            password: Optional gate password (raw)
            ttl_minutes: Requested lifetime, clamped to the configured range
            encrypted: Advisory flag for client-side encryption

        Returns:
            The stored FileRecord

        Raises:
            ValidationError: If the upload breaks a configured limit
            BackendUnavailableError: If the blob store or both metadata backends fail
        """
        resolved_type = self.resolve_mime_type(original_name, mime_type)
        self.validate(original_name, len(content), resolved_type, password)
        ttl = self.lifecycle.clamp_ttl(ttl_minutes)

        file_id = generate_unique_file_id(self.metadata_store.id_exists)
        filename = build_storage_filename(file_id, original_name)
        url = self.blob_store.upload(filename, content, resolved_type)

        now = self.clock()
        record = FileRecord(
            id=file_id,
            filename=filename,
            original_name=original_name.strip(),
            size=len(content),
            mime_type=resolved_type,
            url=url,
            uploaded_at=now,
            owner_id=owner_id,
            expires_at=self.lifecycle.compute_expiry(now, ttl),
            encrypted=encrypted,
        )
        if password is not None:
            # User input is always hashed, even when it looks like a hash
            hashed = self.metadata_store.password_guard.hash(password)
            record = record.with_changes(password=HashedPassword(hashed))
        try:
            stored = self.metadata_store.put(record)
        except Exception:
            logger.warning("Metadata write failed for %s; blob %s is orphaned", file_id, url)
            raise

        logger.info(
            "Uploaded file %s (%s, %d bytes, ttl %d min, protected=%s)",
            file_id,
            resolved_type,
            stored.size,
            ttl,
            stored.password_protected,
        )
        return stored
