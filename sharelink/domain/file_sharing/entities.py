"""
File Sharing Entities

The FileRecord entity and its document representation.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .value_objects import (
    HashedPassword,
    LegacyPlaintextPassword,
    StoredPassword,
    is_bcrypt_hash,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO8601 timestamp into an aware UTC datetime.

    Naive values are read as UTC. ``Z`` suffixes and epoch milliseconds
    written by older clients are accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


@dataclass
class FileRecord:
    """
    Metadata describing one uploaded file.

    ``password`` holds the stored form of the gate password and is set iff
    ``password_protected`` is true. The raw secret never lives here.
    """

    id: str
    filename: str
    original_name: str
    size: int
    mime_type: str
    url: str
    uploaded_at: datetime
    owner_id: str
    expires_at: Optional[datetime] = None
    download_count: int = 0
    password: Optional[StoredPassword] = field(default=None, repr=False)
    encrypted: bool = False

    def __post_init__(self):
        if not self.id:
            raise ValueError("File id is required")
        if self.size < 0:
            raise ValueError(f"Size must be non-negative, got {self.size}")
        if self.download_count < 0:
            raise ValueError(
                f"Download count must be non-negative, got {self.download_count}"
            )

    @property
    def password_protected(self) -> bool:
        return self.password is not None

    @property
    def password_hash(self) -> Optional[str]:
        return self.password.value if self.password is not None else None

    @property
    def has_legacy_password(self) -> bool:
        return isinstance(self.password, LegacyPlaintextPassword)

    def is_expired(self, now: datetime) -> bool:
        """
        Check whether the record is past its expiry.

        Records without ``expires_at`` never expire here; the sweep applies
        its own TTL to those.
        """
        return self.expires_at is not None and now >= self.expires_at

    def effective_expiry(self, ttl_minutes: int) -> datetime:
        """Expiry used by the sweep: ``expires_at`` or ``uploaded_at + ttl``."""
        if self.expires_at is not None:
            return self.expires_at
        return self.uploaded_at + timedelta(minutes=ttl_minutes)

    def with_changes(self, **changes) -> "FileRecord":
        return replace(self, **changes)

    def to_document(self) -> Dict[str, Any]:
        """
        Serialize to the persisted camelCase document.

        Returns:
            Dictionary suitable for any document store
        """
        return {
            "id": self.id,
            "filename": self.filename,
            "originalName": self.original_name,
            "size": self.size,
            "mimeType": self.mime_type,
            "url": self.url,
            "uploadedAt": format_timestamp(self.uploaded_at),
            "downloadCount": self.download_count,
            "ownerId": self.owner_id,
            "expiresAt": format_timestamp(self.expires_at),
            "passwordProtected": self.password_protected,
            "passwordHash": self.password_hash,
            "encrypted": self.encrypted,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Document without the password hash, for API responses."""
        document = self.to_document()
        document.pop("passwordHash", None)
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "FileRecord":
        """
        Build a record from a persisted document.

        Accepts the legacy aliases ``type``, ``userId`` and ``password``.
        A stored password that is not a complete bcrypt hash is read as
        legacy plaintext.

        Args:
            document: Persisted document

        Returns:
            FileRecord instance

        Raises:
            ValueError: If required fields are missing or malformed
        """
        try:
            record_id = str(document["id"])
            uploaded_at = parse_timestamp(document["uploadedAt"])
        except KeyError as e:
            raise ValueError(f"Document is missing field {e}") from e
        if uploaded_at is None:
            raise ValueError("Document is missing uploadedAt")

        raw_password = document.get("passwordHash")
        if raw_password is None:
            raw_password = document.get("password")
        password: Optional[StoredPassword] = None
        if raw_password:
            if is_bcrypt_hash(str(raw_password)):
                password = HashedPassword(str(raw_password))
            else:
                password = LegacyPlaintextPassword(str(raw_password))

        return cls(
            id=record_id,
            filename=str(document.get("filename") or record_id),
            original_name=str(document.get("originalName") or ""),
            size=int(document.get("size") or 0),
            mime_type=str(
                document.get("mimeType")
                or document.get("type")
                or "application/octet-stream"
            ),
            url=str(document.get("url") or ""),
            uploaded_at=uploaded_at,
            owner_id=str(document.get("ownerId") or document.get("userId") or ""),
            expires_at=parse_timestamp(document.get("expiresAt")),
            download_count=int(document.get("downloadCount") or 0),
            password=password,
            encrypted=bool(document.get("encrypted", False)),
        )
