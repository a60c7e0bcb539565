"""
Blob Store Interface

Abstract interface for the object storage holding file content.
"""

from abc import ABC, abstractmethod


class IBlobStore(ABC):
    """
    Binary content storage returning publicly readable URLs.

    The returned URL must be fetchable without extra authentication so a
    share link works for anyone who holds it.
    """

    name: str = "blob-store"

    @abstractmethod
    def upload(self, blob_name: str, content: bytes, content_type: str) -> str:
        """
        Store content and return its durable fetch URL.

        Args:
            blob_name: Storage-side filename (``<id>.<ext>``)
            content: File bytes
            content_type: MIME type served with the blob

        Returns:
            Public URL of the stored blob

        Raises:
            BackendUnavailableError: If the storage service cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, url: str) -> None:
        """
        Delete the blob behind a URL returned by upload().

        Idempotent: deleting a missing blob succeeds silently.

        Raises:
            BackendUnavailableError: If the storage service cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def ping(self) -> bool:
        """Health check. Must never raise."""
        pass  # pragma: no cover
