"""
Local Blob Store

IBlobStore on the local filesystem, used for development and when no GCS
bucket is configured. The Flask app serves stored blobs at ``/blobs/<name>``.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from ..domain.errors import BackendUnavailableError
from ..domain.file_sharing.blob_store import IBlobStore

logger = logging.getLogger(__name__)

BLOB_ROUTE = "/blobs/"


class LocalBlobStore(IBlobStore):
    """
    Filesystem implementation of IBlobStore.

    Attributes:
        base_path: Directory holding blob files
        public_base_url: Origin prefixed to ``/blobs/<name>`` in returned URLs
    """

    name = "local-blobs"

    def __init__(self, base_path: Union[str, Path], public_base_url: str = ""):
        self.base_path = Path(base_path)
        self.public_base_url = public_base_url.rstrip("/")
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to create blob directory: {self.base_path}",
                context={"backend": self.name},
                original_error=e,
            ) from e

    def path_for(self, blob_name: str) -> Optional[Path]:
        """
        Resolve a blob name to a path inside base_path.

        Returns:
            The path, or None if the name would escape the directory
        """
        if not blob_name or "/" in blob_name or "\\" in blob_name or blob_name in (".", ".."):
            return None
        return self.base_path / blob_name

    def upload(self, blob_name: str, content: bytes, content_type: str) -> str:
        path = self.path_for(blob_name)
        if path is None:
            raise ValueError(f"Invalid blob name: {blob_name!r}")
        tmp_path = path.with_name(f".{path.name}.part")
        try:
            with open(tmp_path, "wb") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to write blob {blob_name}: {e}",
                context={"backend": self.name},
                original_error=e,
            ) from e
        logger.info("Stored local blob %s (%s, %d bytes)", blob_name, content_type, len(content))
        return f"{self.public_base_url}{BLOB_ROUTE}{blob_name}"

    def delete(self, url: str) -> None:
        path_part = unquote(urlparse(url).path)
        if BLOB_ROUTE not in path_part:
            logger.warning("Not deleting blob with foreign URL: %s", url)
            return
        path = self.path_for(path_part.rsplit(BLOB_ROUTE, 1)[-1])
        if path is None:
            logger.warning("Not deleting blob with invalid name: %s", url)
            return
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Blob %s already deleted", path.name)
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to delete blob {path.name}: {e}",
                context={"backend": self.name},
                original_error=e,
            ) from e

    def ping(self) -> bool:
        return self.base_path.is_dir() and os.access(self.base_path, os.W_OK)
