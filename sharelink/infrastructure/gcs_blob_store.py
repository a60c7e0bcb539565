"""
Google Cloud Storage Blob Store

Concrete IBlobStore uploading file content to a GCS bucket under
``files/<filename>`` and exposing it through the bucket's public URL.
"""

import logging
from typing import Optional
from urllib.parse import unquote, urlparse

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage
from google.cloud.exceptions import NotFound

from ..domain.errors import BackendUnavailableError
from ..domain.file_sharing.blob_store import IBlobStore

logger = logging.getLogger(__name__)

BLOB_PREFIX = "files/"
PUBLIC_HOST = "https://storage.googleapis.com"


class GCSBlobStore(IBlobStore):
    """
    Google Cloud Storage implementation of IBlobStore.

    Thread Safety:
        The GCS client handles concurrent operations safely.

    Attributes:
        bucket_name: Name of the GCS bucket for file storage
        client: Google Cloud Storage client instance
        bucket: GCS bucket object
    """

    name = "gcs"

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None):
        """
        Initialize the GCS blob store.

        Args:
            bucket_name: Name of the GCS bucket to use for storage
            client: Preconfigured client; default credentials when omitted

        Raises:
            ValueError: If bucket_name is empty
        """
        if not bucket_name or not bucket_name.strip():
            raise ValueError("bucket_name cannot be empty")

        self.bucket_name = bucket_name
        self.client = client or storage.Client()
        self.bucket = self.client.bucket(bucket_name)

    def public_url(self, blob_name: str) -> str:
        return f"{PUBLIC_HOST}/{self.bucket_name}/{BLOB_PREFIX}{blob_name}"

    def blob_name_from_url(self, url: str) -> Optional[str]:
        """
        Map a public URL produced by upload() back to its object name.

        Returns:
            Object name within the bucket, or None for foreign URLs
        """
        path = unquote(urlparse(url).path).lstrip("/")
        bucket_prefix = f"{self.bucket_name}/"
        if not path.startswith(bucket_prefix):
            return None
        object_name = path[len(bucket_prefix):]
        return object_name or None

    def upload(self, blob_name: str, content: bytes, content_type: str) -> str:
        if not blob_name or not blob_name.strip():
            raise ValueError("blob_name cannot be empty")

        blob = self.bucket.blob(f"{BLOB_PREFIX}{blob_name}")
        try:
            blob.upload_from_string(content, content_type=content_type)
            blob.make_public()
        except GoogleAPIError as e:
            raise BackendUnavailableError(
                f"Failed to upload {blob_name} to GCS: {e}",
                context={"backend": self.name, "bucket": self.bucket_name},
                original_error=e,
            ) from e
        except Exception as e:
            raise BackendUnavailableError(
                f"Failed to reach GCS uploading {blob_name}: {e}",
                context={"backend": self.name, "bucket": self.bucket_name},
                original_error=e,
            ) from e

        url = self.public_url(blob_name)
        logger.info("Uploaded blob %s to bucket %s", blob_name, self.bucket_name)
        return url

    def delete(self, url: str) -> None:
        """
        Delete the blob behind a public URL.

        Idempotent: a missing blob or a URL outside this bucket is ignored.
        """
        object_name = self.blob_name_from_url(url)
        if object_name is None:
            logger.warning("Not deleting blob outside bucket %s: %s", self.bucket_name, url)
            return
        try:
            self.bucket.blob(object_name).delete()
        except NotFound:
            logger.debug("Blob %s already deleted", object_name)
        except GoogleAPIError as e:
            raise BackendUnavailableError(
                f"Failed to delete {object_name} from GCS: {e}",
                context={"backend": self.name, "bucket": self.bucket_name},
                original_error=e,
            ) from e
        except Exception as e:
            # Transport failures (connection resets, auth refresh) are not GoogleAPIErrors
            raise BackendUnavailableError(
                f"Failed to reach GCS deleting {object_name}: {e}",
                context={"backend": self.name, "bucket": self.bucket_name},
                original_error=e,
            ) from e

    def ping(self) -> bool:
        try:
            return bool(self.bucket.exists())
        except Exception as e:
            logger.warning("GCS health check failed: %s", e)
            return False
