"""
Storage Factory

Builds the blob store and document store implementations from
configuration. The application layer only sees the domain interfaces.
"""

import logging
from typing import Optional

from google.cloud import storage

from ..config.gcs_config import GCSConfig, create_gcs_client
from ..config.settings import ShareConfig
from ..domain.file_sharing.blob_store import IBlobStore
from ..domain.file_sharing.document_store import IDocumentStore
from .gcs_blob_store import GCSBlobStore
from .local_blob_store import LocalBlobStore
from .local_document_store import LocalDocumentStore

logger = logging.getLogger(__name__)


class BlobStoreFactory:
    """Selects GCS when a bucket is configured, local files otherwise."""

    @staticmethod
    def create(
        config: ShareConfig,
        gcs_config: Optional[GCSConfig] = None,
        gcs_client: Optional[storage.Client] = None,
    ) -> IBlobStore:
        """
        Create the blob store.

        Args:
            config: Application configuration (blob directory, public URL)
            gcs_config: GCS settings; read from the environment when omitted
            gcs_client: Preconfigured GCS client

        Returns:
            IBlobStore implementation
        """
        gcs_config = gcs_config or GCSConfig.from_env()
        if gcs_config.enabled:
            client = gcs_client or create_gcs_client(gcs_config)
            logger.info("Blob store: Google Cloud Storage bucket %s", gcs_config.bucket_name)
            return GCSBlobStore(gcs_config.bucket_name, client=client)

        logger.info("Blob store: local filesystem at %s", config.blob_dir)
        return LocalBlobStore(config.blob_dir, public_base_url=config.public_base_url)


def create_fallback_store(config: ShareConfig) -> IDocumentStore:
    """Local fallback document store; in memory when FALLBACK_DATA_DIR is unset."""
    if config.fallback_data_dir:
        logger.info("Fallback metadata store: %s", config.fallback_data_dir)
        return LocalDocumentStore(config.fallback_data_dir)
    logger.info("Fallback metadata store: in memory")
    return LocalDocumentStore()
