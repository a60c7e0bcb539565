"""
Google Cloud Storage Configuration

Builds the GCS client used by the blob store.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from google.cloud import storage
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


@dataclass
class GCSConfig:
    """GCS settings; an empty bucket name disables GCS."""

    bucket_name: str = ""
    credentials_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "GCSConfig":
        return cls(
            bucket_name=os.getenv("GCS_BUCKET_NAME", "").strip(),
            credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.bucket_name)


def create_gcs_client(config: GCSConfig) -> storage.Client:
    """
    Initialize a Google Cloud Storage client.

    Uses the service account file when one is configured and present,
    otherwise the environment's default credentials.

    Args:
        config: GCS configuration

    Returns:
        storage.Client instance
    """
    if config.credentials_path and os.path.exists(config.credentials_path):
        credentials = service_account.Credentials.from_service_account_file(
            config.credentials_path
        )
        logger.info("GCS client initialized with service account: %s", config.credentials_path)
        return storage.Client(credentials=credentials)

    logger.info("GCS client initialized with default credentials")
    return storage.Client()
