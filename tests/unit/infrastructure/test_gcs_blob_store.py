"""
Unit tests for GCSBlobStore using a mocked storage client.
"""

from unittest.mock import Mock

import pytest
from google.api_core.exceptions import ServiceUnavailable
from google.auth.exceptions import TransportError
from google.cloud.exceptions import NotFound

from sharelink.domain.errors import BackendUnavailableError
from sharelink.infrastructure.gcs_blob_store import GCSBlobStore


@pytest.fixture
def bucket():
    return Mock()


@pytest.fixture
def store(bucket):
    client = Mock()
    client.bucket.return_value = bucket
    return GCSBlobStore("share-bucket", client=client)


def test_empty_bucket_name_rejected():
    with pytest.raises(ValueError):
        GCSBlobStore("  ", client=Mock())


def test_upload_stores_public_object(store, bucket):
    blob = bucket.blob.return_value

    url = store.upload("a1b2.pdf", b"%PDF", "application/pdf")

    assert url == "https://storage.googleapis.com/share-bucket/files/a1b2.pdf"
    bucket.blob.assert_called_once_with("files/a1b2.pdf")
    blob.upload_from_string.assert_called_once_with(b"%PDF", content_type="application/pdf")
    blob.make_public.assert_called_once()


def test_upload_failure_is_backend_unavailable(store, bucket):
    bucket.blob.return_value.upload_from_string.side_effect = ServiceUnavailable("down")

    with pytest.raises(BackendUnavailableError):
        store.upload("a1b2.pdf", b"%PDF", "application/pdf")


def test_delete_maps_url_to_object(store, bucket):
    store.delete("https://storage.googleapis.com/share-bucket/files/a1b2.pdf")

    bucket.blob.assert_called_once_with("files/a1b2.pdf")
    bucket.blob.return_value.delete.assert_called_once()


def test_delete_of_missing_blob_is_ignored(store, bucket):
    bucket.blob.return_value.delete.side_effect = NotFound("gone")
    store.delete("https://storage.googleapis.com/share-bucket/files/a1b2.pdf")


def test_delete_outside_bucket_is_skipped(store, bucket):
    store.delete("https://storage.googleapis.com/other-bucket/files/a1b2.pdf")
    bucket.blob.assert_not_called()


def test_delete_failure_is_backend_unavailable(store, bucket):
    bucket.blob.return_value.delete.side_effect = ServiceUnavailable("down")

    with pytest.raises(BackendUnavailableError):
        store.delete("https://storage.googleapis.com/share-bucket/files/a1b2.pdf")


def test_ping(store, bucket):
    bucket.exists.return_value = True
    assert store.ping() is True
    bucket.exists.side_effect = ServiceUnavailable("down")
    assert store.ping() is False


@pytest.mark.parametrize(
    "error", [ConnectionError("connection reset"), TransportError("token refresh failed")]
)
def test_transport_errors_are_backend_unavailable(store, bucket, error):
    bucket.blob.return_value.delete.side_effect = error
    bucket.blob.return_value.upload_from_string.side_effect = error
    bucket.exists.side_effect = error

    with pytest.raises(BackendUnavailableError):
        store.delete("https://storage.googleapis.com/share-bucket/files/a1b2.pdf")
    with pytest.raises(BackendUnavailableError):
        store.upload("a1b2.pdf", b"%PDF", "application/pdf")
    assert store.ping() is False
