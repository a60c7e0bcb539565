"""
Unit tests for the interval scheduler and the storage factory.
"""

import threading
from unittest.mock import Mock

import pytest

from sharelink.config.gcs_config import GCSConfig
from sharelink.infrastructure.gcs_blob_store import GCSBlobStore
from sharelink.infrastructure.local_blob_store import LocalBlobStore
from sharelink.infrastructure.local_document_store import LocalDocumentStore
from sharelink.infrastructure.scheduler import IntervalScheduler
from sharelink.infrastructure.storage_factory import BlobStoreFactory, create_fallback_store


class TestIntervalScheduler:
    def test_runs_immediately_then_repeats(self):
        ran = threading.Event()
        calls = []

        def job():
            calls.append(1)
            if len(calls) >= 2:
                ran.set()

        scheduler = IntervalScheduler(job, interval_seconds=0.05, name="test-job", run_immediately=True)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
            assert scheduler.running
        finally:
            scheduler.shutdown(wait=True)

        assert not scheduler.running

    def test_job_errors_do_not_stop_scheduler(self):
        ran = threading.Event()
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            ran.set()

        scheduler = IntervalScheduler(flaky, interval_seconds=0.05, run_immediately=True)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=True)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            IntervalScheduler(lambda: None, interval_seconds=0)

    def test_first_run_is_not_delayed_by_long_interval(self):
        ran = threading.Event()

        scheduler = IntervalScheduler(ran.set, interval_seconds=3600, name="sweep", run_immediately=True)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=True)

    def test_shutdown_before_start_is_a_no_op(self):
        scheduler = IntervalScheduler(lambda: None, interval_seconds=60)
        scheduler.shutdown()
        assert not scheduler.running


class TestStorageFactory:
    def test_local_blob_store_without_bucket(self, share_config):
        store = BlobStoreFactory.create(share_config, gcs_config=GCSConfig(bucket_name=""))

        assert isinstance(store, LocalBlobStore)
        assert store.public_base_url == "https://api.test"

    def test_gcs_when_bucket_configured(self, share_config):
        client = Mock()

        store = BlobStoreFactory.create(
            share_config, gcs_config=GCSConfig(bucket_name="share-bucket"), gcs_client=client
        )

        assert isinstance(store, GCSBlobStore)
        client.bucket.assert_called_once_with("share-bucket")

    def test_fallback_store_location(self, share_config, tmp_path):
        assert create_fallback_store(share_config).base_path is None

        share_config.fallback_data_dir = str(tmp_path / "fallback")
        store = create_fallback_store(share_config)
        assert isinstance(store, LocalDocumentStore)
        assert store.base_path == tmp_path / "fallback"
