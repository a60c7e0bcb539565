"""
Expiry Sweep Integration Tests

Runs the sweep entry point through a fully wired container with the local
fallback store on disk.
"""

from datetime import timedelta

import pytest

from sharelink.application.dependency_container import build_container
from sharelink.application.upload_service import UploadService
from sharelink.domain.file_sharing import LegacyPlaintextPassword, MetadataStore
from sharelink.infrastructure.local_blob_store import LocalBlobStore
from sharelink.infrastructure.local_document_store import LocalDocumentStore
from sharelink.tasks.sweep import run_sweep
from tests.fixtures.mock_repositories import FakeScheduler


@pytest.fixture
def disk_container(share_config, tmp_path, password_guard, clock, executor):
    blob_store = LocalBlobStore(tmp_path / "blobs", public_base_url=share_config.public_base_url)
    container = build_container(
        share_config,
        primary=LocalDocumentStore(tmp_path / "primary"),
        fallback=LocalDocumentStore(tmp_path / "fallback"),
        blob_store=blob_store,
        clock=clock,
        executor=executor,
        password_guard=password_guard,
        scheduler_factory=FakeScheduler,
    )
    return container, blob_store


def test_sweep_removes_expired_blobs_and_records(disk_container, clock):
    container, blob_store = disk_container
    uploads = container.resolve(UploadService)
    short = uploads.upload(b"short-lived", "a.txt", "owner-1", ttl_minutes=1)
    long = uploads.upload(b"long-lived", "b.txt", "owner-1", ttl_minutes=60)
    clock.advance(minutes=2)

    stats = run_sweep(container)

    assert stats["expired"] == 1
    assert stats["errors"] == []
    assert not blob_store.path_for(short.filename).exists()
    assert blob_store.path_for(long.filename).read_bytes() == b"long-lived"


def test_sweep_migrates_legacy_passwords(disk_container, make_record, clock):
    container, _ = disk_container
    metadata_store = container.resolve(MetadataStore)
    legacy = make_record(password=LegacyPlaintextPassword("abcd"), expires_at=clock() + timedelta(minutes=5))
    metadata_store.primary.put("files", legacy.id, legacy.to_document())

    stats = run_sweep(container)

    assert stats["migrated"] == 1
    migrated = metadata_store.get_by_id(legacy.id)
    assert migrated.password_hash.startswith("$2")
    assert metadata_store.verify_file_password(migrated, "abcd")
