"""
Unit tests for MetadataStore.

Covers the dual-backend write/read paths, ownership checks, lazy expiry
and legacy password handling, against in-memory backends.
"""

import logging
from datetime import timedelta

import pytest

from sharelink.domain.errors import (
    BackendUnavailableError,
    EmptyInputError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from sharelink.domain.file_sharing import (
    BackendSelector,
    FileRecord,
    HashedPassword,
    LegacyPlaintextPassword,
)
from tests.fixtures.mock_repositories import find_document


class TestPut:
    def test_put_then_get_returns_record_with_default_expiry(self, metadata_store, make_record, clock):
        stored = metadata_store.put(make_record())

        fetched = metadata_store.get_by_id("a1b2")

        assert fetched == stored
        assert fetched.expires_at == clock() + timedelta(minutes=5)
        assert fetched.expires_at > fetched.uploaded_at
        assert fetched.download_count == 0

    def test_put_keeps_explicit_expiry(self, metadata_store, make_record, clock):
        expiry = clock() + timedelta(minutes=30)
        stored = metadata_store.put(make_record(expires_at=expiry))
        assert stored.expires_at == expiry

    def test_put_writes_primary_only_when_healthy(self, metadata_store, make_record, primary_store, fallback_store):
        metadata_store.put(make_record())

        assert find_document(primary_store, "a1b2") is not None
        assert find_document(fallback_store, "a1b2") is None

    def test_password_is_hashed_before_storage(self, metadata_store, make_record, primary_store, password_guard):
        metadata_store.put(make_record(), password="s3cret")

        document = find_document(primary_store, "a1b2")
        assert document["passwordProtected"] is True
        assert document["passwordHash"].startswith("$2")
        assert document["passwordHash"] != "s3cret"
        assert password_guard.verify("s3cret", document["passwordHash"])

    def test_existing_hash_is_not_rehashed(self, metadata_store, make_record, primary_store, password_guard):
        hashed = password_guard.hash("s3cret")
        metadata_store.put(make_record(), password=hashed)
        assert find_document(primary_store, "a1b2")["passwordHash"] == hashed

    def test_marker_prefixed_password_is_hashed(self, metadata_store, make_record, primary_store):
        metadata_store.put(make_record(), password="$2secret")

        assert find_document(primary_store, "a1b2")["passwordHash"] != "$2secret"
        assert metadata_store.verify_file_password(metadata_store.get_by_id("a1b2"), "$2secret")

    def test_legacy_plaintext_on_record_is_hashed_on_write(self, metadata_store, make_record, primary_store):
        metadata_store.put(make_record(password=LegacyPlaintextPassword("abcd")))
        assert find_document(primary_store, "a1b2")["passwordHash"].startswith("$2")

    def test_empty_password_rejected(self, metadata_store, make_record):
        with pytest.raises(EmptyInputError):
            metadata_store.put(make_record(), password="")

    def test_primary_failure_falls_back_and_reads_back(self, metadata_store, make_record, primary_store, fallback_store):
        primary_store.fail_on.add("put")

        metadata_store.put(make_record())

        assert find_document(primary_store, "a1b2") is None
        assert find_document(fallback_store, "a1b2") is not None
        assert metadata_store.get_by_id("a1b2").id == "a1b2"

    def test_both_backends_down_raises(self, metadata_store, make_record, primary_store, fallback_store):
        primary_store.available = False
        fallback_store.available = False

        with pytest.raises(BackendUnavailableError):
            metadata_store.put(make_record())


class TestGet:
    def test_unknown_id_is_not_found(self, metadata_store):
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("zzzz")

    def test_primary_wins_over_fallback(self, metadata_store, make_record, primary_store, fallback_store):
        fallback_store.put("files", "a1b2", make_record(original_name="old.pdf").to_document())
        primary_store.put("files", "a1b2", make_record(original_name="new.pdf").to_document())

        assert metadata_store.get_by_id("a1b2").original_name == "new.pdf"

    def test_primary_outage_reads_fallback(self, metadata_store, make_record, primary_store, fallback_store):
        fallback_store.put("files", "a1b2", make_record().to_document())
        primary_store.available = False

        assert metadata_store.get_by_id("a1b2").id == "a1b2"

    def test_unreadable_document_is_not_found(self, metadata_store, primary_store):
        primary_store.put("files", "bad1", {"id": "bad1"})
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("bad1")


class TestLazyExpiry:
    def test_expired_read_is_not_found_and_deletes_once(
        self, metadata_store, make_record, clock, blob_store, primary_store, fallback_store
    ):
        record = metadata_store.put(make_record())
        clock.advance(minutes=6)

        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")

        assert blob_store.deleted == [record.url]
        assert find_document(primary_store, "a1b2") is None
        assert find_document(fallback_store, "a1b2") is None

    def test_record_is_live_until_expiry_instant(self, metadata_store, make_record, clock):
        metadata_store.put(make_record())
        clock.advance(minutes=4, seconds=59)
        assert metadata_store.get_by_id("a1b2").id == "a1b2"
        clock.advance(seconds=1)
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")

    def test_pending_expiry_is_deduplicated(self, metadata_store, make_record, clock):
        class DeferredExecutor:
            def __init__(self):
                self.jobs = []

            def submit(self, fn, *args):
                self.jobs.append((fn, args))

        deferred = DeferredExecutor()
        metadata_store.executor = deferred
        metadata_store.put(make_record())
        clock.advance(minutes=10)

        for _ in range(3):
            with pytest.raises(NotFoundError):
                metadata_store.get_by_id("a1b2")

        assert len(deferred.jobs) == 1

    def test_blob_failure_still_removes_metadata(
        self, metadata_store, make_record, clock, blob_store, primary_store, caplog
    ):
        metadata_store.put(make_record())
        blob_store.fail_delete = True
        clock.advance(minutes=6)

        with caplog.at_level(logging.WARNING):
            with pytest.raises(NotFoundError):
                metadata_store.get_by_id("a1b2")

        assert find_document(primary_store, "a1b2") is None
        assert "Storage inconsistency" in caplog.text


class TestUpdate:
    def test_owner_can_rename(self, metadata_store, make_record):
        metadata_store.put(make_record())

        updated = metadata_store.update("a1b2", {"originalName": "  final.pdf "}, "owner-1")

        assert updated.original_name == "final.pdf"
        assert metadata_store.get_by_id("a1b2").original_name == "final.pdf"

    def test_owner_can_set_expiry_from_string(self, metadata_store, make_record, clock):
        metadata_store.put(make_record())
        target = clock() + timedelta(hours=1)

        updated = metadata_store.update(
            "a1b2", {"expiresAt": target.isoformat().replace("+00:00", "Z")}, "owner-1"
        )

        assert updated.expires_at == target

    def test_non_owner_is_rejected(self, metadata_store, make_record):
        metadata_store.put(make_record())
        with pytest.raises(UnauthorizedError):
            metadata_store.update("a1b2", {"originalName": "x.pdf"}, "intruder")
        assert metadata_store.get_by_id("a1b2").original_name == "report.pdf"

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"size": 1},
            {"ownerId": "someone-else"},
            {"originalName": ""},
            {"originalName": 42},
            {"expiresAt": "tomorrow"},
            {"expiresAt": None},
        ],
    )
    def test_invalid_fields_rejected(self, metadata_store, make_record, fields):
        metadata_store.put(make_record())
        with pytest.raises(ValidationError):
            metadata_store.update("a1b2", fields, "owner-1")

    def test_update_of_missing_record(self, metadata_store):
        with pytest.raises(NotFoundError):
            metadata_store.update("zzzz", {"originalName": "x"}, "owner-1")

    def test_update_stays_in_fallback_for_fallback_records(
        self, metadata_store, make_record, primary_store, fallback_store, clock
    ):
        record = make_record(expires_at=clock() + timedelta(minutes=5))
        fallback_store.put("files", "a1b2", record.to_document())

        metadata_store.update("a1b2", {"originalName": "moved.pdf"}, "owner-1")

        assert find_document(fallback_store, "a1b2")["originalName"] == "moved.pdf"
        assert find_document(primary_store, "a1b2") is None


class TestDownloadCount:
    def test_two_increments(self, metadata_store, make_record):
        metadata_store.put(make_record())

        assert metadata_store.increment_download_count("a1b2") == 1
        assert metadata_store.increment_download_count("a1b2") == 2
        assert metadata_store.get_by_id("a1b2").download_count == 2

    def test_increment_on_expired_record(self, metadata_store, make_record, clock):
        metadata_store.put(make_record())
        clock.advance(minutes=6)
        with pytest.raises(NotFoundError):
            metadata_store.increment_download_count("a1b2")


class TestDelete:
    def test_owner_delete_removes_blob_and_metadata(self, metadata_store, make_record, blob_store):
        record = metadata_store.put(make_record())

        assert metadata_store.delete("a1b2", "owner-1") is True

        assert blob_store.deleted == [record.url]
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")

    def test_non_owner_delete_returns_false_and_keeps_record(self, metadata_store, make_record, blob_store):
        metadata_store.put(make_record())

        assert metadata_store.delete("a1b2", "intruder") is False

        assert blob_store.deleted == []
        assert metadata_store.get_by_id("a1b2").id == "a1b2"

    def test_missing_record_returns_false(self, metadata_store):
        assert metadata_store.delete("zzzz", "owner-1") is False

    def test_delete_clears_both_backends(self, metadata_store, make_record, primary_store, fallback_store):
        document = metadata_store.put(make_record()).to_document()
        fallback_store.put("files", "a1b2", document)

        assert metadata_store.delete("a1b2", "owner-1") is True

        assert find_document(primary_store, "a1b2") is None
        assert find_document(fallback_store, "a1b2") is None

    def test_metadata_removal_failure_returns_false(
        self, metadata_store, make_record, primary_store, fallback_store
    ):
        metadata_store.put(make_record())
        primary_store.fail_on.add("delete")
        fallback_store.fail_on.add("delete")

        assert metadata_store.delete("a1b2", "owner-1") is False

    def test_blob_transport_error_does_not_block_delete(
        self, metadata_store, make_record, blob_store, primary_store, caplog
    ):
        metadata_store.put(make_record())
        blob_store.delete_error = ConnectionError("connection reset by GCS")

        with caplog.at_level(logging.WARNING):
            assert metadata_store.delete("a1b2", "owner-1") is True

        assert find_document(primary_store, "a1b2") is None
        assert "Storage inconsistency" in caplog.text

    def test_expire_survives_unexpected_blob_error(self, metadata_store, make_record, blob_store):
        record = metadata_store.put(make_record())
        blob_store.delete_error = RuntimeError("boom")

        assert metadata_store.expire(record) is True
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")


class TestDeleteDuringPrimaryOutage:
    @pytest.fixture
    def ticks(self, metadata_store, primary_store, fallback_store):
        """Controls the selector's cooldown clock."""
        now = [0.0]
        metadata_store.selector = BackendSelector(
            primary_store, fallback_store, cooldown_seconds=30, monotonic=lambda: now[0]
        )
        return now

    def test_delete_in_cooldown_still_removes_primary_copy(
        self, metadata_store, make_record, primary_store, fallback_store, ticks, monkeypatch
    ):
        metadata_store.put(make_record())
        # Increment lands in the fallback and marks the primary down
        primary_store.fail_on.add("put")
        monkeypatch.setattr(primary_store, "ping", lambda: False)
        metadata_store.increment_download_count("a1b2")
        assert find_document(fallback_store, "a1b2") is not None

        primary_store.fail_on.clear()
        monkeypatch.undo()
        assert metadata_store.delete("a1b2", "owner-1") is True

        ticks[0] += 31
        assert find_document(primary_store, "a1b2") is None
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")

    def test_unreachable_primary_is_tombstoned_until_sweep(
        self, metadata_store, lifecycle, make_record, primary_store, fallback_store, ticks
    ):
        document = metadata_store.put(make_record()).to_document()
        fallback_store.put("files", "a1b2", document)
        primary_store.available = False

        assert metadata_store.delete("a1b2", "owner-1") is True

        # Primary is back with its stale copy
        primary_store.available = True
        ticks[0] += 31
        assert find_document(primary_store, "a1b2") is not None
        with pytest.raises(NotFoundError):
            metadata_store.get_by_id("a1b2")
        assert metadata_store.list_by_owner("owner-1") == []
        assert metadata_store.id_exists("a1b2")

        result = lifecycle.sweep_once()

        assert result.purged == 1
        assert find_document(primary_store, "a1b2") is None
        assert fallback_store.documents("tombstones") == {}
        assert not metadata_store.id_exists("a1b2")

    def test_tombstone_survives_failed_purge(
        self, metadata_store, make_record, primary_store, fallback_store, ticks
    ):
        metadata_store.put(make_record())
        fallback_store.put("files", "a1b2", find_document(primary_store, "a1b2"))
        primary_store.fail_on.add("delete")

        metadata_store.delete("a1b2", "owner-1")

        assert metadata_store.purge_tombstones() == 0
        assert "a1b2" in fallback_store.documents("tombstones")


class TestListByOwner:
    def test_lists_only_owner_records_newest_first(self, metadata_store, make_record, clock):
        metadata_store.put(make_record("aaaa"))
        clock.advance(seconds=10)
        metadata_store.put(make_record("bbbb", uploaded_at=clock()))
        metadata_store.put(make_record("cccc", owner_id="owner-2", uploaded_at=clock()))

        records = metadata_store.list_by_owner("owner-1")

        assert [r.id for r in records] == ["bbbb", "aaaa"]

    def test_merges_backends_with_primary_winning(
        self, metadata_store, make_record, primary_store, fallback_store, clock
    ):
        expiry = clock() + timedelta(minutes=5)
        primary_store.put("files", "aaaa", make_record("aaaa", original_name="primary.pdf", expires_at=expiry).to_document())
        fallback_store.put("files", "aaaa", make_record("aaaa", original_name="stale.pdf", expires_at=expiry).to_document())
        fallback_store.put("files", "bbbb", make_record("bbbb", expires_at=expiry).to_document())

        records = {r.id: r for r in metadata_store.list_by_owner("owner-1")}

        assert set(records) == {"aaaa", "bbbb"}
        assert records["aaaa"].original_name == "primary.pdf"

    def test_matches_legacy_user_id_field(self, metadata_store, primary_store, clock):
        primary_store.put(
            "files",
            "old1",
            {
                "id": "old1",
                "filename": "old1.txt",
                "originalName": "old.txt",
                "size": 3,
                "type": "text/plain",
                "url": "https://blobs.test/files/old1.txt",
                "uploadedAt": clock().isoformat(),
                "expiresAt": (clock() + timedelta(minutes=5)).isoformat(),
                "userId": "owner-1",
            },
        )

        assert [r.id for r in metadata_store.list_by_owner("owner-1")] == ["old1"]

    def test_expired_records_are_dropped_and_deleted(self, metadata_store, make_record, clock, blob_store):
        metadata_store.put(make_record("aaaa"))
        clock.advance(minutes=3)
        metadata_store.put(make_record("bbbb", uploaded_at=clock()))
        clock.advance(minutes=3)

        records = metadata_store.list_by_owner("owner-1")

        assert [r.id for r in records] == ["bbbb"]
        assert blob_store.deleted == ["https://blobs.test/files/aaaa.pdf"]

    def test_unknown_owner_gets_empty_list(self, metadata_store):
        assert metadata_store.list_by_owner("nobody") == []


class TestPasswords:
    def test_unprotected_record_always_verifies(self, metadata_store, make_record):
        record = metadata_store.put(make_record())
        assert metadata_store.verify_file_password(record, "") is True

    def test_hashed_password_verification(self, metadata_store, make_record):
        record = metadata_store.put(make_record(), password="s3cret")

        assert metadata_store.verify_file_password(record, "s3cret") is True
        assert metadata_store.verify_file_password(record, "wrong") is False

    def test_legacy_password_is_upgraded_on_success(self, metadata_store, make_record, primary_store):
        legacy = make_record(
            password=LegacyPlaintextPassword("abcd"),
            expires_at=make_record().uploaded_at + timedelta(minutes=5),
        )
        primary_store.put("files", "a1b2", legacy.to_document())
        record = metadata_store.get_by_id("a1b2")

        assert metadata_store.verify_file_password(record, "abcd") is True

        stored = metadata_store.get_by_id("a1b2")
        assert isinstance(stored.password, HashedPassword)
        assert metadata_store.verify_file_password(stored, "abcd") is True

    def test_legacy_password_not_upgraded_on_failure(self, metadata_store, make_record, primary_store):
        legacy = make_record(
            password=LegacyPlaintextPassword("abcd"),
            expires_at=make_record().uploaded_at + timedelta(minutes=5),
        )
        primary_store.put("files", "a1b2", legacy.to_document())
        record = metadata_store.get_by_id("a1b2")

        assert metadata_store.verify_file_password(record, "nope") is False
        assert find_document(primary_store, "a1b2")["passwordHash"] == "abcd"

    def test_migrate_legacy_password(self, metadata_store, make_record, primary_store):
        legacy = make_record(
            password=LegacyPlaintextPassword("abcd"),
            expires_at=make_record().uploaded_at + timedelta(minutes=5),
        )
        primary_store.put("files", "a1b2", legacy.to_document())

        assert metadata_store.migrate_legacy_password(legacy) is True
        assert find_document(primary_store, "a1b2")["passwordHash"].startswith("$2")
        assert metadata_store.migrate_legacy_password(make_record()) is False


class TestEnumeration:
    def test_all_records_includes_expired(self, metadata_store, make_record, clock):
        metadata_store.put(make_record("aaaa"))
        clock.advance(minutes=10)

        assert [r.id for r in metadata_store.all_records()] == ["aaaa"]

    def test_id_exists_checks_both_backends(self, metadata_store, make_record, fallback_store):
        fallback_store.put("files", "ffff", make_record("ffff").to_document())

        assert metadata_store.id_exists("ffff")
        assert not metadata_store.id_exists("zzzz")


def test_from_document_round_trip_of_stored_record(metadata_store, make_record, primary_store):
    stored = metadata_store.put(make_record(), password="s3cret")
    assert FileRecord.from_document(find_document(primary_store, "a1b2")) == stored
