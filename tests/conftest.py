"""
Shared pytest fixtures and configuration for the Sharelink test suite.

This module provides:
- Hypothesis configuration for property-based testing
- A frozen clock and a synchronous executor for deterministic expiry
- In-memory backends wired into the real metadata store
- A Flask test client backed by those fakes
"""

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import HealthCheck, Phase, settings

from sharelink.application.dependency_container import build_container
from sharelink.config.settings import ShareConfig
from sharelink.domain.file_sharing import (
    FileRecord,
    LifecycleCoordinator,
    MetadataStore,
    PasswordGuard,
)
from tests.fixtures.mock_repositories import (
    FakeScheduler,
    InMemoryDocumentStore,
    RecordingBlobStore,
)

# Register Hypothesis profiles
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.load_profile("default")


START_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SynchronousExecutor(Executor):
    """Runs submitted work inline so background deletions are observable."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def executor():
    return SynchronousExecutor()


@pytest.fixture
def primary_store():
    return InMemoryDocumentStore("primary")


@pytest.fixture
def fallback_store():
    return InMemoryDocumentStore("fallback")


@pytest.fixture
def blob_store():
    return RecordingBlobStore()


@pytest.fixture(scope="session")
def password_guard():
    """bcrypt at the minimum cost; hashing is the slowest thing in the suite."""
    return PasswordGuard(rounds=10)


@pytest.fixture
def metadata_store(primary_store, fallback_store, blob_store, password_guard, clock, executor):
    return MetadataStore(
        primary_store,
        fallback_store,
        blob_store,
        password_guard,
        default_ttl_minutes=5,
        clock=clock,
        executor=executor,
    )


@pytest.fixture
def lifecycle(metadata_store, clock):
    FakeScheduler.instances.clear()
    return LifecycleCoordinator(
        metadata_store,
        min_ttl_minutes=1,
        max_ttl_minutes=120,
        default_ttl_minutes=5,
        clock=clock,
        scheduler_factory=FakeScheduler,
    )


@pytest.fixture
def make_record(clock):
    """Factory for FileRecords uploaded "now" by the frozen clock."""

    def _make(file_id="a1b2", owner_id="owner-1", **overrides):
        fields = dict(
            id=file_id,
            filename=f"{file_id}.pdf",
            original_name="report.pdf",
            size=2 * 1024 * 1024,
            mime_type="application/pdf",
            url=f"https://blobs.test/files/{file_id}.pdf",
            uploaded_at=clock(),
            owner_id=owner_id,
        )
        fields.update(overrides)
        return FileRecord(**fields)

    return _make


@pytest.fixture
def share_config(tmp_path):
    return ShareConfig(
        max_file_size=5 * 1024 * 1024,
        share_base_url="https://share.test",
        public_base_url="https://api.test",
        blob_dir=str(tmp_path / "blobs"),
    )


@pytest.fixture
def container(share_config, primary_store, fallback_store, blob_store, password_guard, clock, executor):
    FakeScheduler.instances.clear()
    return build_container(
        share_config,
        primary=primary_store,
        fallback=fallback_store,
        blob_store=blob_store,
        clock=clock,
        executor=executor,
        password_guard=password_guard,
        scheduler_factory=FakeScheduler,
    )


@pytest.fixture
def app(share_config, container):
    from sharelink.app_factory import AppConfig, create_app

    app_config = AppConfig()
    app_config.start_background_jobs = False
    app_config.celery_enabled = False
    flask_app = create_app(config=share_config, container=container, app_config=app_config)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# Pytest Configuration Hooks
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line("markers", "property: Property-based tests using Hypothesis")


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location.

    - tests/unit/* -> @pytest.mark.unit
    - tests/integration/* -> @pytest.mark.integration
    - tests/property/* -> @pytest.mark.property
    """
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path or "\\unit\\" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path or "\\integration\\" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/property/" in test_path or "\\property\\" in test_path:
            item.add_marker(pytest.mark.property)
