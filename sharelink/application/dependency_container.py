"""
Dependency Injection Container

Manages service lifecycles and wires the store handles into the core
once, at process startup.
"""

import logging
import threading
from concurrent.futures import Executor
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from ..config.settings import ShareConfig
from ..domain.file_sharing import (
    BackendSelector,
    IBlobStore,
    IDocumentStore,
    LifecycleCoordinator,
    MetadataStore,
    PasswordGuard,
    utc_now,
)
from ..domain.rate_limiting import RateLimitManager
from ..infrastructure.in_memory_rate_limit_repository import InMemoryRateLimitRepository
from ..infrastructure.scheduler import IntervalScheduler
from .file_service import FileService
from .rate_limit_service import RateLimitService
from .upload_service import UploadService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DependencyNotFoundError(Exception):
    """Raised when attempting to resolve an unregistered dependency."""


class DependencyContainer:
    """
    Dependency injection container for managing service lifecycles.

    Supports singleton (single instance) and transient (factory-created)
    registration patterns. Thread-safe for concurrent access.
    """

    def __init__(self):
        self._singletons: Dict[Type, Any] = {}
        self._transients: Dict[Type, Callable[[], Any]] = {}
        self._overrides: Dict[Type, Any] = {}
        self._lock = threading.Lock()

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        """
        Register a singleton service (single instance shared across all resolutions).

        Args:
            interface: The interface or class type to register
            implementation: The concrete instance to use
        """
        with self._lock:
            self._singletons[interface] = implementation
            logger.debug("Registered singleton: %s", interface.__name__)

    def register_transient(self, interface: Type[T], factory: Callable[[], T]) -> None:
        with self._lock:
            self._transients[interface] = factory
            logger.debug("Registered transient: %s", interface.__name__)

    def resolve(self, interface: Type[T]) -> T:
        """
        Resolve a registered service.

        Raises:
            DependencyNotFoundError: If the interface is not registered
        """
        with self._lock:
            if interface in self._overrides:
                return self._overrides[interface]
            if interface in self._singletons:
                return self._singletons[interface]
            if interface not in self._transients:
                raise DependencyNotFoundError(
                    f"No registration found for type: {interface.__name__}"
                )
            factory = self._transients[interface]

        # Factory runs outside the lock so it may resolve other dependencies
        return factory()

    def override(self, interface: Type[T], implementation: T) -> None:
        """Override a registered service (primarily for testing)."""
        with self._lock:
            self._overrides[interface] = implementation

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()

    def is_registered(self, interface: Type) -> bool:
        with self._lock:
            return (
                interface in self._singletons
                or interface in self._transients
                or interface in self._overrides
            )


def build_container(
    config: ShareConfig,
    *,
    primary: IDocumentStore,
    fallback: IDocumentStore,
    blob_store: IBlobStore,
    clock: Callable[[], datetime] = utc_now,
    executor: Optional[Executor] = None,
    password_guard: Optional[PasswordGuard] = None,
    scheduler_factory: Callable[..., Any] = IntervalScheduler,
) -> DependencyContainer:
    """
    Wire the core services from explicit store handles.

    Args:
        config: Application configuration
        primary: Primary document store
        fallback: Local fallback document store
        blob_store: File content storage
        clock: Returns the current aware UTC datetime
        executor: Runs background deletions
        password_guard: Password hashing; built from config when omitted
        scheduler_factory: Builds background schedulers

    Returns:
        Container with every service registered as a singleton
    """
    container = DependencyContainer()

    password_guard = password_guard or PasswordGuard(rounds=config.password_hash_rounds)
    selector = BackendSelector(
        primary, fallback, cooldown_seconds=config.primary_retry_cooldown_seconds
    )
    metadata_store = MetadataStore(
        primary,
        fallback,
        blob_store,
        password_guard,
        default_ttl_minutes=config.default_ttl_minutes,
        clock=clock,
        executor=executor,
        selector=selector,
    )
    lifecycle = LifecycleCoordinator(
        metadata_store,
        min_ttl_minutes=config.min_ttl_minutes,
        max_ttl_minutes=config.max_ttl_minutes,
        default_ttl_minutes=config.default_ttl_minutes,
        clock=clock,
        scheduler_factory=scheduler_factory,
    )
    rate_limit_manager = RateLimitManager(
        InMemoryRateLimitRepository(),
        clock=clock,
        grace_seconds=config.rate_limit_grace_seconds,
    )

    container.register_singleton(ShareConfig, config)
    container.register_singleton(IBlobStore, blob_store)
    container.register_singleton(BackendSelector, selector)
    container.register_singleton(PasswordGuard, password_guard)
    container.register_singleton(MetadataStore, metadata_store)
    container.register_singleton(LifecycleCoordinator, lifecycle)
    container.register_singleton(RateLimitManager, rate_limit_manager)
    container.register_singleton(
        RateLimitService,
        RateLimitService(rate_limit_manager, config, scheduler_factory=scheduler_factory),
    )
    container.register_singleton(
        UploadService,
        UploadService(metadata_store, lifecycle, blob_store, config, clock=clock),
    )
    container.register_singleton(FileService, FileService(metadata_store, lifecycle, config))

    logger.debug("Dependency container built")
    return container
