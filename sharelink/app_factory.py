"""
Application Factory

Creates and configures the Flask application. Store handles are built once
here and injected into the core through the dependency container.
"""

import logging
import os
from typing import Optional

from flask import Flask, abort, jsonify, request, send_from_directory
from flask_cors import CORS

from .application.dependency_container import DependencyContainer, build_container
from .application.rate_limit_service import RateLimitService
from .config.celery_config import make_celery
from .config.logging_config import configure_logging
from .config.redis_config import RedisConfig, create_redis_manager
from .config.settings import ShareConfig
from .domain.file_sharing import (
    BackendSelector,
    IBlobStore,
    LifecycleCoordinator,
    MetadataStore,
)
from .infrastructure.local_blob_store import LocalBlobStore
from .infrastructure.redis_document_store import RedisDocumentStore
from .infrastructure.storage_factory import BlobStoreFactory, create_fallback_store

logger = logging.getLogger(__name__)

# Multipart framing on top of the largest allowed file
UPLOAD_OVERHEAD_BYTES = 1024 * 1024


class AppConfig:
    """Process-level settings that are not part of the sharing rules."""

    def __init__(self):
        self.api_version = os.getenv("API_VERSION", "v1")
        self.flask_env = os.getenv("FLASK_ENV", "development")
        self.is_production = self.flask_env == "production"
        self.start_background_jobs = (
            os.getenv("START_BACKGROUND_JOBS", "true").lower() == "true"
        )
        self.celery_enabled = os.getenv("CELERY_ENABLED", "true").lower() == "true"


def create_app(
    config: Optional[ShareConfig] = None,
    container: Optional[DependencyContainer] = None,
    app_config: Optional[AppConfig] = None,
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Sharing configuration, read from the environment if None
        container: Prebuilt dependency container (tests pass one with fakes)
        app_config: Process-level settings, read from the environment if None

    Returns:
        Configured Flask application
    """
    configure_logging()
    if config is None:
        config = ShareConfig.from_env()
    if app_config is None:
        app_config = AppConfig()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_file_size + UPLOAD_OVERHEAD_BYTES
    app.config["SHARE_CONFIG"] = config

    CORS(
        app,
        resources={
            r"/*": {
                "origins": "*",
                "methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
                "allow_headers": ["Content-Type", "X-Session-Id", "X-File-Password"],
                "expose_headers": [
                    "X-Session-Id",
                    "X-RateLimit-Limit",
                    "X-RateLimit-Remaining",
                    "X-RateLimit-Reset",
                    "Retry-After",
                ],
                "max_age": 3600,
            }
        },
    )

    if container is None:
        container = _build_default_container(config)
    app.container = container

    if app_config.celery_enabled:
        app.celery = make_celery(app)
    else:
        app.celery = None

    _register_blueprints(app, app_config)
    _register_blob_route(app)
    _register_health_endpoint(app)

    if app_config.start_background_jobs:
        _start_background_jobs(container, config)

    return app


def _build_default_container(config: ShareConfig) -> DependencyContainer:
    """
    Build the production container: Redis primary, local fallback, GCS or
    local blobs.
    """
    redis_config = RedisConfig()
    redis_manager = create_redis_manager(redis_config)
    primary = RedisDocumentStore(redis_manager.client, key_prefix=redis_config.key_prefix)
    fallback = create_fallback_store(config)
    blob_store = BlobStoreFactory.create(config)
    logger.info(
        "Metadata backends: primary=%s (%s:%s) fallback=%s",
        primary.name,
        redis_config.host,
        redis_config.port,
        fallback.name,
    )
    return build_container(config, primary=primary, fallback=fallback, blob_store=blob_store)


def _start_background_jobs(container: DependencyContainer, config: ShareConfig) -> None:
    if config.sweep_enabled:
        container.resolve(LifecycleCoordinator).start_sweep(
            config.sweep_interval_minutes, config.default_ttl_minutes
        )
    if config.rate_limit_enabled:
        container.resolve(RateLimitService).start_reaper()


def _register_blueprints(app: Flask, app_config: AppConfig) -> None:
    from .api.v1 import api_v1_bp

    app.register_blueprint(api_v1_bp)
    logger.info(
        "API %s registered at /api/%s with Swagger UI at /api/%s/docs",
        app_config.api_version,
        app_config.api_version,
        app_config.api_version,
    )


def _register_blob_route(app: Flask) -> None:
    """
    Serve blobs written by the local blob store.

    A ``name`` query parameter turns the response into an attachment with
    that download name.
    """

    @app.route("/blobs/<path:filename>", methods=["GET"])
    def serve_blob(filename):
        blob_store = app.container.resolve(IBlobStore)
        if not isinstance(blob_store, LocalBlobStore) or blob_store.path_for(filename) is None:
            abort(404)
        download_name = request.args.get("name") or None
        return send_from_directory(
            blob_store.base_path,
            filename,
            as_attachment=download_name is not None,
            download_name=download_name,
        )


def _get_health_status(app: Flask) -> tuple[dict, int]:
    """
    Get health status of the metadata and blob backends.

    The service stays up while the fallback and blob store answer, so a
    primary outage reports ``degraded`` with HTTP 200.

    Returns:
        Tuple of (health_status_dict, http_status_code)
    """
    selector = app.container.resolve(BackendSelector)
    blob_store = app.container.resolve(IBlobStore)

    primary_ok = selector.primary.ping()
    fallback_ok = selector.fallback.ping()
    blob_ok = blob_store.ping()

    health_status = {
        "status": "ok" if primary_ok and fallback_ok and blob_ok else "degraded",
        "primary": {"backend": selector.primary.name, "status": "ok" if primary_ok else "down"},
        "fallback": {"backend": selector.fallback.name, "status": "ok" if fallback_ok else "down"},
        "blobs": {"backend": blob_store.name, "status": "ok" if blob_ok else "down"},
        "celery": "available" if getattr(app, "celery", None) is not None else "disabled",
    }

    serving = (primary_ok or fallback_ok) and blob_ok
    return health_status, 200 if serving else 503


def _register_health_endpoint(app: Flask) -> None:
    @app.route("/health", methods=["GET"])
    def health():
        """Overall health of the application and its backends."""
        health_status, status_code = _get_health_status(app)
        return jsonify(health_status), status_code


def shutdown_app(app: Flask) -> None:
    """Stop background schedulers and the deletion executor."""
    container = app.container
    container.resolve(LifecycleCoordinator).stop_sweep()
    container.resolve(RateLimitService).stop_reaper()
    container.resolve(MetadataStore).shutdown()
