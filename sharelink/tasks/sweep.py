"""
Expiry sweep entry point shared by the Celery task and manual runs.
"""

import logging
from typing import Any, Dict, Optional

from ..application.dependency_container import DependencyContainer
from ..config.settings import ShareConfig
from ..domain.file_sharing import LifecycleCoordinator

logger = logging.getLogger(__name__)


def run_sweep(container: DependencyContainer, ttl_minutes: Optional[int] = None) -> Dict[str, Any]:
    """
    Run one sweep pass through the lifecycle coordinator.

    Args:
        container: Application dependency container
        ttl_minutes: TTL for records without an expiry; configured default if None

    Returns:
        dict: Sweep statistics with counts and errors
    """
    if ttl_minutes is None:
        ttl_minutes = container.resolve(ShareConfig).default_ttl_minutes

    logger.info("Starting expiry sweep")
    result = container.resolve(LifecycleCoordinator).sweep_once(ttl_minutes)
    stats = result.to_dict()

    logger.info(
        "Sweep completed - scanned: %d, expired: %d, migrated: %d, purged: %d, errors: %d",
        stats["scanned"],
        stats["expired"],
        stats["migrated"],
        stats["purged"],
        len(stats["errors"]),
    )
    if stats["errors"]:
        logger.warning("Sweep errors: %s", stats["errors"])
    return stats
