"""
Cleanup Task

Celery beat task running the expiry sweep. Thin wrapper that delegates to
the lifecycle coordinator through the dependency container.
"""

import logging

from ..celery_app import celery_app, flask_app
from ..config.celery_config import SWEEP_TASK_NAME
from .sweep import run_sweep

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name=SWEEP_TASK_NAME)
def sweep_expired_files(self, ttl_minutes=None):
    """
    Periodic task deleting expired files and migrating legacy passwords.

    Returns:
        dict: Sweep statistics with counts and errors
    """
    return run_sweep(flask_app.container, ttl_minutes)
