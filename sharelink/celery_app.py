"""
Celery Application Instance

Creates the Celery app instance for use by workers and the beat scheduler.
The sweep runs as a beat task here, so the in-process timers stay off.
"""

from .app_factory import AppConfig, create_app

_app_config = AppConfig()
_app_config.start_background_jobs = False
_app_config.celery_enabled = True

flask_app = create_app(app_config=_app_config)

celery_app = flask_app.celery

# Task modules are imported by the worker at startup, after celery_app exists
celery_app.conf.imports = ("sharelink.tasks.cleanup_task",)
