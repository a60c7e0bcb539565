"""
Configuration

Environment-driven settings for the application, Redis, GCS and Celery.
"""

from .settings import ShareConfig

__all__ = ["ShareConfig"]
