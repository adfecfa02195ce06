"""Celery worker entrypoint.

Run with: celery -A apps.worker.main:celery_app worker -Q recompute,default --loglevel=info

This module imports the Celery app and explicitly registers all tasks.
Task definitions are in the curtain.tasks package - no autodiscovery.

Queue Configuration:
- recompute: per-user and all-user exclusion recomputes
- default: general background tasks

Recompute-all fans out on its own thread pool (RECOMPUTE_MAX_WORKERS), so a
worker concurrency of 1 on the recompute queue is enough.
"""

from celery.signals import worker_process_init

from curtain.celery import celery_app
from curtain.config import get_settings
from curtain.logging import configure_logging, get_logger

# Import tasks to register them with Celery
from curtain.tasks import recompute_all_exclusions_job, recompute_user_exclusions_job  # noqa: F401


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when the worker process starts."""
    configure_logging(json_format=get_settings().log_json)
    logger = get_logger(__name__)
    logger.info("celery_worker_started", queue="recompute")


# Export celery_app for Celery to find
__all__ = ["celery_app"]
