"""Celery application configuration.

Central configuration for Celery used by both API (for enqueuing)
and worker (for executing tasks).

Usage:
    from curtain.celery import celery_app

    # Enqueue task:
    celery_app.send_task("recompute_user_exclusions_job", args=[user_id])

    # Or import task directly:
    from curtain.tasks import recompute_user_exclusions_job
    recompute_user_exclusions_job.apply_async(args=[user_id], queue="recompute")
"""

from celery import Celery

from curtain.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery("curtain")

# Configure from settings
celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

# Task configuration
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

# Recompute tasks use a dedicated queue
celery_app.conf.task_routes = {
    "recompute_user_exclusions_job": {"queue": "recompute"},
    "recompute_all_exclusions_job": {"queue": "recompute"},
}

# Default queue
celery_app.conf.task_default_queue = "default"

