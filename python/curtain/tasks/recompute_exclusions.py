"""Celery tasks for background exclusion recomputes.

recompute_user_exclusions_job runs after unhide operations so cascades that
the removed hidden entity was holding in place are rebuilt.
recompute_all_exclusions_job is meant for periodic scheduling after a sync.

Both go through the process-wide RecomputeCoordinator. Passes for one user in
different processes still serialize on the user row lock taken by the write.
"""

from curtain.celery import celery_app
from curtain.errors import ApiError
from curtain.logging import clear_task_context, configure_task_logging, get_logger
from curtain.services.recompute import get_coordinator

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    max_retries=0,
    name="recompute_user_exclusions_job",
)
def recompute_user_exclusions_job(self, user_id: int, request_id: str | None = None) -> dict:
    """Recompute one user's exclusion set.

    Args:
        user_id: The user to recompute.
        request_id: Optional correlation ID for logging.

    Returns:
        Dict with result status and the recompute summary when it succeeded.
    """
    configure_task_logging(
        request_id=request_id,
        task_name="recompute_user_exclusions_job",
        task_id=self.request.id,
    )
    logger.info("recompute_task_started", target_user_id=user_id)

    try:
        result = get_coordinator().recompute_user(user_id)
        return {"status": "success", "result": result.model_dump(mode="json", by_alias=True)}
    except ApiError as e:
        logger.warning(
            "recompute_task_failed",
            target_user_id=user_id,
            error_code=e.code.value,
            error=e.message,
        )
        return {"status": "failed", "error_code": e.code.value, "error": e.message}
    finally:
        clear_task_context()


@celery_app.task(
    bind=True,
    max_retries=0,
    name="recompute_all_exclusions_job",
)
def recompute_all_exclusions_job(self, request_id: str | None = None) -> dict:
    """Recompute every user's exclusion set.

    Returns:
        Dict with success/failed counts and per-user errors.
    """
    configure_task_logging(
        request_id=request_id,
        task_name="recompute_all_exclusions_job",
        task_id=self.request.id,
    )

    try:
        result = get_coordinator().recompute_all()
        return result.model_dump(mode="json", by_alias=True)
    finally:
        clear_task_context()
