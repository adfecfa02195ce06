"""Celery tasks for Curtain.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.

Usage in API (enqueue):
    from curtain.tasks import recompute_user_exclusions_job
    recompute_user_exclusions_job.apply_async(
        args=[user_id],
        kwargs={"request_id": request_id},
    )
"""

from curtain.tasks.recompute_exclusions import (
    recompute_all_exclusions_job,
    recompute_user_exclusions_job,
)

__all__ = ["recompute_user_exclusions_job", "recompute_all_exclusions_job"]
