"""Recompute coordinator.

Runs exclusion recomputes for one user or for every user.

Concurrency:
- Passes for the same user are serialized by a per-user lock. A second
  caller blocks until the first pass commits, then runs its own pass.
- Across processes (API and Celery workers), the write transaction locks the
  user row, so overlapping passes commit one after the other.
- recompute_all fans out across users on a bounded thread pool. Each worker
  opens its own database session.
- A single user's failure inside recompute_all is recorded and never raised.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from sqlalchemy.orm import Session, sessionmaker

from curtain.config import Environment, get_settings
from curtain.db.session import get_session_factory
from curtain.errors import ApiError
from curtain.logging import get_logger
from curtain.schemas.exclusions import RecomputeAllOut, RecomputeFailureOut, RecomputeResultOut
from curtain.services.catalog import EntityCatalog, SqlEntityCatalog, require_catalog
from curtain.services.exclusions import recompute_user_exclusions
from curtain.services.users import list_user_ids

logger = get_logger(__name__)


class RecomputeCoordinator:
    """Serializes and fans out exclusion recomputes.

    Args:
        session_factory: Creates one session per pass.
        catalog: Entity catalog shared by every pass. None means not configured.
        max_workers: Users recomputed in parallel by recompute_all.
        timeout_s: Optional wall-clock budget per user pass.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        catalog: EntityCatalog | None,
        max_workers: int = 4,
        timeout_s: float | None = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.max_workers = max(1, max_workers)
        self.timeout_s = timeout_s
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    def recompute_user(self, user_id: int) -> RecomputeResultOut:
        """Recompute and materialize one user's exclusion set.

        Raises:
            NotFoundError(E_USER_NOT_FOUND): Unknown user.
            CatalogNotReadyError: No catalog configured.
            CatalogUnavailableError: Catalog enumeration failed; nothing written.
            RecomputeTimeoutError: Budget exceeded; nothing written.
        """
        with self._lock_for(user_id):
            db = self.session_factory()
            try:
                return recompute_user_exclusions(db, self.catalog, user_id, self.timeout_s)
            finally:
                db.close()

    def recompute_all(self) -> RecomputeAllOut:
        """Recompute every user, collecting per-user failures.

        Raises:
            CatalogNotReadyError: No catalog configured.
        """
        require_catalog(self.catalog)

        db = self.session_factory()
        try:
            user_ids = list_user_ids(db)
        finally:
            db.close()

        logger.info("recompute_all_started", user_count=len(user_ids), workers=self.max_workers)

        success = 0
        errors: list[RecomputeFailureOut] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.recompute_user, uid): uid for uid in user_ids}
            for future in as_completed(futures):
                user_id = futures[future]
                try:
                    future.result()
                    success += 1
                except Exception as e:
                    message = e.message if isinstance(e, ApiError) else str(e)
                    errors.append(RecomputeFailureOut(user_id=user_id, error=message))
                    logger.warning(
                        "recompute_user_failed",
                        target_user_id=user_id,
                        error_type=type(e).__name__,
                        error=message,
                    )

        errors.sort(key=lambda failure: failure.user_id)
        logger.info("recompute_all_completed", success=success, failed=len(errors))
        return RecomputeAllOut(success=success, failed=len(errors), errors=errors)


# Global coordinator instance
_coordinator: RecomputeCoordinator | None = None


def build_default_coordinator() -> RecomputeCoordinator:
    """Build a coordinator over the configured database and its mirror tables."""
    settings = get_settings()
    session_factory = get_session_factory()
    return RecomputeCoordinator(
        session_factory,
        SqlEntityCatalog(
            session_factory,
            statement_timeout_ms=int(settings.recompute_timeout_s * 1000),
        ),
        max_workers=settings.recompute_max_workers,
        timeout_s=settings.recompute_timeout_s,
    )


def get_coordinator() -> RecomputeCoordinator:
    """Get the global coordinator, building the default one on first use."""
    global _coordinator
    if _coordinator is None:
        _coordinator = build_default_coordinator()
    return _coordinator


def set_coordinator(coordinator: RecomputeCoordinator | None) -> None:
    """Set the global coordinator instance."""
    global _coordinator
    _coordinator = coordinator


def enqueue_user_recompute(user_id: int, request_id: str | None = None) -> bool:
    """Best-effort enqueue of a background recompute for one user.

    Never raises. Returns True if dispatch succeeded, False otherwise.
    In test env, skips dispatch and returns False.
    """
    settings = get_settings()
    if settings.curtain_env == Environment.TEST:
        logger.debug("recompute_enqueue_skipped", target_user_id=user_id, reason="test_env")
        return False

    try:
        from curtain.tasks.recompute_exclusions import recompute_user_exclusions_job

        kwargs = {"request_id": request_id} if request_id else {}
        recompute_user_exclusions_job.apply_async(args=[user_id], kwargs=kwargs)
        logger.info("recompute_enqueue_ok", target_user_id=user_id)
        return True
    except Exception:
        logger.exception("recompute_enqueue_failed", target_user_id=user_id)
        return False
