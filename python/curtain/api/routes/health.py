"""Health check endpoint."""

from fastapi import APIRouter, Request

from curtain.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness check. Also reports whether an entity catalog is configured.

    Never touches the database. A missing catalog is reported, not failed:
    hide and rule edits still work without one.
    """
    coordinator = getattr(request.app.state, "recompute_coordinator", None)
    catalog_ready = coordinator is not None and coordinator.catalog is not None
    return success_response({"status": "ok", "catalog": "ready" if catalog_ready else "missing"})
