"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Recompute Coordinator:
- One coordinator per app, stored in app.state.recompute_coordinator
- It owns the per-user locks, so every request shares the same instance
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from curtain.api.routes import create_api_router
from curtain.auth.middleware import AuthMiddleware, Viewer
from curtain.auth.verifier import JwksTokenVerifier
from curtain.config import get_settings
from curtain.db.session import get_session_factory
from curtain.errors import ApiError, ApiErrorCode
from curtain.logging import configure_logging, get_logger
from curtain.middleware.request_id import RequestIDMiddleware
from curtain.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from curtain.services.catalog import SqlEntityCatalog
from curtain.services.recompute import RecomputeCoordinator, set_coordinator
from curtain.services.users import find_user

logger = get_logger(__name__)


def create_principal_loader(session_factory: sessionmaker[Session]):
    """Create a principal loader that opens its own database session.

    The loader is called by the auth middleware for each authenticated request
    and returns None for users that do not exist.
    """

    def load_principal(user_id: int) -> Viewer | None:
        db = session_factory()
        try:
            user = find_user(db, user_id)
            if user is None:
                return None
            return Viewer(user_id=user.id, is_admin=user.is_admin)
        finally:
            db.close()

    return load_principal


def create_token_verifier() -> JwksTokenVerifier:
    """Create the JWKS token verifier from settings."""
    settings = get_settings()

    return JwksTokenVerifier(
        jwks_url=settings.auth_jwks_url,  # type: ignore
        issuer=settings.normalized_issuer,  # type: ignore
        audiences=settings.audience_list,
    )


def create_recompute_coordinator(session_factory: sessionmaker[Session]) -> RecomputeCoordinator:
    """Create a coordinator over the mirror tables reachable through session_factory."""
    settings = get_settings()
    return RecomputeCoordinator(
        session_factory,
        SqlEntityCatalog(
            session_factory,
            statement_timeout_ms=int(settings.recompute_timeout_s * 1000),
        ),
        max_workers=settings.recompute_max_workers,
        timeout_s=settings.recompute_timeout_s,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Publish the app's coordinator as the process-wide one while serving."""
    set_coordinator(app.state.recompute_coordinator)
    logger.info(
        "recompute_coordinator_ready",
        max_workers=app.state.recompute_coordinator.max_workers,
        timeout_s=app.state.recompute_coordinator.timeout_s,
    )
    yield
    set_coordinator(None)


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
    session_factory: sessionmaker[Session] | None = None,
    recompute_coordinator: RecomputeCoordinator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        session_factory: Session factory for principal lookups and the default
            coordinator. Defaults to the configured database.
        recompute_coordinator: Optional coordinator (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json)

    if session_factory is None:
        session_factory = get_session_factory()

    app = FastAPI(
        title="Curtain API",
        description="Per-user content visibility engine for a mirrored media library",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.recompute_coordinator = recompute_coordinator or create_recompute_coordinator(
        session_factory
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (body, path and query parameters)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()
        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            principal_loader=create_principal_loader(session_factory),
        )
        logger.info("auth_middleware_enabled", env=settings.curtain_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
