"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token verification
- get_viewer: Dependency for accessing the authenticated viewer
- require_admin: Dependency that additionally requires the admin role
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from curtain.auth.verifier import TokenVerifier, parse_user_id
from curtain.errors import ApiError, ApiErrorCode, ForbiddenError, UnauthenticatedError
from curtain.responses import error_response

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from JWT sub claim).
        is_admin: Whether the viewer holds the admin role.
    """

    user_id: int
    is_admin: bool = False


PrincipalLoader = Callable[[int], Viewer | None]


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract and parse bearer token
    3. Verify token via TokenVerifier
    4. Resolve the principal through principal_loader (unknown user -> 401)
    5. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        principal_loader: PrincipalLoader | None = None,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            principal_loader: Function(user_id) -> Viewer or None if the user is unknown.
                When omitted, every verified token yields a non-admin viewer.
        """
        super().__init__(app)
        self.verifier = verifier
        self.principal_loader = principal_loader

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            payload = self.verifier.verify(token)
            user_id = parse_user_id(payload.get("sub"))
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        if self.principal_loader:
            try:
                viewer = self.principal_loader(user_id)
            except Exception as e:
                logger.exception("Principal lookup failed for user %s: %s", user_id, e)
                return self._error_json_response(
                    ApiErrorCode.E_INTERNAL,
                    "Internal server error",
                    500,
                )
            if viewer is None:
                logger.warning(
                    "auth_failure",
                    extra={"reason": "unknown_user", "request_path": request.url.path},
                )
                return self._error_json_response(
                    ApiErrorCode.E_UNAUTHENTICATED,
                    "Authentication required",
                    401,
                )
        else:
            viewer = Viewer(user_id=user_id)

        request.state.viewer = viewer
        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Authentication required",
                401,
            )

        token = ""
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip()

        if not token:
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        UnauthenticatedError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise UnauthenticatedError()
    return viewer


def require_admin(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    """FastAPI dependency that requires an admin viewer.

    Raises:
        ForbiddenError: If the viewer is not an admin.
    """
    if not viewer.is_admin:
        raise ForbiddenError(message="Admin access required")
    return viewer
