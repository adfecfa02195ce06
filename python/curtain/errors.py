"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Services raise these; the exception handlers in curtain.responses render them.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_ENTITY_TYPE = "E_INVALID_ENTITY_TYPE"
    E_INVALID_MODE = "E_INVALID_MODE"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_CATALOG_UNAVAILABLE = "E_CATALOG_UNAVAILABLE"  # 503
    E_CATALOG_NOT_READY = "E_CATALOG_NOT_READY"  # 503
    E_RECOMPUTE_TIMEOUT = "E_RECOMPUTE_TIMEOUT"  # 504
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_ENTITY_TYPE: 400,
    ApiErrorCode.E_INVALID_MODE: 400,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_CATALOG_UNAVAILABLE: 503,
    ApiErrorCode.E_CATALOG_NOT_READY: 503,
    ApiErrorCode.E_RECOMPUTE_TIMEOUT: 504,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error (authenticated, but not allowed)."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class UnauthenticatedError(ApiError):
    """No valid principal on the request."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(ApiErrorCode.E_UNAUTHENTICATED, message)


class InvalidRequestError(ApiError):
    """Invalid request error (bad entity type, mode, or payload shape)."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class CatalogUnavailableError(ApiError):
    """The entity catalog could not enumerate or resolve an entity type.

    Aborts the affected user's recompute before anything is written.
    """

    def __init__(self, message: str = "Entity catalog unavailable"):
        super().__init__(ApiErrorCode.E_CATALOG_UNAVAILABLE, message)


class CatalogNotReadyError(ApiError):
    """No entity catalog has been configured for this process."""

    def __init__(self, message: str = "Entity catalog has not been configured"):
        super().__init__(ApiErrorCode.E_CATALOG_NOT_READY, message)


class RecomputeTimeoutError(ApiError):
    """A recompute pass exceeded its time budget and was not committed."""

    def __init__(self, message: str = "Exclusion recompute timed out"):
        super().__init__(ApiErrorCode.E_RECOMPUTE_TIMEOUT, message)
