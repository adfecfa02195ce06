"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code maps to correct HTTP status
- Unknown exceptions return E_INTERNAL with 500
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from curtain.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    CatalogNotReadyError,
    CatalogUnavailableError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    RecomputeTimeoutError,
    UnauthenticatedError,
)
from curtain.responses import (
    api_error_handler,
    error_response,
    success_response,
    unhandled_exception_handler,
)


class TestEnvelopes:
    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found")

        assert response == {"error": {"code": "E_NOT_FOUND", "message": "Resource not found"}}

    def test_error_response_includes_explicit_request_id(self):
        response = error_response(ApiErrorCode.E_FORBIDDEN, "Access denied", request_id="r-1")
        assert response["error"]["request_id"] == "r-1"

    def test_success_response_wraps_data(self):
        assert success_response([1, 2]) == {"data": [1, 2]}
        assert success_response(None) == {"data": None}


class TestErrorCodeToStatus:
    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    def test_error_classes_carry_status(self):
        assert NotFoundError(ApiErrorCode.E_USER_NOT_FOUND).status_code == 404
        assert ForbiddenError().status_code == 403
        assert UnauthenticatedError().status_code == 401
        assert InvalidRequestError(ApiErrorCode.E_INVALID_MODE).status_code == 400
        assert CatalogUnavailableError().status_code == 503
        assert CatalogNotReadyError().status_code == 503
        assert RecomputeTimeoutError().status_code == 504


class TestExceptionHandlers:
    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_exception_handler(ApiError, api_error_handler)
        app.add_exception_handler(Exception, unhandled_exception_handler)

        @app.get("/api-error")
        def raise_api_error():
            raise CatalogNotReadyError()

        @app.get("/boom")
        def raise_unhandled():
            raise RuntimeError("secret detail")

        return app

    def test_api_error_rendered(self):
        client = TestClient(self._app())
        response = client.get("/api-error")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "E_CATALOG_NOT_READY"

    def test_unhandled_exception_does_not_leak(self):
        client = TestClient(self._app(), raise_server_exceptions=False)
        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"
        assert "secret" not in response.text
