"""Tests for API error classes and the error handler.

Every credential failure kind maps to a stable code and status.
"""

import json

import pytest
from starlette.requests import Request

from waypoint.core.errors import (
    AccessTokenExpiredError,
    AccessTokenInvalidError,
    APIError,
    ConflictError,
    DeviceTokenAlreadyClaimedError,
    ExpiredMagicLinkError,
    ExpiredRefreshTokenError,
    ForbiddenError,
    InternalError,
    InvalidMagicLinkError,
    InvalidRefreshTokenError,
    MissingRefreshTokenError,
    NotFoundError,
    RefreshUserNotFoundError,
    ReusedRefreshTokenError,
    RevokedRefreshTokenError,
    UnauthorizedDeviceTokenError,
    UnauthorizedError,
    ValidationError,
)
from waypoint.main import api_error_handler


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]
        assert error.headers is None

    def test_api_error_defaults_to_500(self):
        assert APIError(code="TEST", message="Test").status_code == 500

    def test_api_error_is_exception(self):
        error = APIError(code="TEST", message="Test")
        assert isinstance(error, Exception)
        assert str(error) == "Test"


class TestGeneralErrors:
    def test_validation_error(self):
        error = ValidationError("bad", details=[{"loc": ["body"]}])
        assert (error.code, error.status_code) == ("VALIDATION_ERROR", 400)
        assert error.details == [{"loc": ["body"]}]

    def test_unauthorized(self):
        assert (UnauthorizedError().code, UnauthorizedError().status_code) == (
            "UNAUTHORIZED",
            401,
        )

    def test_forbidden(self):
        assert ForbiddenError().status_code == 403

    def test_not_found_message(self):
        error = NotFoundError("Trackable", "trk-1")
        assert error.status_code == 404
        assert error.message == "Trackable with id 'trk-1' not found"

    def test_conflict(self):
        error = ConflictError(code="DUP", message="dup")
        assert error.status_code == 409

    def test_internal(self):
        assert InternalError().code == "INTERNAL_ERROR"


class TestCredentialErrors:
    """Each failure kind has its own code."""

    @pytest.mark.parametrize(
        ("error", "code", "status"),
        [
            (InvalidMagicLinkError(), "INVALID_TOKEN", 400),
            (ExpiredMagicLinkError(), "EXPIRED_TOKEN", 401),
            (MissingRefreshTokenError(), "MISSING_REFRESH_TOKEN", 401),
            (InvalidRefreshTokenError(), "INVALID_REFRESH_TOKEN", 401),
            (RevokedRefreshTokenError(), "REVOKED_REFRESH_TOKEN", 401),
            (ExpiredRefreshTokenError(), "EXPIRED_REFRESH_TOKEN", 401),
            (ReusedRefreshTokenError(), "REUSED_REFRESH_TOKEN", 401),
            (RefreshUserNotFoundError(), "USER_NOT_FOUND", 401),
            (UnauthorizedDeviceTokenError(), "UNAUTHORIZED_DEVICE_TOKEN", 401),
            (AccessTokenInvalidError(), "INVALID_ACCESS_TOKEN", 401),
            (AccessTokenExpiredError(), "TOKEN_EXPIRED", 401),
            (DeviceTokenAlreadyClaimedError(), "DEVICE_TOKEN_CLAIMED", 409),
        ],
    )
    def test_code_and_status(self, error: APIError, code: str, status: int):
        assert error.code == code
        assert error.status_code == status

    def test_refresh_errors_share_a_base(self):
        assert isinstance(ReusedRefreshTokenError(), UnauthorizedError)

    def test_refresh_error_message_override(self):
        assert InvalidRefreshTokenError("custom").message == "custom"


class TestApiErrorHandler:
    """Tests for the APIError exception handler."""

    def _request(self) -> Request:
        return Request({"type": "http", "method": "GET", "path": "/", "headers": []})

    def test_renders_envelope(self):
        response = api_error_handler(self._request(), NotFoundError("Device", "d1"))

        assert response.status_code == 404
        assert json.loads(response.body) == {
            "error": {
                "code": "NOT_FOUND",
                "message": "Device with id 'd1' not found",
                "details": None,
            }
        }

    def test_forwards_error_headers(self):
        response = api_error_handler(self._request(), AccessTokenExpiredError())

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == (
            'Bearer error="invalid_token", error_description="expired"'
        )
