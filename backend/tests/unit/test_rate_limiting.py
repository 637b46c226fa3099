"""Tests for rate limit keying and the 429 response."""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request

from tests.conftest import TEST_USER_ID, create_test_jwt
from waypoint.core.auth import AccessTokenIssuer
from waypoint.core.rate_limiting import (
    _rate_limit_key_func,
    rate_limit_exceeded_handler,
)


def _make_request(
    *, client_host: str = "192.168.1.1", authorization: str | None = None
) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/api/v1/auth/refresh",
            "headers": headers,
            "client": (client_host, 50000),
        }
    )


class TestRateLimitKeyFunction:
    """Bearer subjects are keyed per user, everything else per IP."""

    @pytest.fixture(autouse=True)
    def issuer(self, token_issuer: AccessTokenIssuer):
        with patch(
            "waypoint.core.rate_limiting.get_access_token_issuer",
            return_value=token_issuer,
        ):
            yield

    def test_valid_bearer_is_keyed_on_subject(self):
        request = _make_request(authorization=f"Bearer {create_test_jwt()}")

        assert _rate_limit_key_func(request) == f"user:{TEST_USER_ID}"

    def test_no_bearer_is_keyed_on_ip(self):
        request = _make_request(client_host="203.0.113.5")

        assert _rate_limit_key_func(request) == "unauth:203.0.113.5"

    def test_expired_bearer_is_keyed_on_ip(self):
        token = create_test_jwt(expires_delta=timedelta(hours=-1))
        request = _make_request(
            client_host="198.51.100.20", authorization=f"Bearer {token}"
        )

        assert _rate_limit_key_func(request) == "unauth:198.51.100.20"

    def test_foreign_signature_is_keyed_on_ip(self):
        token = create_test_jwt(secret="different-secret-that-does-not-match")
        request = _make_request(
            client_host="198.51.100.30", authorization=f"Bearer {token}"
        )

        assert _rate_limit_key_func(request) == "unauth:198.51.100.30"

    def test_non_bearer_scheme_is_keyed_on_ip(self):
        request = _make_request(
            client_host="198.51.100.40", authorization=f"Basic {create_test_jwt()}"
        )

        assert _rate_limit_key_func(request) == "unauth:198.51.100.40"


class TestRateLimitExceededHandler:
    def test_error_envelope(self):
        exc = MagicMock()
        exc.detail = "10 per 1 minute"

        response = rate_limit_exceeded_handler(_make_request(), exc)
        body = json.loads(response.body.decode())

        assert response.status_code == 429
        assert body["error"]["code"] == "RATE_LIMITED"
        assert response.headers["Retry-After"] == "60"
