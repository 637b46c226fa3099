"""Access token issuance and refresh cookie management.

Shared by the auth endpoints and the authentication resolver:
- AccessTokenIssuer: stateless signing and parsing of access tokens
- set_refresh_cookie / clear_refresh_cookie: the refresh token transport
- get_auth_config / get_access_token_issuer: process-wide instances built
  from Settings
"""

import uuid
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Protocol

from fastapi import Response

from waypoint.core.config import AuthConfig, settings
from waypoint.core.errors import AccessTokenInvalidError
from waypoint.core.principals import UserPrincipal
from waypoint.core.tokens import JwtCodec


class TokenSubject(Protocol):
    """Anything with the two identity fields an access token carries."""

    user_id: uuid.UUID
    email: str


class AccessTokenIssuer:
    """Issue and parse short-lived signed access tokens.

    Holds no per-user state: a token is valid until its exp claim no matter
    what happens to the refresh session that produced it.
    """

    def __init__(self, codec: JwtCodec, access_ttl: timedelta) -> None:
        self._codec = codec
        self._access_ttl = access_ttl

    @classmethod
    def from_config(cls, config: AuthConfig) -> "AccessTokenIssuer":
        codec = JwtCodec(
            config.signing_key,
            algorithm=config.algorithm,
            issuer=config.issuer,
        )
        return cls(codec, config.access_ttl)

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._access_ttl.total_seconds())

    def issue(self, user: TokenSubject, *, now: datetime | None = None) -> str:
        """Create a signed access token for a user.

        Args:
            user: User (or any object with user_id and email).
            now: Issue time override, for tests.

        Returns:
            Encoded JWT string.
        """
        issued_at = now or datetime.now(UTC)
        claims = {
            "sub": str(user.user_id),
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + self._access_ttl,
        }
        return self._codec.sign(claims)

    def parse(self, token: str) -> UserPrincipal:
        """Verify a token and rebuild the user principal it names.

        Raises:
            AccessTokenExpiredError: Token is past its exp claim.
            AccessTokenInvalidError: Signature, issuer, claims, or format
                are wrong.
        """
        claims = self._codec.verify(token)
        try:
            user_id = uuid.UUID(str(claims["sub"]))
        except ValueError as exc:
            raise AccessTokenInvalidError("Invalid subject claim") from exc
        email = claims["email"]
        if not isinstance(email, str) or not email:
            raise AccessTokenInvalidError("Invalid email claim")
        return UserPrincipal(user_id=user_id, email=email)


def set_refresh_cookie(response: Response, raw_token: str, config: AuthConfig) -> None:
    """Set the httpOnly refresh token cookie on a response.

    Args:
        response: FastAPI response object.
        raw_token: Raw refresh secret (never stored server-side).
        config: Cookie attributes and lifetime.
    """
    response.set_cookie(
        key=config.refresh_cookie_name,
        value=raw_token,
        httponly=True,
        secure=config.refresh_cookie_secure,
        samesite=config.refresh_cookie_samesite,
        path="/",
        max_age=int(config.refresh_ttl.total_seconds()),
        domain=config.refresh_cookie_domain,
    )


def clear_refresh_cookie(response: Response, config: AuthConfig) -> None:
    """Expire the refresh cookie with the same attributes it was set with."""
    response.set_cookie(
        key=config.refresh_cookie_name,
        value="",
        httponly=True,
        secure=config.refresh_cookie_secure,
        samesite=config.refresh_cookie_samesite,
        path="/",
        max_age=0,
        domain=config.refresh_cookie_domain,
    )


@lru_cache
def get_auth_config() -> AuthConfig:
    return AuthConfig.from_settings(settings)


@lru_cache
def get_access_token_issuer() -> AccessTokenIssuer:
    return AccessTokenIssuer.from_config(get_auth_config())
