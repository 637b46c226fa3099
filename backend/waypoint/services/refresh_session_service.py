"""Refresh session manager: rotating refresh tokens with reuse detection.

Each refresh token is one link of a chain. A token is Active until it is
rotated (revoked_at and replaced_by set together), revoked, or past its
expiry. Presenting a rotated token again means the chain leaked, so every
descendant is revoked.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.auth import (
    AccessTokenIssuer,
    TokenSubject,
    clear_refresh_cookie,
    set_refresh_cookie,
)
from waypoint.core.config import AuthConfig
from waypoint.core.errors import (
    ExpiredRefreshTokenError,
    InvalidRefreshTokenError,
    MissingRefreshTokenError,
    RefreshUserNotFoundError,
    ReusedRefreshTokenError,
    RevokedRefreshTokenError,
)
from waypoint.core.tokens import SecretHasher, hash_secret, new_opaque_secret
from waypoint.models.refresh_token import RefreshToken
from waypoint.repositories.refresh_token_repository import RefreshTokenRepository
from waypoint.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# User-Agent headers are clipped to this length before storage
_MAX_USER_AGENT_LENGTH = 512


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class RequestMeta:
    """The parts of an HTTP request the session manager reads.

    Attributes:
        refresh_token: Raw refresh secret from the cookie, if any.
        user_agent: User-Agent header.
        ip_address: Client address.
    """

    refresh_token: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None

    @classmethod
    def from_request(cls, request: Request, config: AuthConfig) -> "RequestMeta":
        user_agent = request.headers.get("user-agent")
        if user_agent:
            user_agent = user_agent[:_MAX_USER_AGENT_LENGTH]
        return cls(
            refresh_token=request.cookies.get(config.refresh_cookie_name) or None,
            user_agent=user_agent,
            ip_address=request.client.host if request.client else None,
        )


@dataclass(frozen=True)
class IssuedTokens:
    """Result of starting or refreshing a session.

    The refresh secret travels only in the cookie, never in this object.
    """

    access_token: str
    expires_in: int
    user_id: uuid.UUID


class RefreshSessionService:
    """Starts, rotates, and ends refresh sessions.

    Args:
        db: Async database session.
        config: Immutable auth configuration (refresh lifetime, cookie).
        issuer: Access token issuer.
        hasher: Secret hashing strategy override.
        clock: Current-time source, for tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: AuthConfig,
        issuer: AccessTokenIssuer,
        *,
        hasher: SecretHasher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._config = config
        self._issuer = issuer
        self._hasher = hasher
        self._clock = clock

    async def start_session(
        self, user: TokenSubject, meta: RequestMeta, response: Response
    ) -> IssuedTokens:
        """Open a new refresh chain for a user.

        Sets the refresh cookie on the response and returns a fresh access
        token.
        """
        now = self._clock()
        secret = new_opaque_secret()
        await RefreshTokenRepository.create(
            self._db,
            user_id=user.user_id,
            token_hash=hash_secret(secret, self._hasher),
            issued_at=now,
            expires_at=now + self._config.refresh_ttl,
            user_agent=meta.user_agent,
            ip_address=meta.ip_address,
        )
        set_refresh_cookie(response, secret, self._config)
        return IssuedTokens(
            access_token=self._issuer.issue(user, now=now),
            expires_in=self._issuer.expires_in,
            user_id=user.user_id,
        )

    async def refresh(self, meta: RequestMeta, response: Response) -> IssuedTokens:
        """Rotate the presented refresh token.

        Checks run in this order: missing, unknown, reused, revoked,
        expired, owner missing. Reuse is checked before revocation because
        rotation sets both fields.

        Raises:
            MissingRefreshTokenError: No refresh cookie.
            InvalidRefreshTokenError: Unknown token.
            ReusedRefreshTokenError: Token was already rotated, or a
                concurrent request rotated it first.
            RevokedRefreshTokenError: Token was revoked.
            ExpiredRefreshTokenError: Token is past its expiry.
            RefreshUserNotFoundError: Token owner no longer exists.
        """
        if not meta.refresh_token:
            raise MissingRefreshTokenError()

        token = await RefreshTokenRepository.get_by_token_hash(
            self._db, hash_secret(meta.refresh_token, self._hasher)
        )
        if token is None:
            raise InvalidRefreshTokenError()

        now = self._clock()
        if token.replaced_by is not None:
            await self._contain_reuse(token, now)
            raise ReusedRefreshTokenError()
        if token.revoked_at is not None:
            raise RevokedRefreshTokenError()
        if now > token.expires_at:
            raise ExpiredRefreshTokenError()

        user = await UserRepository.get_by_user_id(self._db, token.user_id)
        if user is None:
            raise RefreshUserNotFoundError()

        child_secret = new_opaque_secret()
        child_hash = hash_secret(child_secret, self._hasher)
        rotated = await RefreshTokenRepository.mark_rotated(
            self._db, token.id, child_hash=child_hash, now=now
        )
        if not rotated:
            # Another request rotated this token between our read and update
            await self._db.refresh(token)
            await self._contain_reuse(token, now)
            raise ReusedRefreshTokenError()

        await RefreshTokenRepository.create(
            self._db,
            user_id=token.user_id,
            token_hash=child_hash,
            issued_at=now,
            expires_at=now + self._config.refresh_ttl,
            user_agent=meta.user_agent,
            ip_address=meta.ip_address,
        )
        set_refresh_cookie(response, child_secret, self._config)
        return IssuedTokens(
            access_token=self._issuer.issue(user, now=now),
            expires_in=self._issuer.expires_in,
            user_id=user.user_id,
        )

    async def logout(self, meta: RequestMeta, response: Response) -> None:
        """End the presented session.

        The cookie is always cleared. An unknown or already revoked token
        is not an error.
        """
        clear_refresh_cookie(response, self._config)
        if not meta.refresh_token:
            return
        token = await RefreshTokenRepository.get_by_token_hash(
            self._db, hash_secret(meta.refresh_token, self._hasher)
        )
        if token is not None and token.revoked_at is None:
            await RefreshTokenRepository.revoke(self._db, token.id, now=self._clock())

    async def revoke_all(self, user_id: uuid.UUID) -> int:
        """Revoke every active refresh token of a user.

        Returns:
            Number of sessions ended.
        """
        count = await RefreshTokenRepository.revoke_all_for_user(
            self._db, user_id, now=self._clock()
        )
        logger.info("Revoked %d refresh tokens for user %s", count, user_id)
        return count

    async def _contain_reuse(self, token: RefreshToken, now: datetime) -> None:
        """Revoke the chain grown from a replayed token and persist it.

        Committed here because the error raised afterwards rolls back the
        request transaction.
        """
        revoked = await RefreshTokenRepository.revoke_descendants(
            self._db, token, now=now
        )
        await self._db.commit()
        logger.warning(
            "Refresh token reuse detected for user %s; revoked %d descendant tokens",
            token.user_id,
            revoked,
        )
