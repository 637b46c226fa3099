"""Magic link flow: passwordless sign-in by single-use email token.

request_link never reveals whether an address was already known.
consume enforces single use with a conditional update, so two requests
racing on the same link produce exactly one session.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.config import AuthConfig
from waypoint.core.email import redact_email, send_magic_link_email
from waypoint.core.errors import (
    ExpiredMagicLinkError,
    InvalidMagicLinkError,
    ValidationError,
)
from waypoint.core.tokens import SecretHasher, hash_secret, new_opaque_secret
from waypoint.models.user import User
from waypoint.repositories.magic_link_repository import MagicLinkRepository
from waypoint.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_email(raw_email: str) -> str:
    """Trim and lower-case an address.

    Raises:
        ValidationError: If nothing is left after trimming.
    """
    email = raw_email.strip().lower()
    if not email:
        raise ValidationError("Email is required")
    return email


class MagicLinkService:
    """Issues and consumes magic links.

    Args:
        db: Async database session.
        config: Immutable auth configuration (link lifetime).
        hasher: Secret hashing strategy override.
        clock: Current-time source, for tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        config: AuthConfig,
        *,
        hasher: SecretHasher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._config = config
        self._hasher = hasher
        self._clock = clock

    async def request_link(
        self, raw_email: str, background_tasks: BackgroundTasks
    ) -> None:
        """Create a magic link for an address and schedule the email.

        The user row is created on first request with email_verified=False.
        The email is sent after the response by a background task, so
        delivery problems never change what the caller sees.

        Args:
            raw_email: Address as typed by the user.
            background_tasks: FastAPI background task queue.
        """
        email = normalize_email(raw_email)
        user = await UserRepository.get_or_create_by_email(self._db, email)

        secret = new_opaque_secret()
        await MagicLinkRepository.create(
            self._db,
            email=email,
            user_id=user.user_id,
            token_hash=hash_secret(secret, self._hasher),
            expires_at=self._clock() + self._config.magic_link_ttl,
        )

        ttl_minutes = int(self._config.magic_link_ttl.total_seconds() // 60)
        background_tasks.add_task(
            send_magic_link_email,
            to_email=email,
            token=secret,
            ttl_minutes=ttl_minutes,
        )
        logger.info("Magic link issued for %s", redact_email(email))

    async def consume(self, raw_secret: str) -> User:
        """Exchange a magic link secret for the user it signs in.

        Args:
            raw_secret: Secret from the emailed link.

        Returns:
            The signed-in user, now marked verified.

        Raises:
            InvalidMagicLinkError: No link matches the secret.
            ExpiredMagicLinkError: The link was already used, is past its
                expiry, or was consumed concurrently by another request.
        """
        link = await MagicLinkRepository.get_by_token_hash(
            self._db, hash_secret(raw_secret, self._hasher)
        )
        if link is None:
            raise InvalidMagicLinkError()

        now = self._clock()
        if not link.is_consumable(now):
            raise ExpiredMagicLinkError()

        if not await MagicLinkRepository.mark_used(self._db, link.id, now=now):
            raise ExpiredMagicLinkError()

        user_id = link.user_id
        if user_id is None:
            owner = await UserRepository.get_or_create_by_email(self._db, link.email)
            user_id = owner.user_id

        user = await UserRepository.mark_login(self._db, user_id, now=now)
        if user is None:
            raise InvalidMagicLinkError()
        return user
