"""Device token manager: issue, claim, validate, revoke.

A trackable has at most one live unclaimed token at a time. Issuing a new
one revokes the previous unclaimed token; claimed tokens are untouched.
Claiming binds a token to a device id exactly once.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.errors import (
    ConflictError,
    DeviceTokenAlreadyClaimedError,
    UnauthorizedDeviceTokenError,
    ValidationError,
)
from waypoint.core.tokens import SecretHasher, hash_secret, new_opaque_secret
from waypoint.models.device_token import DeviceToken
from waypoint.repositories.device_token_repository import DeviceTokenRepository

logger = logging.getLogger(__name__)

_MAX_DEVICE_ID_LENGTH = 128


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_device_id(device_id: str) -> str:
    """Strip a device id and check it fits the column.

    Raises:
        ValidationError: If empty or too long.
    """
    value = device_id.strip()
    if not value:
        raise ValidationError("Device id is required")
    if len(value) > _MAX_DEVICE_ID_LENGTH:
        raise ValidationError(
            f"Device id must be at most {_MAX_DEVICE_ID_LENGTH} characters"
        )
    return value


class DeviceTokenService:
    """Manages the device token lifecycle.

    Args:
        db: Async database session.
        hasher: Secret hashing strategy override.
        clock: Current-time source, for tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        hasher: SecretHasher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._hasher = hasher
        self._clock = clock

    async def issue(self, trackable_id: str) -> str:
        """Issue a fresh unclaimed token for a trackable.

        Returns:
            The raw secret. It is not retrievable afterwards.

        Raises:
            ConflictError: A concurrent issue for the same trackable won.
        """
        await DeviceTokenRepository.revoke_unclaimed_for_trackable(
            self._db, trackable_id, now=self._clock()
        )
        secret = new_opaque_secret()
        try:
            async with self._db.begin_nested():
                await DeviceTokenRepository.create(
                    self._db,
                    trackable_id=trackable_id,
                    token_hash=hash_secret(secret, self._hasher),
                )
        except IntegrityError as exc:
            raise ConflictError(
                code="DEVICE_TOKEN_CONFLICT",
                message="A device token is being issued for this trackable. Retry.",
            ) from exc
        logger.info("Device token issued for trackable %s", trackable_id)
        return secret

    async def validate(self, raw_secret: str) -> DeviceToken:
        """Look up a live token by its secret.

        Unclaimed tokens are returned; callers that need a claimed token
        check device_id themselves.

        Raises:
            UnauthorizedDeviceTokenError: Unknown or revoked token.
        """
        token = await DeviceTokenRepository.get_by_token_hash(
            self._db, hash_secret(raw_secret, self._hasher)
        )
        if token is None or token.revoked_at is not None:
            raise UnauthorizedDeviceTokenError()
        return token

    async def assign_device_to_token(
        self, token: DeviceToken, device_id: str
    ) -> DeviceToken:
        """Bind a token to a device id.

        Claiming again with the same device id is a no-op.

        Raises:
            DeviceTokenAlreadyClaimedError: Token belongs to another device.
            UnauthorizedDeviceTokenError: Token was revoked meanwhile.
        """
        device_id = normalize_device_id(device_id)
        if token.device_id == device_id:
            return token
        if token.device_id is not None:
            raise DeviceTokenAlreadyClaimedError()

        if not await DeviceTokenRepository.claim(self._db, token.id, device_id):
            await self._db.refresh(token)
            if token.revoked_at is not None:
                raise UnauthorizedDeviceTokenError()
            if token.device_id == device_id:
                return token
            raise DeviceTokenAlreadyClaimedError()

        token.device_id = device_id
        logger.info(
            "Device token for trackable %s claimed by device %s",
            token.trackable_id,
            device_id,
        )
        return token

    async def claim(self, raw_secret: str, device_id: str) -> DeviceToken:
        """Validate a secret and bind it to a device id."""
        token = await self.validate(raw_secret)
        return await self.assign_device_to_token(token, device_id)

    async def revoke_for_device(self, trackable_id: str, device_id: str) -> int:
        """Revoke the tokens a device claimed on a trackable.

        Returns:
            Number of tokens revoked.
        """
        return await DeviceTokenRepository.revoke_for_device(
            self._db, trackable_id, device_id, now=self._clock()
        )
