"""Device registration on top of the device token manager."""

from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.errors import NotFoundError, UnauthorizedDeviceTokenError
from waypoint.models.device import Device
from waypoint.repositories.device_repository import DeviceRepository
from waypoint.services.device_token_service import DeviceTokenService


class DeviceService:
    """Registers and removes devices.

    Args:
        db: Async database session.
        device_tokens: Token manager sharing the same session.
    """

    def __init__(
        self, db: AsyncSession, device_tokens: DeviceTokenService | None = None
    ) -> None:
        self._db = db
        self._device_tokens = device_tokens or DeviceTokenService(db)

    async def register_device(
        self,
        trackable_id: str,
        *,
        raw_token: str,
        device_id: str,
        name: str | None = None,
    ) -> Device:
        """Claim a device token and record the device.

        Any existing row for the same (trackable, device) pair is replaced.

        Raises:
            UnauthorizedDeviceTokenError: Token unknown, revoked, or issued
                for a different trackable.
            DeviceTokenAlreadyClaimedError: Token claimed by another device.
        """
        token = await self._device_tokens.validate(raw_token)
        if token.trackable_id != trackable_id:
            raise UnauthorizedDeviceTokenError(
                "Device token was not issued for this trackable"
            )
        token = await self._device_tokens.assign_device_to_token(token, device_id)
        return await DeviceRepository.replace(
            self._db,
            trackable_id=trackable_id,
            device_id=token.device_id or device_id,
            name=name,
        )

    async def delete_device(self, trackable_id: str, device_id: str) -> None:
        """Remove a device and revoke its tokens.

        Raises:
            NotFoundError: Neither a device row nor a live token existed.
        """
        deleted = await DeviceRepository.delete(self._db, trackable_id, device_id)
        revoked = await self._device_tokens.revoke_for_device(trackable_id, device_id)
        if not deleted and revoked == 0:
            raise NotFoundError("Device", device_id)
