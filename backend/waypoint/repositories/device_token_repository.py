"""Repository for the device_tokens table."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.models.device_token import DeviceToken


class DeviceTokenRepository:
    """Stateless repository for device token operations."""

    @staticmethod
    async def create(
        db: AsyncSession, *, trackable_id: str, token_hash: str
    ) -> DeviceToken:
        """Insert a new unclaimed token.

        Raises:
            sqlalchemy.exc.IntegrityError: If the trackable already has a
                live unclaimed token.
        """
        token = DeviceToken(trackable_id=trackable_id, token_hash=token_hash)
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    async def get_by_token_hash(
        db: AsyncSession, token_hash: str
    ) -> DeviceToken | None:
        stmt = select(DeviceToken).where(DeviceToken.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def revoke_unclaimed_for_trackable(
        db: AsyncSession, trackable_id: str, *, now: datetime
    ) -> int:
        """Revoke every live unclaimed token of a trackable.

        Claimed tokens are left alone.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(DeviceToken)
            .where(
                DeviceToken.trackable_id == trackable_id,
                DeviceToken.device_id.is_(None),
                DeviceToken.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .returning(DeviceToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return len(result.scalars().all())

    @staticmethod
    async def claim(db: AsyncSession, token_id: int, device_id: str) -> bool:
        """Bind an unclaimed, live token to a device.

        Returns:
            True if this call claimed the token; False if it was already
            claimed or revoked by the time the update ran.
        """
        stmt = (
            update(DeviceToken)
            .where(
                DeviceToken.id == token_id,
                DeviceToken.device_id.is_(None),
                DeviceToken.revoked_at.is_(None),
            )
            .values(device_id=device_id)
            .returning(DeviceToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def revoke_for_device(
        db: AsyncSession, trackable_id: str, device_id: str, *, now: datetime
    ) -> int:
        """Revoke the live tokens claimed by a device on a trackable.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(DeviceToken)
            .where(
                DeviceToken.trackable_id == trackable_id,
                DeviceToken.device_id == device_id,
                DeviceToken.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .returning(DeviceToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return len(result.scalars().all())
