"""Repository for the devices and trackables tables.

Only the lookups the credential core needs: device registration and the
device/trackable owner joins.
"""

import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.models.device import Device
from waypoint.models.trackable import Trackable


class DeviceRepository:
    """Stateless repository for device and trackable lookups."""

    @staticmethod
    async def get(db: AsyncSession, trackable_id: str, device_id: str) -> Device | None:
        stmt = select(Device).where(
            Device.trackable_id == trackable_id,
            Device.device_id == device_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def replace(
        db: AsyncSession,
        *,
        trackable_id: str,
        device_id: str,
        name: str | None = None,
    ) -> Device:
        """Register a device, replacing any existing row for the same pair.

        Returns:
            The newly inserted Device.
        """
        await DeviceRepository.delete(db, trackable_id, device_id)
        device = Device(trackable_id=trackable_id, device_id=device_id, name=name)
        db.add(device)
        await db.flush()
        return device

    @staticmethod
    async def delete(db: AsyncSession, trackable_id: str, device_id: str) -> bool:
        """Delete a device row.

        Returns:
            True if a row was deleted.
        """
        stmt = (
            delete(Device)
            .where(
                Device.trackable_id == trackable_id,
                Device.device_id == device_id,
            )
            .returning(Device.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def find_owner_user_id(
        db: AsyncSession, trackable_id: str, device_id: str
    ) -> uuid.UUID | None:
        """Owner of a trackable, provided the device is registered to it.

        Device ids are chosen by clients and are only unique per trackable,
        so the lookup is always scoped to one trackable.

        Returns:
            The owning user's external id, or None if the device is not
            registered to the trackable.
        """
        stmt = (
            select(Trackable.user_id)
            .join(Device, Device.trackable_id == Trackable.trackable_id)
            .where(
                Trackable.trackable_id == trackable_id,
                Device.device_id == device_id,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_trackable_owner(
        db: AsyncSession, trackable_id: str
    ) -> uuid.UUID | None:
        stmt = select(Trackable.user_id).where(Trackable.trackable_id == trackable_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def is_registered(
        db: AsyncSession, trackable_id: str, device_id: str
    ) -> bool:
        stmt = select(Device.id).where(
            Device.trackable_id == trackable_id,
            Device.device_id == device_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None
