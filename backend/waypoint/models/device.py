"""Device model - a physical device registered to a trackable."""

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Identity, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base, CreatedAtMixin


class Device(Base, CreatedAtMixin):
    """Registered device.

    Attributes:
        id: Surrogate key.
        trackable_id: Trackable the device reports for.
        device_id: Identity chosen by the device when it claimed its token.
        name: Human-readable label.
        created_at: Registration timestamp (from CreatedAtMixin).
        last_reported_at: Time of the most recent report.
    """

    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint(
            "trackable_id", "device_id", name="uq_devices_trackable_device"
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    trackable_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("trackables.trackable_id", ondelete="CASCADE"),
        nullable=False,
    )
    device_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_reported_at: Mapped[datetime | None] = mapped_column(nullable=True)
