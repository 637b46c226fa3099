"""Device token model - claimable credentials scoped to a trackable."""

from datetime import datetime

from sqlalchemy import BigInteger, Identity, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base, CreatedAtMixin


class DeviceToken(Base, CreatedAtMixin):
    """Opaque device credential.

    A token starts unclaimed (device_id NULL) and is claimed once by the
    device that registers with it. The partial unique index allows at most
    one live unclaimed token per trackable.

    Attributes:
        id: Surrogate key.
        trackable_id: Trackable the token grants access to.
        device_id: Claiming device, NULL while unclaimed.
        token_hash: Hash of the raw secret (lookup key).
        created_at: Issue timestamp (from CreatedAtMixin).
        revoked_at: When the token was revoked; NULL while live.
    """

    __tablename__ = "device_tokens"
    __table_args__ = (
        Index(
            "uq_device_tokens_live_unclaimed",
            "trackable_id",
            unique=True,
            postgresql_where=text("device_id IS NULL AND revoked_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    trackable_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    device_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
