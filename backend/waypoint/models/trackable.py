"""Trackable model - the entity devices report positions for.

Only the columns the credential core reads are mapped here.
"""

import uuid

from sqlalchemy import BigInteger, ForeignKey, Identity, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base, CreatedAtMixin


class Trackable(Base, CreatedAtMixin):
    """Tracked entity owned by a user."""

    __tablename__ = "trackables"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    trackable_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
