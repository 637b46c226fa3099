"""User model - identity behind magic-link sessions."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Identity, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base, CreatedAtMixin


class User(Base, CreatedAtMixin):
    """User account, created lazily on the first magic-link request.

    Attributes:
        id: Internal surrogate key.
        user_id: Stable external identifier (JWT sub claim).
        email: Unique, lower-case email address.
        email_verified: True once a magic link has been consumed.
        created_at: Account creation timestamp (from CreatedAtMixin).
        last_login_at: Time of the most recent magic-link consumption.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        unique=True,
        nullable=False,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
