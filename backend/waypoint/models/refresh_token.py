"""Refresh token model - rotating, storage-backed session credentials."""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Identity,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base


class RefreshToken(Base):
    """One link of a refresh-token rotation chain.

    Rotating a token sets revoked_at and replaced_by together; replaced_by
    holds the hash of the successor, which is how replays are recognized.

    Attributes:
        id: Surrogate key.
        user_id: External id of the session owner.
        token_hash: Hash of the cookie secret (lookup key).
        issued_at: When the token was minted.
        expires_at: Absolute expiry.
        revoked_at: When the token stopped being usable; NULL while active.
        replaced_by: Hash of the successor token after rotation.
        user_agent: User-Agent header of the issuing request.
        ip_address: Client address of the issuing request.
        last_used_at: When the token was last presented for rotation.
    """

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        CheckConstraint(
            "replaced_by IS NULL OR revoked_at IS NOT NULL",
            name="ck_refresh_tokens_replaced_implies_revoked",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    replaced_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text(), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def is_active(self, now: datetime) -> bool:
        """True while not revoked, not rotated, and not expired."""
        return (
            self.revoked_at is None
            and self.replaced_by is None
            and now <= self.expires_at
        )
