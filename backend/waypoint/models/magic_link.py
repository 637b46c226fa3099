"""Magic link model - single-use, time-limited email sign-in tokens."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Identity, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.models.base import Base, CreatedAtMixin


class MagicLink(Base, CreatedAtMixin):
    """Magic link sign-in token.

    Only the hash of the emailed secret is stored. used_at moves from NULL
    to a timestamp exactly once and never back.

    Attributes:
        id: Surrogate key.
        email: Normalized address the link was sent to.
        user_id: External id of the user the link signs in.
        token_hash: Hash of the emailed secret (lookup key).
        expires_at: Link expiry.
        used_at: When the link was consumed; NULL while unused.
    """

    __tablename__ = "magic_links"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def is_consumable(self, now: datetime) -> bool:
        """True while the link is unused and not past its expiry."""
        return self.used_at is None and now <= self.expires_at
