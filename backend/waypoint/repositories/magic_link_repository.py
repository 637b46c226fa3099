"""Repository for the magic_links table."""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.models.magic_link import MagicLink


class MagicLinkRepository:
    """Stateless repository for magic link operations.

    Rows are never deleted by normal flow; the used_at transition is the
    only mutation.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        user_id: uuid.UUID | None,
        token_hash: str,
        expires_at: datetime,
    ) -> MagicLink:
        """Insert a magic link.

        Args:
            db: Async database session.
            email: Normalized recipient address.
            user_id: External id of the user the link signs in.
            token_hash: Hash of the emailed secret. The secret itself is
                never passed to this layer.
            expires_at: Link expiry.

        Returns:
            Created MagicLink.
        """
        link = MagicLink(
            email=email,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        db.add(link)
        await db.flush()
        return link

    @staticmethod
    async def get_by_token_hash(db: AsyncSession, token_hash: str) -> MagicLink | None:
        stmt = select(MagicLink).where(MagicLink.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used(
        db: AsyncSession, link_id: int, *, now: datetime
    ) -> bool:
        """Atomically consume a link.

        The update only matches while used_at is NULL and the link has not
        expired, so of two concurrent consumers exactly one wins.

        Returns:
            True if this call consumed the link, False otherwise.
        """
        stmt = (
            update(MagicLink)
            .where(
                MagicLink.id == link_id,
                MagicLink.used_at.is_(None),
                MagicLink.expires_at >= now,
            )
            .values(used_at=now)
            .returning(MagicLink.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None
