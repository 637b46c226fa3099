"""Repository for the refresh_tokens table.

Rotation is a single conditional UPDATE on the parent row followed by the
child INSERT, both in the caller's transaction.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.models.refresh_token import RefreshToken


class RefreshTokenRepository:
    """Stateless repository for refresh token operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: str,
        issued_at: datetime,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshToken:
        """Insert a new active refresh token.

        Returns:
            Created RefreshToken.
        """
        token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            issued_at=issued_at,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    async def get_by_token_hash(
        db: AsyncSession, token_hash: str
    ) -> RefreshToken | None:
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_rotated(
        db: AsyncSession,
        token_id: int,
        *,
        child_hash: str,
        now: datetime,
    ) -> bool:
        """Retire a token in favour of its successor.

        Sets revoked_at, replaced_by, and last_used_at together, but only
        while the token is still active. A concurrent rotation of the same
        token therefore updates zero rows.

        Returns:
            True if this call rotated the token.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.replaced_by.is_(None),
            )
            .values(revoked_at=now, replaced_by=child_hash, last_used_at=now)
            .returning(RefreshToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def revoke(db: AsyncSession, token_id: int, *, now: datetime) -> bool:
        """Revoke a token if it is not already revoked.

        Returns:
            True if the token changed state.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .returning(RefreshToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def revoke_descendants(
        db: AsyncSession, token: RefreshToken, *, now: datetime
    ) -> int:
        """Revoke every token rotated out of the given one.

        Follows replaced_by links from the given token to the end of its
        chain and revokes each successor that is not already revoked.

        Returns:
            Number of tokens revoked.
        """
        revoked = 0
        seen: set[str] = {token.token_hash}
        next_hash = token.replaced_by
        while next_hash is not None and next_hash not in seen:
            seen.add(next_hash)
            child = await RefreshTokenRepository.get_by_token_hash(db, next_hash)
            if child is None:
                break
            if await RefreshTokenRepository.revoke(db, child.id, now=now):
                revoked += 1
            next_hash = child.replaced_by
        return revoked

    @staticmethod
    async def revoke_all_for_user(
        db: AsyncSession, user_id: uuid.UUID, *, now: datetime
    ) -> int:
        """Revoke every active refresh token of a user.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .returning(RefreshToken.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return len(result.scalars().all())
