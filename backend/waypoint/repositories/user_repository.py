"""Repository for the users table.

Establishes the pattern the other repositories follow.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.models.user import User


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_user_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by external identifier.

        Args:
            db: Async database session.
            user_id: External UUID (the access token sub claim).

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.user_id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive)."""
        stmt = select(User).where(User.email == email.lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(db: AsyncSession, *, email: str) -> User:
        """Create a new, unverified user.

        Email is normalized to lowercase before storage.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(email=email.lower(), email_verified=False)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_or_create_by_email(db: AsyncSession, email: str) -> User:
        """Return the user for an email, creating it on first sight.

        The insert runs in a savepoint. Losing a concurrent insert race
        (unique violation) rolls back only the savepoint and re-reads the
        row the other request created.

        Args:
            db: Async database session.
            email: Normalized email address.

        Returns:
            Existing or newly created User.
        """
        existing = await UserRepository.get_by_email(db, email)
        if existing is not None:
            return existing
        try:
            async with db.begin_nested():
                return await UserRepository.create(db, email=email)
        except IntegrityError:
            user = await UserRepository.get_by_email(db, email)
            if user is None:
                raise
            return user

    @staticmethod
    async def mark_login(
        db: AsyncSession, user_id: uuid.UUID, *, now: datetime
    ) -> User | None:
        """Record a successful magic-link sign-in.

        Sets email_verified and last_login_at.

        Returns:
            Updated User, or None if the user does not exist.
        """
        stmt = (
            update(User)
            .where(User.user_id == user_id)
            .values(email_verified=True, last_login_at=now)
            .returning(User)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
