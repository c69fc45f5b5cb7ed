"""User service layer.

This is the persistence boundary the auth subsystem consumes. Everything that
touches the ``users`` table goes through these static methods; the caller owns
the session and the commit.
"""

import logging
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User

logger = logging.getLogger(__name__)


class UserService:
    """Service for user persistence operations."""

    @staticmethod
    async def exists_by_telegram_id(session: AsyncSession, telegram_id: int) -> bool:
        """Check whether a user with the given Telegram id is registered."""
        stmt = select(exists().where(User.telegram_id == telegram_id))
        result = await session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def create(
        session: AsyncSession,
        telegram_id: int,
        first_name: str,
        last_name: str | None = None,
        username: str | None = None,
    ) -> User:
        """Create a user from Telegram identity data.

        New users never start as administrators; the flag is only ever set
        out-of-band.

        Args:
            session: Database session
            telegram_id: External platform identifier
            first_name: Display first name
            last_name: Optional last name (empty strings are stored as NULL)
            username: Optional Telegram username (empty strings are stored as NULL)

        Returns:
            Created User object (flushed, id assigned)

        """
        user = User(
            telegram_id=telegram_id,
            first_name=first_name,
            last_name=last_name or None,
            username=username or None,
            is_admin=False,
        )
        session.add(user)
        await session.flush()

        logger.info(f"New user provisioned from Telegram login: {user.id} (telegram_id={telegram_id})")
        return user

    @staticmethod
    async def get_by_telegram_id(session: AsyncSession, telegram_id: int) -> User | None:
        """Get user by Telegram id."""
        stmt = select(User).where(User.telegram_id == telegram_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: UUID) -> User | None:
        """Get user by internal id."""
        stmt = select(User).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def save_refresh_token_id(session: AsyncSession, user_id: UUID, refresh_token_id: UUID) -> None:
        """Unconditionally overwrite the user's live refresh token identifier."""
        stmt = update(User).where(User.id == user_id).values(refresh_token_id=refresh_token_id)
        await session.execute(stmt)

    @staticmethod
    async def is_refresh_token_current(session: AsyncSession, user_id: UUID, refresh_token_id: UUID) -> bool:
        """Check whether ``refresh_token_id`` is the identifier stored for the user.

        A NULL stored identifier never matches.
        """
        stmt = select(exists().where(User.id == user_id, User.refresh_token_id == refresh_token_id))
        result = await session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def rotate_refresh_token_id(
        session: AsyncSession, user_id: UUID, expected_id: UUID, new_id: UUID
    ) -> bool:
        """Replace the stored identifier only if it still equals ``expected_id``.

        This is a single conditional UPDATE, so of several concurrent rotations
        presenting the same identifier at most one sees a matching row.

        Returns:
            True if this call performed the swap, False if the identifier had
            already changed (or the user is gone)

        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.refresh_token_id == expected_id)
            .values(refresh_token_id=new_id)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def clear_refresh_token_id(session: AsyncSession, user_id: UUID) -> bool:
        """Revoke the user's session by clearing the stored identifier.

        Returns:
            True if the user exists

        """
        stmt = update(User).where(User.id == user_id).values(refresh_token_id=None)
        result = await session.execute(stmt)
        return result.rowcount == 1
