import logging
import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User

logger = logging.getLogger(__name__)


class UserOperations:
    """Operations for User model."""

    async def get_by_id(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
    ) -> User | None:
        """Get a user by ID."""
        statement = select(User).where(User.id == user_id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        email: str | None = None,
    ) -> User:
        """Get the mirror row for an identity provider user, creating it on first sight."""
        user = await self.get_by_id(db, user_id)
        if user:
            return user

        logger.info(f"Creating user record for {user_id}")
        user = User(id=user_id, email=email)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user


user_ops = UserOperations()
