"""
Repository for User entity database operations.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from code_deployer.core.exceptions import UserAlreadyExistsError, UserNotFoundError
from code_deployer.models.user import User
from code_deployer.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User database operations."""

    model = User

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email address."""
        result = await self.db.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def get_by_api_key_prefix(self, prefix: str) -> Optional[User]:
        """Get the active user whose API key has the given prefix."""
        result = await self.db.execute(
            select(User)
            .where(User.api_key_prefix == prefix)
            .where(User.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        name: str,
        api_key_prefix: str,
        api_key_hash: str,
    ) -> User:
        """
        Create a new user.

        Raises:
            UserAlreadyExistsError: If the email is taken
        """
        if await self.get_by_email(email):
            raise UserAlreadyExistsError(email)

        user = User(
            email=email,
            name=name,
            api_key_prefix=api_key_prefix,
            api_key_hash=api_key_hash,
            is_active=True,
        )
        return await self.create(user)

    async def rotate_api_key(
        self,
        email: str,
        api_key_prefix: str,
        api_key_hash: str,
    ) -> User:
        """
        Replace a user's API key.

        Raises:
            UserNotFoundError: If no user has this email
        """
        user = await self.get_by_email(email)
        if not user:
            raise UserNotFoundError(email)

        user.api_key_prefix = api_key_prefix
        user.api_key_hash = api_key_hash
        user.is_active = True
        await self._commit("rotate api key")
        await self.db.refresh(user)
        return user

    async def touch_last_used(self, user_id: UUID) -> None:
        """Record that the user's API key was just used."""
        user = await self.get_by_id(user_id)
        if user:
            user.last_used_at = datetime.utcnow()
            await self._commit("touch user last_used_at")
