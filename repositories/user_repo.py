import uuid
from typing import Optional

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import UserRole
from core.exceptions import ConflictError, NotFoundError
from models.user import User
from repositories.base import BaseRepository
from utils.retry import retry_reads


class UserRepository(BaseRepository):
    """Repository for User operations (data access only)"""

    def __init__(self, db: AsyncSession):
        super().__init__(db)

    @retry_reads
    async def get_by_id(self, user_id: str) -> Optional[User]:
        async with self._reading("user lookup"):
            result = await self.db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    @retry_reads
    async def get_by_email(self, email: str) -> Optional[User]:
        async with self._reading("user lookup by email"):
            result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
            return result.scalar_one_or_none()

    async def create(self, email: str, hashed_password: str, role: UserRole = UserRole.USER) -> User:
        """Insert a user; ConflictError if the email is taken."""
        email = email.strip().lower()
        if await self.get_by_email(email) is not None:
            raise ConflictError("A user with this email already exists")
        user_id = str(uuid.uuid4())
        try:
            async with self._writing("user create"):
                await self.db.execute(
                    insert(User).values(
                        id=user_id,
                        email=email,
                        role=role.value,
                        hashed_password=hashed_password,
                    )
                )
        except IntegrityError as e:
            raise ConflictError("A user with this email already exists") from e
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user
