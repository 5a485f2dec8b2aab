from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import uuid

from filebox.models.user import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        email: str,
        hashed_password: str,
        username: Optional[str] = None,
        is_admin: bool = False
    ) -> User:
        """Create a new user; raises IntegrityError on duplicate email/username"""
        db_user = User(
            email=email,
            username=username,
            hashed_password=hashed_password,
            is_admin=is_admin
        )
        self.db.add(db_user)
        await self.db.flush()
        return db_user

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID"""
        query = select(User).filter(User.id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        query = select(User).filter(User.email == email)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        """Get user by username"""
        query = select(User).filter(User.username == username)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def has_admin(self) -> bool:
        query = select(User.id).filter(User.is_admin.is_(True)).limit(1)
        result = await self.db.execute(query)
        return result.first() is not None

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(User))
        return result.scalar_one()
