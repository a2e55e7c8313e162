import uuid
from typing import List, Optional

from sqlalchemy import select

from models.enums import UserRole
from models.models import User


class UserRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_role(self, role: UserRole) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.role == role, User.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def get_ids_by_role(self, role: UserRole) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(User.id).where(User.role == role, User.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def set_role(self, user: User, role: UserRole) -> User:
        user.role = role
        self.db.add(user)
        await self.db.flush()
        return user
