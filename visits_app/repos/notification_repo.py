from typing import List, Tuple
from uuid import UUID

from sqlalchemy import func, select, update

from models.models import Notification


class NotificationRepo:
    def __init__(self, db):
        self.db = db

    async def add(self, notification: Notification) -> Notification:
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def add_many(self, notifications: List[Notification]) -> List[Notification]:
        self.db.add_all(notifications)
        await self.db.flush()
        return notifications

    async def get_for_user(self, notification_id: UUID, user_id: UUID) -> Notification | None:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: UUID, unread_only: bool = False, page: int = 1, per_page: int = 20
    ) -> Tuple[List[Notification], int]:
        filters = [Notification.user_id == user_id]
        if unread_only:
            filters.append(Notification.is_read.is_(False))
        result = await self.db.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        total = await self.db.scalar(select(func.count(Notification.id)).where(*filters))
        return list(result.scalars().all()), total or 0

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
