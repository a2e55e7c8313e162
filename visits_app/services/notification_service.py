import logging
import uuid

from fastapi import HTTPException

from core.paginate import paginator
from models.enums import NotificationChannel, NotificationStatus, NotificationType
from models.models import Notification
from repos.notification_repo import NotificationRepo

logger = logging.getLogger(__name__)


def build_notification(
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    channel: NotificationChannel = NotificationChannel.IN_APP,
    related_id: uuid.UUID | None = None,
) -> Notification:
    return Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        channel=channel,
        status=NotificationStatus.DELIVERED,
        related_id=related_id,
        is_read=False,
    )


class NotificationService:
    def __init__(self, db):
        self.db = db
        self.repo: NotificationRepo = NotificationRepo(db)

    async def create_notification(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        related_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = await self.repo.add(
            build_notification(user_id, type, title, message, channel, related_id)
        )
        await self.db.commit()
        return notification

    async def list_for_user(
        self, current_user, unread_only: bool = False, page: int = 1, per_page: int = 20
    ) -> dict:
        items, total = await self.repo.list_for_user(
            current_user.id, unread_only=unread_only, page=page, per_page=per_page
        )
        return paginator.page_of(items, page, per_page, total)

    async def mark_as_read(self, notification_id: uuid.UUID, current_user) -> Notification:
        notification = await self.repo.get_for_user(notification_id, current_user.id)
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        if not notification.is_read:
            notification.is_read = True
            await self.db.commit()
        return notification

    async def mark_all_as_read(self, current_user) -> dict:
        updated = await self.repo.mark_all_read(current_user.id)
        await self.db.commit()
        logger.info("Marked %s notifications as read for user %s", updated, current_user.id)
        return {"updated": updated}
