import uuid

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.mapper import ORMMapper
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import NotificationOut, PaginatedNotificationsOut
from services.notification_service import NotificationService

router = APIRouter(tags=["Notifications"])


@cbv(router=router)
class NotificationRoutes:
    @router.get("/notifications/me", response_model=PaginatedNotificationsOut)
    @safe_handler
    async def mine(
        self,
        unread_only: bool = False,
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await NotificationService(db).list_for_user(
            current_user, unread_only=unread_only, page=page, per_page=per_page
        )
        return ORMMapper.one(result, PaginatedNotificationsOut)

    @router.patch("/notifications/read-all")
    @safe_handler
    async def read_all(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).mark_all_as_read(current_user)

    @router.patch("/notifications/{notification_id}/read", response_model=NotificationOut)
    @safe_handler
    async def read(
        self,
        notification_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        notification = await NotificationService(db).mark_as_read(
            notification_id, current_user
        )
        return ORMMapper.one(notification, NotificationOut)
