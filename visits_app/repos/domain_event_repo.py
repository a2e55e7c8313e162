from datetime import datetime
from typing import Iterable, List
from uuid import UUID

from sqlalchemy import and_, or_, select, update

from core.date_helper import utcnow
from models.enums import DomainEventStatus, DomainEventType
from models.models import DomainEvent


class DomainEventRepo:
    def __init__(self, db):
        self.db = db

    async def add(self, event_type: DomainEventType, payload: dict) -> DomainEvent:
        event = DomainEvent(event_type=event_type, payload=payload)
        self.db.add(event)
        await self.db.flush()
        return event

    def _claimable(self, stale_before: datetime | None):
        if stale_before is None:
            return DomainEvent.status == DomainEventStatus.PENDING
        # a DISPATCHING row whose claim is older than the timeout belongs to a dead worker
        return or_(
            DomainEvent.status == DomainEventStatus.PENDING,
            and_(
                DomainEvent.status == DomainEventStatus.DISPATCHING,
                DomainEvent.claimed_at < stale_before,
            ),
        )

    async def get_pending(
        self, limit: int, max_attempts: int, stale_before: datetime | None = None
    ) -> List[DomainEvent]:
        result = await self.db.execute(
            select(DomainEvent)
            .where(
                self._claimable(stale_before),
                DomainEvent.attempts < max_attempts,
            )
            .order_by(DomainEvent.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_ids(self, event_ids: Iterable[UUID]) -> List[DomainEvent]:
        ids = list(event_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(DomainEvent)
            .where(DomainEvent.id.in_(ids))
            .order_by(DomainEvent.created_at)
        )
        return list(result.scalars().all())

    async def get_by_id(self, event_id: UUID) -> DomainEvent | None:
        result = await self.db.execute(
            select(DomainEvent)
            .where(DomainEvent.id == event_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def claim(self, event_id: UUID, stale_before: datetime) -> bool:
        """Mark one event as being dispatched; False when another drain owns it."""
        result = await self.db.execute(
            update(DomainEvent)
            .where(DomainEvent.id == event_id, self._claimable(stale_before))
            .values(status=DomainEventStatus.DISPATCHING, claimed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_notified(self, event: DomainEvent) -> None:
        event.notified_at = utcnow()

    def release(self, event: DomainEvent) -> None:
        event.status = DomainEventStatus.PENDING
        event.claimed_at = None

    def mark_dispatched(self, event: DomainEvent) -> None:
        event.status = DomainEventStatus.DISPATCHED
        event.attempts = (event.attempts or 0) + 1
        event.dispatched_at = utcnow()
        event.last_error = None

    def mark_failed(self, event: DomainEvent, error: str, max_attempts: int) -> None:
        event.attempts = (event.attempts or 0) + 1
        event.last_error = error[:1000]
        event.claimed_at = None
        if event.attempts >= max_attempts:
            event.status = DomainEventStatus.FAILED
        else:
            event.status = DomainEventStatus.PENDING
