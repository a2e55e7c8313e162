import logging
from typing import List
from uuid import UUID

from models.enums import DomainEventType
from models.models import DomainEvent
from repos.domain_event_repo import DomainEventRepo

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class EventOutbox:
    """Appends domain events inside the caller's transaction.

    Nothing is published here; rows become visible to the dispatcher only
    once the owning transaction commits. The ids recorded by this instance
    are kept so the caller can turn exactly those events into notifications
    after its commit.
    """

    def __init__(self, db):
        self.repo: DomainEventRepo = DomainEventRepo(db)
        self.recorded: List[UUID] = []

    async def record(self, event_type: DomainEventType, payload: dict) -> DomainEvent:
        event = await self.repo.add(event_type, _jsonable(payload))
        self.recorded.append(event.id)
        logger.debug("Recorded %s event %s", event_type.value, event.id)
        return event

    def take_recorded(self) -> List[UUID]:
        """Ids recorded since the last call; ids of rolled-back rows simply match nothing."""
        recorded, self.recorded = self.recorded, []
        return recorded
