import dramatiq

from core.get_db import AsyncSessionLocal
from services.notification_dispatcher import NotificationDispatcher


def create_outbox_drain_task():
    @dramatiq.actor(
        actor_name="drain_event_outbox",
        queue_name="event_outbox",
        max_retries=3,
        time_limit=120_000,
    )
    async def drain_event_outbox():
        async with AsyncSessionLocal() as session:
            return await NotificationDispatcher(session).dispatch_pending()

    return drain_event_outbox
