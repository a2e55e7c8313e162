import dramatiq

from core.get_db import AsyncSessionLocal
from services.reminder_service import ReminderService


def create_daily_reminder_task():
    @dramatiq.actor(
        actor_name="send_daily_appointment_reminders",
        queue_name="appointment_reminders",
        max_retries=0,
        time_limit=600_000,
    )
    async def send_daily_reminders():
        async with AsyncSessionLocal() as session:
            summary = await ReminderService(session).send_daily_reminders()
            return {**summary, "date": summary["date"].isoformat()}

    return send_daily_reminders


def create_unassigned_warning_task():
    @dramatiq.actor(
        actor_name="send_unassigned_appointment_warnings",
        queue_name="appointment_reminders",
        max_retries=0,
        time_limit=600_000,
    )
    async def send_unassigned_warnings():
        async with AsyncSessionLocal() as session:
            summary = await ReminderService(session).send_unassigned_warnings()
            return {**summary, "date": summary["date"].isoformat()}

    return send_unassigned_warnings
