"""Daily reminder and unassigned-visit warning jobs."""

from datetime import date, time
from unittest.mock import AsyncMock

from sqlalchemy import select

from models.enums import NotificationType
from models.models import Notification
from services.reminder_service import ReminderService

DAY_BEFORE_VISIT = date(2024, 1, 9)


async def _reminders(db, type=NotificationType.APPOINTMENT_REMINDER):
    result = await db.execute(
        select(Notification).where(
            Notification.type == type,
            Notification.title.in_(["Appointment Reminder", "Unassigned Appointment"]),
        )
    )
    return list(result.scalars().all())


async def test_reminds_customer_and_agent_the_day_before(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()

    summary = await ReminderService(db_session).send_daily_reminders(today=DAY_BEFORE_VISIT)

    assert summary == {"date": date(2024, 1, 10), "appointments": 1, "sent": 2, "failed": 0}
    reminders = await _reminders(db_session)
    assert {n.user_id for n in reminders} == {riyadh.customer_id, riyadh.first_user_id}
    assert all(n.related_id == accepted.appointment_id for n in reminders)


async def test_pending_visits_get_no_reminder(db_session, book):
    await book()

    summary = await ReminderService(db_session).send_daily_reminders(today=DAY_BEFORE_VISIT)

    assert summary["appointments"] == 0
    assert await _reminders(db_session) == []


async def test_failed_email_is_counted_and_the_job_continues(
    db_session, riyadh, book_and_accept, monkeypatch
):
    await book_and_accept()
    monkeypatch.setattr(
        "services.reminder_service.send_customer_reminder_email",
        AsyncMock(side_effect=RuntimeError("smtp down")),
    )
    agent_email = AsyncMock(return_value=True)
    monkeypatch.setattr("services.reminder_service.send_agent_reminder_email", agent_email)

    summary = await ReminderService(db_session).send_daily_reminders(today=DAY_BEFORE_VISIT)

    assert summary["sent"] == 1
    assert summary["failed"] == 1
    agent_email.assert_awaited_once()


async def test_unassigned_visits_warn_admins(db_session, riyadh, book):
    created = await book(day=date(2024, 1, 12), start=time(16, 0), end=time(17, 0))

    summary = await ReminderService(db_session).send_unassigned_warnings(
        today=DAY_BEFORE_VISIT
    )

    assert summary["appointments"] == 1
    assert summary["sent"] == 1
    [warning] = await _reminders(db_session, type=NotificationType.SYSTEM)
    assert warning.user_id == riyadh.admin_id
    assert warning.related_id == created["appointment"].id


async def test_assigned_visits_raise_no_warning(db_session, book_and_accept):
    await book_and_accept(day=date(2024, 1, 12))

    summary = await ReminderService(db_session).send_unassigned_warnings(
        today=DAY_BEFORE_VISIT
    )

    assert summary == {"date": date(2024, 1, 12), "appointments": 0, "sent": 0, "failed": 0}
