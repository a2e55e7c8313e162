import logging
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional
from uuid import UUID

from core.date_helper import days_from, utc_today
from core.settings import settings
from email_notify.email_service import (
    send_agent_reminder_email,
    send_customer_reminder_email,
    send_unassigned_warning_email,
)
from models.enums import AppointmentStatus, NotificationType, UserRole
from repos.appointment_repo import AppointmentRepo
from repos.user_repo import UserRepo

from .notification_service import NotificationService

logger = logging.getLogger("reminders")


@dataclass
class Contact:
    id: UUID
    email: str
    full_name: str


@dataclass
class VisitSnapshot:
    id: UUID
    appointment_date: date
    start_time: time
    end_time: time
    property_title: str
    customer: Contact
    agent: Optional[Contact]


def _contact(user) -> Optional[Contact]:
    if user is None:
        return None
    return Contact(id=user.id, email=user.email, full_name=user.full_name)


class ReminderService:
    """Daily read-and-notify jobs.

    Every recipient is handled on its own: a failing notification is logged
    and counted, and the job moves on to the next one.
    """

    def __init__(self, db):
        self.db = db
        self.repo: AppointmentRepo = AppointmentRepo(db)
        self.user_repo: UserRepo = UserRepo(db)
        self.notifications: NotificationService = NotificationService(db)

    def _snapshot(self, appointments) -> List[VisitSnapshot]:
        return [
            VisitSnapshot(
                id=appointment.id,
                appointment_date=appointment.appointment_date,
                start_time=appointment.start_time,
                end_time=appointment.end_time,
                property_title=appointment.property.title,
                customer=_contact(appointment.customer),
                agent=_contact(appointment.agent),
            )
            for appointment in appointments
        ]

    async def _notify(
        self,
        recipient: Contact,
        visit: VisitSnapshot,
        title: str,
        message: str,
        send_email,
        type: NotificationType = NotificationType.APPOINTMENT_REMINDER,
    ) -> bool:
        try:
            await self.notifications.create_notification(
                user_id=recipient.id,
                type=type,
                title=title,
                message=message,
                related_id=visit.id,
            )
        except Exception:
            logger.exception("In-app reminder failed for user %s, appointment %s", recipient.id, visit.id)
            await self.db.rollback()
            return False

        try:
            await send_email()
        except Exception:
            logger.exception("Reminder e-mail failed for %s, appointment %s", recipient.email, visit.id)
            return False
        return True

    async def send_daily_reminders(self, today: date | None = None) -> dict:
        target = days_from(today or utc_today(), 1)
        appointments = await self.repo.get_on_date(
            target, (AppointmentStatus.ACCEPTED, AppointmentStatus.CONFIRMED)
        )
        visits = self._snapshot(appointments)
        logger.info("Found %s appointments for %s", len(visits), target)

        sent = failed = 0
        for visit in visits:
            at = f"{visit.start_time:%H:%M}"
            if visit.customer:
                ok = await self._notify(
                    visit.customer,
                    visit,
                    "Appointment Reminder",
                    f"Reminder: your visit to {visit.property_title} is tomorrow at {at}.",
                    lambda v=visit: send_customer_reminder_email(
                        v.customer.email, v.customer.full_name, v, v.property_title
                    ),
                )
                sent, failed = sent + ok, failed + (not ok)
            if visit.agent:
                ok = await self._notify(
                    visit.agent,
                    visit,
                    "Appointment Reminder",
                    f"Reminder: you have a visit to {visit.property_title} tomorrow at {at}.",
                    lambda v=visit: send_agent_reminder_email(
                        v.agent.email,
                        v.agent.full_name,
                        v,
                        v.property_title,
                        v.customer.full_name,
                    ),
                )
                sent, failed = sent + ok, failed + (not ok)

        return {"date": target, "appointments": len(visits), "sent": sent, "failed": failed}

    async def send_unassigned_warnings(self, today: date | None = None) -> dict:
        target = days_from(today or utc_today(), settings.UNASSIGNED_WARNING_DAYS_AHEAD)
        visits = self._snapshot(await self.repo.get_unassigned_on_date(target))
        if not visits:
            logger.info("No unassigned appointments found for %s", target)
            return {"date": target, "appointments": 0, "sent": 0, "failed": 0}

        admins = [_contact(user) for user in await self.user_repo.get_by_role(UserRole.ADMIN)]
        logger.info(
            "Found %s unassigned appointments due on %s, warning %s admins",
            len(visits),
            target,
            len(admins),
        )

        sent = failed = 0
        for visit in visits:
            for admin in admins:
                ok = await self._notify(
                    admin,
                    visit,
                    "Unassigned Appointment",
                    f"Appointment #{visit.id} for {visit.property_title} on "
                    f"{visit.appointment_date} still has no agent.",
                    lambda v=visit, a=admin: send_unassigned_warning_email(
                        a.email, a.full_name, v, v.property_title
                    ),
                    type=NotificationType.SYSTEM,
                )
                sent, failed = sent + ok, failed + (not ok)

        return {"date": target, "appointments": len(visits), "sent": sent, "failed": failed}
