import logging
import uuid
from typing import List

from core.date_helper import seconds_ago
from core.event_publish import publish_event
from core.settings import settings
from models.enums import AgentApprovalStatus, DomainEventType, NotificationType, UserRole
from models.models import DomainEvent, Notification
from repos.domain_event_repo import DomainEventRepo
from repos.notification_repo import NotificationRepo
from repos.user_repo import UserRepo

from .notification_service import build_notification

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "confirmed": "Your appointment has been confirmed.",
    "completed": "Your appointment has been marked as completed.",
    "expired": "Your appointment has expired.",
    "cancelled": "Your appointment has been cancelled.",
}


def _uuid(value) -> uuid.UUID | None:
    return uuid.UUID(str(value)) if value else None


class NotificationDispatcher:
    """Turns committed domain events into notifications and broker messages."""

    def __init__(self, db):
        self.db = db
        self.event_repo: DomainEventRepo = DomainEventRepo(db)
        self.notification_repo: NotificationRepo = NotificationRepo(db)
        self.user_repo: UserRepo = UserRepo(db)
        self.handlers = {
            DomainEventType.APPOINTMENT_CREATED: self._appointment_created,
            DomainEventType.APPOINTMENT_ASSIGNED: self._appointment_assigned,
            DomainEventType.APPOINTMENT_STATUS_CHANGED: self._status_changed,
            DomainEventType.COMMISSION_CREDITED: self._commission_credited,
            DomainEventType.PAYOUT_PROCESSED: self._payout_processed,
            DomainEventType.VISIT_AMOUNT_UPDATED: self._visit_amount_updated,
            DomainEventType.AGENT_REGISTERED: self._agent_registered,
            DomainEventType.AGENT_REVIEWED: self._agent_reviewed,
        }

    async def dispatch_pending(self, limit: int | None = None) -> int:
        """Notify and publish every claimable event; returns how many were published."""
        try:
            events = await self.event_repo.get_pending(
                limit or settings.OUTBOX_BATCH_SIZE,
                settings.OUTBOX_MAX_ATTEMPTS,
                stale_before=self._stale_before(),
            )
        except Exception:
            logger.exception("Failed to load pending domain events")
            await self.db.rollback()
            return 0
        return await self._run([event.id for event in events], publish=True)

    async def notify_recorded(self, event_ids: List[uuid.UUID]) -> int:
        """Create the in-app notifications of freshly committed events.

        Publishing is left to the periodic drain so the caller never waits on
        the broker.
        """
        if not event_ids:
            return 0
        return await self._run(event_ids, publish=False)

    async def _run(self, event_ids: List[uuid.UUID], publish: bool) -> int:
        handled = 0
        for event_id in event_ids:
            outcome = await self._dispatch_one(event_id, publish)
            if outcome is None:
                # session was rolled back; the periodic drain picks up the rest
                break
            handled += int(outcome)
        return handled

    def _stale_before(self):
        return seconds_ago(settings.OUTBOX_CLAIM_TIMEOUT_SECONDS)

    async def _dispatch_one(self, event_id: uuid.UUID, publish: bool) -> bool | None:
        try:
            claimed = await self.event_repo.claim(event_id, self._stale_before())
            await self.db.commit()
        except Exception:
            logger.exception("Failed to claim domain event %s", event_id)
            await self.db.rollback()
            return None
        if not claimed:
            logger.info("Domain event %s is handled by another dispatcher", event_id)
            return False

        event = await self.event_repo.get_by_id(event_id)
        event_type = event.event_type

        if event.notified_at is None:
            try:
                notifications = await self._build(event)
                await self.notification_repo.add_many(notifications)
                self.event_repo.mark_notified(event)
            except Exception as exc:
                logger.exception(
                    "Failed to build notifications for %s event %s", event_type.value, event_id
                )
                await self.db.rollback()
                event = await self.event_repo.get_by_id(event_id)
                self.event_repo.mark_failed(event, repr(exc), settings.OUTBOX_MAX_ATTEMPTS)
                return False if await self._commit() else None
            logger.info(
                "Created %s notifications for %s event %s",
                len(notifications),
                event_type.value,
                event_id,
            )

        if not publish:
            self.event_repo.release(event)
            return True if await self._commit() else None

        # notifications are kept even when the broker is down
        if not await self._commit():
            return None
        try:
            await publish_event(event_type.value, {"event_id": str(event_id), **event.payload})
        except Exception as exc:
            logger.exception("Failed to publish %s event %s", event_type.value, event_id)
            self.event_repo.mark_failed(event, repr(exc), settings.OUTBOX_MAX_ATTEMPTS)
            return False if await self._commit() else None

        self.event_repo.mark_dispatched(event)
        if not await self._commit():
            return None
        logger.info("Dispatched %s event %s", event_type.value, event_id)
        return True

    async def _commit(self) -> bool | None:
        try:
            await self.db.commit()
            return True
        except Exception:
            logger.exception("Failed to persist outbox dispatch state")
            await self.db.rollback()
            return None

    async def _build(self, event: DomainEvent) -> List[Notification]:
        handler = self.handlers.get(event.event_type)
        if handler is None:
            logger.warning("No notification handler for %s", event.event_type)
            return []
        return await handler(event.payload)

    async def _for_admins(self, **fields) -> List[Notification]:
        admin_ids = await self.user_repo.get_ids_by_role(UserRole.ADMIN)
        return [build_notification(user_id=admin_id, **fields) for admin_id in admin_ids]

    async def _appointment_created(self, payload: dict) -> List[Notification]:
        appointment_id = _uuid(payload["appointment_id"])
        notifications = [
            build_notification(
                user_id=_uuid(agent_user_id),
                type=NotificationType.SYSTEM,
                title="New Appointment Request",
                message="A customer wants to visit a property in your area. "
                "Please accept or reject the request.",
                related_id=appointment_id,
            )
            for agent_user_id in payload.get("agent_user_ids", [])
        ]
        notifications.append(
            build_notification(
                user_id=_uuid(payload["customer_id"]),
                type=NotificationType.APPOINTMENT_REMINDER,
                title="Appointment Created",
                message="Your appointment request was sent to agents in the area.",
                related_id=appointment_id,
            )
        )
        notifications += await self._for_admins(
            type=NotificationType.SYSTEM,
            title="New Appointment Created",
            message="A customer created an appointment for property: "
            f"{payload.get('property_title')}",
            related_id=appointment_id,
        )
        return notifications

    async def _appointment_assigned(self, payload: dict) -> List[Notification]:
        appointment_id = _uuid(payload["appointment_id"])
        agent_name = payload.get("agent_name")
        if payload.get("assigned_by") == "admin":
            return [
                build_notification(
                    user_id=_uuid(payload["customer_id"]),
                    type=NotificationType.APPOINTMENT_REMINDER,
                    title="Agent Assigned to Your Appointment",
                    message=f"Agent {agent_name} has been assigned to your "
                    "property viewing appointment.",
                    related_id=appointment_id,
                ),
                build_notification(
                    user_id=_uuid(payload["agent_user_id"]),
                    type=NotificationType.APPOINTMENT_REMINDER,
                    title="You Have Been Assigned to a New Appointment",
                    message="You have been assigned to an appointment with the "
                    f"client {payload.get('customer_name')}.",
                    related_id=appointment_id,
                ),
            ]

        notifications = [
            build_notification(
                user_id=_uuid(payload["customer_id"]),
                type=NotificationType.APPOINTMENT_REMINDER,
                title="Agent Accepted Appointment",
                message=f"Agent {agent_name} accepted your appointment request.",
                related_id=appointment_id,
            )
        ]
        notifications += await self._for_admins(
            type=NotificationType.SYSTEM,
            title="Appointment Assigned",
            message=f"Appointment has been assigned to agent {agent_name}.",
            related_id=appointment_id,
        )
        return notifications

    async def _status_changed(self, payload: dict) -> List[Notification]:
        message = STATUS_MESSAGES.get(payload.get("new_status"))
        if not message:
            return []
        appointment_id = _uuid(payload["appointment_id"])
        recipients = [_uuid(payload["customer_id"]), _uuid(payload.get("agent_user_id"))]
        return [
            build_notification(
                user_id=user_id,
                type=NotificationType.APPOINTMENT_REMINDER,
                title="Appointment Status Updated",
                message=message,
                related_id=appointment_id,
            )
            for user_id in recipients
            if user_id is not None
        ]

    async def _commission_credited(self, payload: dict) -> List[Notification]:
        appointment_id = _uuid(payload["appointment_id"])
        currency = payload.get("currency", settings.CURRENCY)
        amount = payload["amount"]
        notifications = [
            build_notification(
                user_id=_uuid(payload["agent_user_id"]),
                type=NotificationType.SYSTEM,
                title="Commission Added",
                message=f"{currency} {amount} has been added to your wallet for "
                f"completing appointment #{appointment_id}. You now have "
                f"{currency} {payload['wallet_balance']} available in your wallet.",
                related_id=appointment_id,
            )
        ]
        notifications += await self._for_admins(
            type=NotificationType.SYSTEM,
            title="Agent Commission Paid",
            message=f"Agent {payload.get('agent_name')} received {currency} {amount} "
            f"commission for completed appointment #{appointment_id}",
            related_id=appointment_id,
        )
        return notifications

    async def _payout_processed(self, payload: dict) -> List[Notification]:
        currency = payload.get("currency", settings.CURRENCY)
        return [
            build_notification(
                user_id=_uuid(payload["agent_user_id"]),
                type=NotificationType.WALLET,
                title="Payout Processed",
                message=f"A payout of {currency} {payload['amount']} has been sent. "
                f"Remaining wallet balance: {currency} {payload['wallet_balance']}.",
                related_id=_uuid(payload.get("payment_id")),
            )
        ]

    async def _visit_amount_updated(self, payload: dict) -> List[Notification]:
        currency = payload.get("currency", settings.CURRENCY)
        return [
            build_notification(
                user_id=_uuid(payload["agent_user_id"]),
                type=NotificationType.WALLET,
                title="Visit Amount Updated",
                message=f"Your visit amount is now {currency} {payload['new_amount']} "
                "per completed appointment.",
                related_id=_uuid(payload.get("agent_id")),
            )
        ]

    async def _agent_registered(self, payload: dict) -> List[Notification]:
        return await self._for_admins(
            type=NotificationType.AGENT_NEW_REGISTRATION,
            title="New Agent Registration",
            message=f"{payload.get('full_name')} applied to become an agent.",
            related_id=_uuid(payload.get("agent_id")),
        )

    async def _agent_reviewed(self, payload: dict) -> List[Notification]:
        approved = payload.get("status") == AgentApprovalStatus.APPROVED.value
        message = (
            "Your agent application has been approved."
            if approved
            else "Your agent application has been rejected."
        )
        if payload.get("kyc_notes"):
            message = f"{message} Notes: {payload['kyc_notes']}"
        return [
            build_notification(
                user_id=_uuid(payload["user_id"]),
                type=NotificationType.AGENT_APPROVED
                if approved
                else NotificationType.AGENT_REJECTED,
                title="Agent Application Reviewed",
                message=message,
                related_id=_uuid(payload.get("agent_id")),
            )
        ]


async def dispatch_after_commit(db, event_ids: List[uuid.UUID]) -> None:
    try:
        await NotificationDispatcher(db).notify_recorded(event_ids)
    except Exception:
        logger.exception("Notification dispatch failed after commit")
