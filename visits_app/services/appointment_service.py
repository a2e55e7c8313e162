import logging
import uuid

from core.check_permission import CheckRolePermission
from core.date_helper import combine_date_time, utcnow
from core.errors import (
    AgentNotFound,
    AgentScheduleConflict,
    AlreadyInTargetStatus,
    AlreadyProcessed,
    AppointmentAlreadyAssigned,
    AppointmentNotFound,
    BadRequestError,
    CommissionAlreadyApplied,
    DuplicateBookingConflict,
    Forbidden,
    ForbiddenError,
    InvalidTimeRange,
    NoAgentsAvailable,
    PropertyNotFound,
    RequestNotFound,
    UserNotFound,
)
from core.paginate import paginator
from models.enums import (
    AgentApprovalStatus,
    AppointmentStatus,
    DomainEventType,
    SETTLEABLE_STATUSES,
    TERMINAL_STATUSES,
    UserRole,
)
from models.models import AgentAppointmentRequest, Appointment
from repos.agent_repo import AgentRepo
from repos.appointment_repo import AppointmentRepo
from repos.appointment_request_repo import AppointmentRequestRepo
from repos.property_repo import PropertyRepo
from repos.status_history_repo import StatusHistoryRepo
from repos.user_repo import UserRepo

from .agent_matching import AgentMatcher
from .event_outbox import EventOutbox
from .notification_dispatcher import dispatch_after_commit
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

CONFIRMED_SIDE = (
    AppointmentStatus.ACCEPTED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.EXPIRED,
)
PENDING_SIDE = (AppointmentStatus.PENDING, AppointmentStatus.REJECTED)


class AppointmentService:
    def __init__(self, db):
        self.db = db
        self.repo: AppointmentRepo = AppointmentRepo(db)
        self.request_repo: AppointmentRequestRepo = AppointmentRequestRepo(db)
        self.history_repo: StatusHistoryRepo = StatusHistoryRepo(db)
        self.property_repo: PropertyRepo = PropertyRepo(db)
        self.user_repo: UserRepo = UserRepo(db)
        self.agent_repo: AgentRepo = AgentRepo(db)
        self.matcher: AgentMatcher = AgentMatcher(db)
        self.outbox: EventOutbox = EventOutbox(db)
        self.wallet: WalletService = WalletService(db, outbox=self.outbox)
        self.permission: CheckRolePermission = CheckRolePermission()

    def _status_event(self, appointment: Appointment, old_status, new_status, agent_user_id=None):
        return {
            "appointment_id": appointment.id,
            "customer_id": appointment.customer_id,
            "agent_user_id": agent_user_id or appointment.agent_id,
            "old_status": old_status.value,
            "new_status": new_status.value,
        }

    async def create_appointment(self, data, current_user) -> dict:
        await self.permission.check_roles(current_user, UserRole.CUSTOMER, UserRole.ADMIN)

        if current_user.role == UserRole.ADMIN:
            if not data.customer_id:
                raise BadRequestError("customer_id is required when an admin books a visit")
            customer_id = data.customer_id
        else:
            customer_id = current_user.id

        start = combine_date_time(data.appointment_date, data.start_time)
        end = combine_date_time(data.appointment_date, data.end_time)
        if end <= start:
            raise InvalidTimeRange()

        property = await self.property_repo.get_by_id(data.property_id)
        if not property:
            raise PropertyNotFound()

        customer = await self.user_repo.get_by_id(customer_id)
        if not customer:
            raise UserNotFound("Customer not found")

        overlapping = await self.repo.find_customer_overlap(
            customer_id=customer.id,
            property_id=property.id,
            appointment_date=data.appointment_date,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        if overlapping:
            raise DuplicateBookingConflict()

        eligible = await self.matcher.find_eligible_agents(property)

        try:
            appointment = await self.repo.add(
                Appointment(
                    property_id=property.id,
                    customer_id=customer.id,
                    agent_id=None,
                    appointment_date=data.appointment_date,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    status=AppointmentStatus.PENDING,
                    notes=data.notes,
                )
            )
            appointment_id = appointment.id

            if not eligible:
                appointment.status = AppointmentStatus.REJECTED
                await self.history_repo.log_status_change(
                    appointment_id=appointment_id,
                    old_status=AppointmentStatus.PENDING,
                    new_status=AppointmentStatus.REJECTED,
                    changed_by=current_user.id,
                    notes="No agents available for this property location.",
                )
            else:
                agent_user_ids = [agent.user_id for agent in eligible]
                await self.request_repo.add_many(appointment_id, agent_user_ids)
                await self.outbox.record(
                    DomainEventType.APPOINTMENT_CREATED,
                    {
                        "appointment_id": appointment_id,
                        "customer_id": customer.id,
                        "property_id": property.id,
                        "property_title": property.title,
                        "agent_user_ids": agent_user_ids,
                    },
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if not eligible:
            logger.warning(
                "No eligible agents for property %s, appointment %s rejected",
                property.id,
                appointment_id,
            )
            raise NoAgentsAvailable()

        logger.info(
            "Appointment %s created and offered to %s agents", appointment_id, len(eligible)
        )
        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return {
            "appointment": await self.repo.get_by_id(appointment_id),
            "notified_agents": len(eligible),
        }

    async def respond_to_request(self, request_id: uuid.UUID, data, current_user) -> dict:
        request = await self.request_repo.get_by_id(request_id)
        if not request:
            raise RequestNotFound("Request not found")

        agent = await self.agent_repo.get_by_user_id(current_user.id)
        if not agent:
            raise AgentNotFound()

        if request.agent_id != current_user.id:
            raise Forbidden()

        if request.status != AppointmentStatus.PENDING:
            raise AlreadyProcessed()

        appointment = await self.repo.get_by_id(request.appointment_id)
        appointment_id = appointment.id
        old_status = appointment.status
        accepted = data.status == AppointmentStatus.ACCEPTED

        try:
            if accepted:
                clash = await self.repo.find_agent_overlap(
                    agent_user_id=current_user.id,
                    appointment_date=appointment.appointment_date,
                    start_time=appointment.start_time,
                    end_time=appointment.end_time,
                    exclude_id=appointment_id,
                )
                if clash:
                    raise AgentScheduleConflict(
                        "You already have another appointment at this time: "
                        f"{clash.appointment_date} {clash.start_time}-{clash.end_time}"
                    )

                if not await self.repo.claim_for_agent(appointment_id, current_user.id):
                    raise AppointmentAlreadyAssigned()
                if not await self.request_repo.transition(
                    request.id, AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED
                ):
                    raise AlreadyProcessed()
                rejected = await self.request_repo.reject_pending_siblings(
                    appointment_id, winner_id=request.id
                )
                new_status = AppointmentStatus.CONFIRMED
                logger.info(
                    "Agent %s won appointment %s, %s sibling request(s) rejected",
                    current_user.id,
                    appointment_id,
                    rejected,
                )
            else:
                if not await self.request_repo.transition(
                    request.id, AppointmentStatus.PENDING, data.status
                ):
                    raise AlreadyProcessed()
                new_status = old_status

            await self.history_repo.log_status_change(
                appointment_id=appointment_id,
                old_status=old_status,
                new_status=new_status,
                changed_by=current_user.id,
                notes=data.notes,
            )

            if accepted:
                await self.outbox.record(
                    DomainEventType.APPOINTMENT_ASSIGNED,
                    {
                        "appointment_id": appointment_id,
                        "customer_id": appointment.customer_id,
                        "agent_user_id": current_user.id,
                        "agent_name": current_user.full_name,
                        "assigned_by": "agent",
                    },
                )
                await self.outbox.record(
                    DomainEventType.APPOINTMENT_STATUS_CHANGED,
                    self._status_event(appointment, old_status, new_status, current_user.id),
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return {
            "request": await self.request_repo.get_by_id(request_id),
            "appointment": await self.repo.get_by_id(appointment_id),
        }

    async def update_final_status(
        self, request_id: uuid.UUID, status: AppointmentStatus, current_user, notes=None
    ) -> dict:
        await self.permission.check_roles(current_user, UserRole.ADMIN, UserRole.AGENT)
        if status not in (AppointmentStatus.COMPLETED, AppointmentStatus.EXPIRED):
            raise BadRequestError("Final status must be completed or expired")

        try:
            request = await self.request_repo.get_by_id(request_id, lock=True)
            if request and current_user.role != UserRole.ADMIN:
                if request.agent_id != current_user.id:
                    raise Forbidden()
            if (
                request
                and status == AppointmentStatus.COMPLETED
                and request.is_commission_added
            ):
                raise CommissionAlreadyApplied()
            if not request or request.status != AppointmentStatus.ACCEPTED:
                raise RequestNotFound()

            appointment = await self.repo.get_by_id(request.appointment_id, lock=True)
            appointment_id = appointment.id
            old_status = appointment.status
            if old_status == status:
                raise AlreadyInTargetStatus(status.value)
            if old_status not in SETTLEABLE_STATUSES:
                raise BadRequestError(
                    f"Appointment is {old_status.value} and cannot be settled."
                )

            if status == AppointmentStatus.COMPLETED:
                await self.wallet.credit_commission(request, appointment, current_user.id)
            else:
                await self.wallet.record_expired_visit(request)

            appointment.status = status
            request.status = status
            await self.db.flush()

            await self.history_repo.log_status_change(
                appointment_id=appointment_id,
                old_status=old_status,
                new_status=status,
                changed_by=current_user.id,
                notes=notes,
            )
            await self.outbox.record(
                DomainEventType.APPOINTMENT_STATUS_CHANGED,
                self._status_event(appointment, old_status, status, request.agent_id),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Appointment %s settled as %s", appointment_id, status.value)
        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return {
            "request": await self.request_repo.get_by_id(request_id),
            "appointment": await self.repo.get_by_id(appointment_id),
        }

    async def assign_agent(
        self, appointment_id: uuid.UUID, agent_user_id: uuid.UUID, current_user
    ) -> Appointment:
        await self.permission.check_admin(current_user)

        appointment = await self.repo.get_by_id(appointment_id)
        if not appointment:
            raise AppointmentNotFound()
        if appointment.status in TERMINAL_STATUSES:
            raise BadRequestError(f"Appointment is already {appointment.status.value}.")
        if appointment.agent_id == agent_user_id:
            raise BadRequestError("Agent is already assigned to this appointment.")

        agent = await self.agent_repo.get_by_user_id(agent_user_id)
        if not agent or agent.status != AgentApprovalStatus.APPROVED:
            raise AgentNotFound()

        clash = await self.repo.find_agent_overlap(
            agent_user_id=agent_user_id,
            appointment_date=appointment.appointment_date,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            exclude_id=appointment.id,
        )
        if clash:
            raise AgentScheduleConflict(
                "Agent already has another appointment at this time: "
                f"{clash.appointment_date} {clash.start_time}-{clash.end_time}"
            )

        old_status = appointment.status
        previous_agent_id = appointment.agent_id
        try:
            if previous_agent_id is not None:
                previous = await self.request_repo.get_for_agent(
                    appointment.id, previous_agent_id
                )
                if previous is not None:
                    await self.request_repo.transition(
                        previous.id, AppointmentStatus.ACCEPTED, AppointmentStatus.CANCELLED
                    )

            request = await self.request_repo.get_for_agent(appointment.id, agent_user_id)
            if request is None:
                request = await self.request_repo.add(
                    AgentAppointmentRequest(
                        appointment_id=appointment.id,
                        agent_id=agent_user_id,
                        status=AppointmentStatus.ACCEPTED,
                        responded_at=utcnow(),
                    )
                )
            else:
                request.status = AppointmentStatus.ACCEPTED
                request.responded_at = utcnow()
            await self.request_repo.reject_pending_siblings(appointment.id, winner_id=request.id)

            appointment.agent_id = agent_user_id
            if old_status in (AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED):
                appointment.status = AppointmentStatus.CONFIRMED
            await self.db.flush()

            await self.history_repo.log_status_change(
                appointment_id=appointment.id,
                old_status=old_status,
                new_status=appointment.status,
                changed_by=current_user.id,
                notes=f"Agent {agent.user.full_name} assigned by admin",
            )
            await self.outbox.record(
                DomainEventType.APPOINTMENT_ASSIGNED,
                {
                    "appointment_id": appointment.id,
                    "customer_id": appointment.customer_id,
                    "customer_name": appointment.customer.full_name,
                    "agent_user_id": agent_user_id,
                    "agent_name": agent.user.full_name,
                    "assigned_by": "admin",
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Admin %s assigned agent %s to %s", current_user.id, agent_user_id, appointment_id)
        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return await self.repo.get_by_id(appointment_id)

    async def update_status(
        self, appointment_id: uuid.UUID, status: AppointmentStatus, current_user, notes=None
    ) -> Appointment:
        if status == AppointmentStatus.COMPLETED:
            raise BadRequestError("Use the final-status endpoint to complete an appointment")

        appointment = await self.repo.get_by_id(appointment_id)
        if not appointment:
            raise AppointmentNotFound()

        if current_user.role != UserRole.ADMIN:
            is_owner = appointment.customer_id == current_user.id
            if not (is_owner and status == AppointmentStatus.CANCELLED):
                raise ForbiddenError("Only admins can change this appointment's status")

        old_status = appointment.status
        if old_status == status:
            raise AlreadyInTargetStatus(status.value)
        if old_status in TERMINAL_STATUSES:
            raise BadRequestError(f"Appointment is already {old_status.value}.")

        try:
            appointment.status = status
            await self.db.flush()
            if status in (
                AppointmentStatus.CANCELLED,
                AppointmentStatus.EXPIRED,
                AppointmentStatus.REJECTED,
            ):
                await self.request_repo.reject_pending_siblings(appointment.id)
                # the winning request must not stay settleable
                await self.request_repo.cancel_accepted(appointment.id)

            await self.history_repo.log_status_change(
                appointment_id=appointment.id,
                old_status=old_status,
                new_status=status,
                changed_by=current_user.id,
                notes=notes,
            )
            await self.outbox.record(
                DomainEventType.APPOINTMENT_STATUS_CHANGED,
                self._status_event(appointment, old_status, status),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return await self.repo.get_by_id(appointment_id)

    async def get_appointment(self, appointment_id: uuid.UUID, current_user) -> Appointment:
        appointment = await self.repo.get_by_id(appointment_id)
        if not appointment:
            raise AppointmentNotFound()

        if current_user.role in (UserRole.ADMIN, UserRole.QUALITY):
            return appointment
        if current_user.id in (appointment.customer_id, appointment.agent_id):
            return appointment
        if current_user.role == UserRole.AGENT:
            offered = await self.request_repo.get_for_agent(appointment.id, current_user.id)
            if offered:
                return appointment
        raise ForbiddenError("You don't have access to this appointment")

    async def list_appointments(
        self,
        current_user,
        status: AppointmentStatus | None = None,
        date_from=None,
        date_to=None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        filters = {"status": status, "date_from": date_from, "date_to": date_to}
        if current_user.role == UserRole.CUSTOMER:
            filters["customer_id"] = current_user.id
        elif current_user.role == UserRole.AGENT:
            filters["agent_user_id"] = current_user.id

        items, total = await self.repo.list_appointments(
            **filters, page=page, per_page=per_page
        )
        return paginator.page_of(items, page, per_page, total)

    async def get_agent_appointments(
        self,
        current_user,
        page: int = 1,
        per_page: int = 10,
        pending_page: int = 1,
        pending_per_page: int = 10,
    ) -> dict:
        await self.permission.check_agent(current_user)
        agent = await self.agent_repo.get_by_user_id(current_user.id)
        if not agent:
            raise AgentNotFound()

        confirmed, confirmed_total = await self.request_repo.list_for_agent(
            current_user.id, statuses=CONFIRMED_SIDE, page=page, per_page=per_page
        )
        pending, pending_total = await self.request_repo.list_for_agent(
            current_user.id,
            statuses=PENDING_SIDE,
            page=pending_page,
            per_page=pending_per_page,
        )
        return {
            "confirmed": paginator.page_of(confirmed, page, per_page, confirmed_total),
            "pending": paginator.page_of(
                pending, pending_page, pending_per_page, pending_total
            ),
            "counts": await self.request_repo.count_by_status(current_user.id),
        }
