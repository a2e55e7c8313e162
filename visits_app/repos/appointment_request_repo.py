from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update

from core.date_helper import utcnow
from models.enums import AppointmentStatus
from models.models import Appointment, AgentAppointmentRequest


class AppointmentRequestRepo:
    def __init__(self, db):
        self.db = db

    async def add_many(
        self, appointment_id: UUID, agent_user_ids: List[UUID]
    ) -> List[AgentAppointmentRequest]:
        requests = [
            AgentAppointmentRequest(
                appointment_id=appointment_id,
                agent_id=agent_user_id,
                status=AppointmentStatus.PENDING,
            )
            for agent_user_id in agent_user_ids
        ]
        self.db.add_all(requests)
        await self.db.flush()
        return requests

    async def get_by_id(
        self, request_id: UUID, lock: bool = False
    ) -> Optional[AgentAppointmentRequest]:
        stmt = (
            select(AgentAppointmentRequest)
            .where(AgentAppointmentRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_agent(
        self, appointment_id: UUID, agent_user_id: UUID
    ) -> Optional[AgentAppointmentRequest]:
        result = await self.db.execute(
            select(AgentAppointmentRequest)
            .where(
                AgentAppointmentRequest.appointment_id == appointment_id,
                AgentAppointmentRequest.agent_id == agent_user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, request: AgentAppointmentRequest) -> AgentAppointmentRequest:
        self.db.add(request)
        await self.db.flush()
        return request

    async def transition(
        self,
        request_id: UUID,
        from_status: AppointmentStatus,
        to_status: AppointmentStatus,
    ) -> bool:
        """Move a request between states only if it is still in `from_status`."""
        result = await self.db.execute(
            update(AgentAppointmentRequest)
            .where(
                AgentAppointmentRequest.id == request_id,
                AgentAppointmentRequest.status == from_status,
            )
            .values(status=to_status, responded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def reject_pending_siblings(
        self, appointment_id: UUID, winner_id: UUID | None = None
    ) -> int:
        filters = [
            AgentAppointmentRequest.appointment_id == appointment_id,
            AgentAppointmentRequest.status == AppointmentStatus.PENDING,
        ]
        if winner_id is not None:
            filters.append(AgentAppointmentRequest.id != winner_id)
        result = await self.db.execute(
            update(AgentAppointmentRequest)
            .where(*filters)
            .values(status=AppointmentStatus.REJECTED, responded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def cancel_accepted(self, appointment_id: UUID) -> int:
        result = await self.db.execute(
            update(AgentAppointmentRequest)
            .where(
                AgentAppointmentRequest.appointment_id == appointment_id,
                AgentAppointmentRequest.status == AppointmentStatus.ACCEPTED,
            )
            .values(status=AppointmentStatus.CANCELLED, responded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_for_agent(
        self,
        agent_user_id: UUID,
        *,
        statuses: Iterable[AppointmentStatus] | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[AgentAppointmentRequest], int]:
        filters = [AgentAppointmentRequest.agent_id == agent_user_id]
        if statuses is not None:
            filters.append(AgentAppointmentRequest.status.in_(list(statuses)))

        stmt = (
            select(AgentAppointmentRequest)
            .join(Appointment, Appointment.id == AgentAppointmentRequest.appointment_id)
            .where(*filters)
            .order_by(
                Appointment.appointment_date.desc(),
                AgentAppointmentRequest.created_at.desc(),
            )
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.db.execute(stmt)
        total = await self.db.scalar(
            select(func.count(AgentAppointmentRequest.id)).where(*filters)
        )
        return list(result.scalars().all()), total or 0

    async def count_by_status(self, agent_user_id: UUID) -> Dict[str, int]:
        result = await self.db.execute(
            select(AgentAppointmentRequest.status, func.count(AgentAppointmentRequest.id))
            .where(AgentAppointmentRequest.agent_id == agent_user_id)
            .group_by(AgentAppointmentRequest.status)
        )
        counts = {status.value: 0 for status in AppointmentStatus}
        for status, total in result.all():
            counts[AppointmentStatus(status).value] = total
        return counts

    async def mark_commission(
        self, request: AgentAppointmentRequest, amount
    ) -> AgentAppointmentRequest:
        request.is_commission_added = True
        request.commission_amount = amount
        request.commission_added_at = utcnow()
        self.db.add(request)
        await self.db.flush()
        return request
