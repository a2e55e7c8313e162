import uuid
from datetime import date, time
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update

from core.date_helper import utcnow
from models.enums import AGENT_BUSY_STATUSES, OPEN_BOOKING_STATUSES, AppointmentStatus
from models.models import Appointment


class AppointmentRepo:
    def __init__(self, db):
        self.db = db

    async def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        await self.db.flush()
        return appointment

    async def get_by_id(
        self, appointment_id: uuid.UUID, lock: bool = False
    ) -> Optional[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_customer_overlap(
        self,
        *,
        customer_id: uuid.UUID,
        property_id: uuid.UUID,
        appointment_date: date,
        start_time: time,
        end_time: time,
    ) -> Optional[Appointment]:
        stmt = (
            select(Appointment)
            .where(
                Appointment.customer_id == customer_id,
                Appointment.property_id == property_id,
                Appointment.appointment_date == appointment_date,
                Appointment.status.in_(OPEN_BOOKING_STATUSES),
                Appointment.start_time < end_time,
                Appointment.end_time > start_time,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_agent_overlap(
        self,
        *,
        agent_user_id: uuid.UUID,
        appointment_date: date,
        start_time: time,
        end_time: time,
        exclude_id: uuid.UUID | None = None,
    ) -> Optional[Appointment]:
        stmt = select(Appointment).where(
            Appointment.agent_id == agent_user_id,
            Appointment.appointment_date == appointment_date,
            Appointment.status.in_(AGENT_BUSY_STATUSES),
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalars().first()

    async def claim_for_agent(
        self, appointment_id: uuid.UUID, agent_user_id: uuid.UUID
    ) -> bool:
        stmt = (
            update(Appointment)
            .where(
                Appointment.id == appointment_id,
                Appointment.agent_id.is_(None),
                Appointment.status == AppointmentStatus.PENDING,
            )
            .values(
                agent_id=agent_user_id,
                status=AppointmentStatus.CONFIRMED,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def list_appointments(
        self,
        *,
        customer_id: uuid.UUID | None = None,
        agent_user_id: uuid.UUID | None = None,
        status: AppointmentStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Appointment], int]:
        filters = []
        if customer_id is not None:
            filters.append(Appointment.customer_id == customer_id)
        if agent_user_id is not None:
            filters.append(Appointment.agent_id == agent_user_id)
        if status is not None:
            filters.append(Appointment.status == status)
        if date_from is not None:
            filters.append(Appointment.appointment_date >= date_from)
        if date_to is not None:
            filters.append(Appointment.appointment_date <= date_to)

        stmt = (
            select(Appointment)
            .where(*filters)
            .order_by(Appointment.appointment_date.desc(), Appointment.start_time)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.db.execute(stmt)
        total = await self.db.scalar(select(func.count(Appointment.id)).where(*filters))
        return list(result.scalars().all()), total or 0

    async def get_on_date(
        self, appointment_date: date, statuses: Iterable[AppointmentStatus]
    ) -> List[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(
                Appointment.appointment_date == appointment_date,
                Appointment.status.in_(list(statuses)),
            )
        )
        return list(result.scalars().all())

    async def get_unassigned_on_date(self, appointment_date: date) -> List[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(
                Appointment.appointment_date == appointment_date,
                Appointment.status == AppointmentStatus.PENDING,
                Appointment.agent_id.is_(None),
            )
        )
        return list(result.scalars().all())
