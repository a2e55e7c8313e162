import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.mapper import ORMMapper
from core.safe_handler import safe_handler
from models.enums import AppointmentStatus
from models.models import User
from schemas.schema import (
    AgentAppointmentsOut,
    AppointmentCreate,
    AppointmentCreatedOut,
    AppointmentOut,
    AssignAgentSchema,
    FinalStatusSchema,
    PaginatedAppointmentsOut,
    RequestResponseOut,
    RespondRequestSchema,
    UpdateStatusSchema,
)
from services.appointment_service import AppointmentService

router = APIRouter(tags=["Appointments"])


@cbv(router=router)
class AppointmentRoutes:
    @router.post("/appointments", status_code=201, response_model=AppointmentCreatedOut)
    @safe_handler
    async def create(
        self,
        data: AppointmentCreate,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AppointmentService(db).create_appointment(data, current_user)
        return ORMMapper.one(result, AppointmentCreatedOut)

    @router.get("/appointments", response_model=PaginatedAppointmentsOut)
    @safe_handler
    async def list_all(
        self,
        status: Optional[AppointmentStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AppointmentService(db).list_appointments(
            current_user,
            status=status,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        return ORMMapper.one(result, PaginatedAppointmentsOut)

    @router.get("/appointments/agent", response_model=AgentAppointmentsOut)
    @safe_handler
    async def agent_appointments(
        self,
        page: int = Query(1, ge=1),
        per_page: int = Query(10, ge=1, le=100),
        pending_page: int = Query(1, ge=1),
        pending_per_page: int = Query(10, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AppointmentService(db).get_agent_appointments(
            current_user,
            page=page,
            per_page=per_page,
            pending_page=pending_page,
            pending_per_page=pending_per_page,
        )
        return ORMMapper.one(result, AgentAppointmentsOut)

    @router.patch("/appointments/requests/{request_id}", response_model=RequestResponseOut)
    @safe_handler
    async def respond(
        self,
        request_id: uuid.UUID,
        data: RespondRequestSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AppointmentService(db).respond_to_request(
            request_id, data, current_user
        )
        return ORMMapper.one(result, RequestResponseOut)

    @router.patch("/appointments/{request_id}/final-status", response_model=RequestResponseOut)
    @safe_handler
    async def final_status(
        self,
        request_id: uuid.UUID,
        data: FinalStatusSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AppointmentService(db).update_final_status(
            request_id, data.status, current_user, notes=data.notes
        )
        return ORMMapper.one(result, RequestResponseOut)

    @router.post("/appointments/{appointment_id}/assign-agent", response_model=AppointmentOut)
    @safe_handler
    async def assign_agent(
        self,
        appointment_id: uuid.UUID,
        data: AssignAgentSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        appointment = await AppointmentService(db).assign_agent(
            appointment_id, data.agent_id, current_user
        )
        return ORMMapper.one(appointment, AppointmentOut)

    @router.post("/appointments/{appointment_id}/update-status", response_model=AppointmentOut)
    @safe_handler
    async def update_status(
        self,
        appointment_id: uuid.UUID,
        data: UpdateStatusSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        appointment = await AppointmentService(db).update_status(
            appointment_id, data.status, current_user, notes=data.notes
        )
        return ORMMapper.one(appointment, AppointmentOut)

    @router.get("/appointments/{appointment_id}", response_model=AppointmentOut)
    @safe_handler
    async def get(
        self,
        appointment_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        appointment = await AppointmentService(db).get_appointment(
            appointment_id, current_user
        )
        return ORMMapper.one(appointment, AppointmentOut)
