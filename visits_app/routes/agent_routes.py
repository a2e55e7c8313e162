import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.mapper import ORMMapper
from core.safe_handler import safe_handler
from models.enums import AgentApprovalStatus, PaymentMethod, PaymentStatus
from models.models import User
from schemas.schema import (
    AgentCreateSchema,
    AgentOut,
    PaginatedAgentsOut,
    PaginatedPaymentsOut,
    PayoutOut,
    PayoutSchema,
    PayoutSummaryOut,
    ReconcileOut,
    ReviewAgentSchema,
    VisitAmountSchema,
    WalletStatsOut,
)
from services.agent_service import AgentService
from services.wallet_service import WalletService

router = APIRouter(tags=["Agents"])


@cbv(router=router)
class AgentRoutes:
    @router.post("/agents", status_code=201, response_model=AgentOut)
    @safe_handler
    async def create(
        self,
        data: AgentCreateSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        agent = await AgentService(db).create_agent(data, current_user)
        return ORMMapper.one(agent, AgentOut)

    @router.get("/agents", response_model=PaginatedAgentsOut)
    @safe_handler
    async def list_all(
        self,
        status: Optional[AgentApprovalStatus] = None,
        city_id: Optional[uuid.UUID] = None,
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await AgentService(db).list_agents(
            current_user, status=status, city_id=city_id, page=page, per_page=per_page
        )
        return ORMMapper.one(result, PaginatedAgentsOut)

    @router.get("/agents/payouts", response_model=PaginatedPaymentsOut)
    @safe_handler
    async def payouts(
        self,
        agent_id: Optional[uuid.UUID] = None,
        status: Optional[PaymentStatus] = None,
        payment_method: Optional[PaymentMethod] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await WalletService(db).list_payouts(
            current_user,
            agent_id=agent_id,
            status=status,
            payment_method=payment_method,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        return ORMMapper.one(result, PaginatedPaymentsOut)

    @router.get("/agents/payouts/summary", response_model=PayoutSummaryOut)
    @safe_handler
    async def payout_summary(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await WalletService(db).get_payout_summary(current_user)

    @router.get("/agents/{agent_id}", response_model=AgentOut)
    @safe_handler
    async def get(
        self,
        agent_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        agent = await AgentService(db).get_agent(agent_id, current_user)
        return ORMMapper.one(agent, AgentOut)

    @router.post("/agents/{agent_id}/review", response_model=AgentOut)
    @safe_handler
    async def review(
        self,
        agent_id: uuid.UUID,
        data: ReviewAgentSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        agent = await AgentService(db).review_agent(
            agent_id, data.status, data.kyc_notes, current_user
        )
        return ORMMapper.one(agent, AgentOut)

    @router.patch("/agents/{agent_id}/visit-amount", response_model=AgentOut)
    @safe_handler
    async def visit_amount(
        self,
        agent_id: uuid.UUID,
        data: VisitAmountSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        agent = await AgentService(db).update_visit_amount(
            agent_id, data.visit_amount, current_user
        )
        return ORMMapper.one(agent, AgentOut)

    @router.post("/agents/{agent_id}/payout", status_code=201, response_model=PayoutOut)
    @safe_handler
    async def payout(
        self,
        agent_id: uuid.UUID,
        data: PayoutSchema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        result = await WalletService(db).create_manual_payout(
            agent_id,
            data.amount,
            current_user,
            notes=data.notes,
            payment_method=data.payment_method,
        )
        return ORMMapper.one(result, PayoutOut)

    @router.get("/agents/{agent_id}/stats", response_model=WalletStatsOut)
    @safe_handler
    async def stats(
        self,
        agent_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await WalletService(db).get_wallet_stats(agent_id, current_user)

    @router.get("/agents/{agent_id}/reconcile", response_model=ReconcileOut)
    @safe_handler
    async def reconcile(
        self,
        agent_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await WalletService(db).reconcile_wallet(agent_id, current_user)
