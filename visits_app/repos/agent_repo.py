import uuid
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models.enums import AgentApprovalStatus
from models.models import Agent, agent_cities


class AgentRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, agent_id: uuid.UUID, lock: bool = False) -> Optional[Agent]:
        stmt = (
            select(Agent)
            .where(Agent.id == agent_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user_id(
        self, user_id: uuid.UUID, lock: bool = False
    ) -> Optional[Agent]:
        stmt = (
            select(Agent)
            .where(Agent.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_approved(self) -> List[Agent]:
        result = await self.db.execute(
            select(Agent).where(Agent.status == AgentApprovalStatus.APPROVED)
        )
        return list(result.scalars().all())

    async def list_agents(
        self,
        status: AgentApprovalStatus | None = None,
        city_id: uuid.UUID | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Agent], int]:
        stmt = select(Agent)
        count_stmt = select(func.count(Agent.id))
        if status is not None:
            stmt = stmt.where(Agent.status == status)
            count_stmt = count_stmt.where(Agent.status == status)
        if city_id is not None:
            covered = select(agent_cities.c.agent_id).where(
                agent_cities.c.city_id == city_id
            )
            stmt = stmt.where(Agent.id.in_(covered))
            count_stmt = count_stmt.where(Agent.id.in_(covered))

        stmt = (
            stmt.order_by(Agent.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.db.execute(stmt)
        total = await self.db.scalar(count_stmt)
        return list(result.scalars().all()), total or 0

    async def count(self) -> int:
        return await self.db.scalar(select(func.count(Agent.id))) or 0

    async def sum_wallet_balances(self) -> Decimal:
        total = await self.db.scalar(select(func.sum(Agent.wallet_balance)))
        return Decimal(str(total or 0))

    async def add(self, agent: Agent) -> Agent:
        try:
            self.db.add(agent)
            await self.db.flush()
            return agent
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def save(self, agent: Agent) -> Agent:
        self.db.add(agent)
        await self.db.flush()
        return agent
