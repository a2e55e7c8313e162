from datetime import datetime
from decimal import Decimal
from typing import List, Tuple
from uuid import UUID

from sqlalchemy import func, select

from models.enums import PaymentMethod, PaymentStatus, WalletTransactionType
from models.models import AgentEarning, AgentPayment, WalletTransaction


def _as_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


class WalletRepo:
    def __init__(self, db):
        self.db = db

    async def add_transaction(self, **fields) -> WalletTransaction:
        txn = WalletTransaction(**fields)
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def add_earning(self, **fields) -> AgentEarning:
        earning = AgentEarning(**fields)
        self.db.add(earning)
        await self.db.flush()
        return earning

    async def add_payment(self, **fields) -> AgentPayment:
        payment = AgentPayment(**fields)
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def sum_by_type(
        self,
        agent_id: UUID,
        transaction_type: WalletTransactionType,
        since: datetime | None = None,
    ) -> Decimal:
        stmt = select(func.sum(WalletTransaction.amount)).where(
            WalletTransaction.agent_id == agent_id,
            WalletTransaction.transaction_type == transaction_type,
            WalletTransaction.status == PaymentStatus.COMPLETED,
        )
        if since is not None:
            stmt = stmt.where(WalletTransaction.created_at >= since)
        return _as_decimal(await self.db.scalar(stmt))

    async def count_for_agent(self, agent_id: UUID) -> int:
        total = await self.db.scalar(
            select(func.count(WalletTransaction.id)).where(
                WalletTransaction.agent_id == agent_id
            )
        )
        return total or 0

    async def list_payments(
        self,
        *,
        agent_id: UUID | None = None,
        status: PaymentStatus | None = None,
        payment_method: PaymentMethod | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[AgentPayment], int]:
        filters = []
        if agent_id is not None:
            filters.append(AgentPayment.agent_id == agent_id)
        if status is not None:
            filters.append(AgentPayment.status == status)
        if payment_method is not None:
            filters.append(AgentPayment.payment_method == payment_method)
        if date_from is not None:
            filters.append(AgentPayment.created_at >= date_from)
        if date_to is not None:
            filters.append(AgentPayment.created_at <= date_to)

        result = await self.db.execute(
            select(AgentPayment)
            .where(*filters)
            .order_by(AgentPayment.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        total = await self.db.scalar(select(func.count(AgentPayment.id)).where(*filters))
        return list(result.scalars().all()), total or 0

    async def payment_totals(self, since: datetime | None = None) -> Tuple[Decimal, int]:
        stmt = select(func.sum(AgentPayment.amount), func.count(AgentPayment.id)).where(
            AgentPayment.status == PaymentStatus.COMPLETED
        )
        if since is not None:
            stmt = stmt.where(AgentPayment.created_at >= since)
        total, count = (await self.db.execute(stmt)).one()
        return _as_decimal(total), count or 0

    async def get_payment(self, payment_id: UUID) -> AgentPayment | None:
        result = await self.db.execute(
            select(AgentPayment)
            .where(AgentPayment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_transaction(self, transaction_id: UUID) -> WalletTransaction | None:
        result = await self.db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
