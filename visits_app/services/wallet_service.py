import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal

import models.event_listener  # noqa: F401
from core.check_permission import CheckRolePermission
from core.date_helper import days_ago, utcnow
from core.errors import (
    AgentNotFound,
    CommissionAlreadyApplied,
    ForbiddenError,
    InsufficientBalance,
    InvalidAmount,
    VisitAmountNotConfigured,
)
from core.paginate import paginator
from core.settings import settings
from models.enums import (
    DomainEventType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    WalletTransactionType,
)
from models.models import Agent, AgentAppointmentRequest, Appointment, WalletTransaction
from repos.agent_repo import AgentRepo
from repos.appointment_request_repo import AppointmentRequestRepo
from repos.wallet_repo import WalletRepo

from .event_outbox import EventOutbox
from .notification_dispatcher import dispatch_after_commit

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


class WalletService:
    def __init__(self, db, outbox: EventOutbox | None = None):
        self.db = db
        self.agent_repo: AgentRepo = AgentRepo(db)
        self.request_repo: AppointmentRequestRepo = AppointmentRequestRepo(db)
        self.wallet_repo: WalletRepo = WalletRepo(db)
        self.outbox: EventOutbox = outbox or EventOutbox(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    async def credit_commission(
        self,
        request: AgentAppointmentRequest,
        appointment: Appointment,
        changed_by: uuid.UUID | None,
    ) -> WalletTransaction:
        """Credit the agent's visit amount for a completed appointment.

        Runs inside the caller's transaction; the caller commits or rolls
        back. The commission flag is checked and set within that same
        transaction, so a retried completion can never credit twice.
        """
        if request.is_commission_added:
            raise CommissionAlreadyApplied()

        agent = await self.agent_repo.get_by_user_id(request.agent_id, lock=True)
        if not agent:
            raise AgentNotFound("Agent not found.")

        visit_amount = to_money(agent.visit_amount)
        if visit_amount <= 0:
            raise VisitAmountNotConfigured()

        balance_before = to_money(agent.wallet_balance)
        balance_after = balance_before + visit_amount

        agent.wallet_balance = balance_after
        agent.total_earned = to_money(agent.total_earned) + visit_amount
        agent.completed_appointments = (agent.completed_appointments or 0) + 1
        agent.total_transactions = (agent.total_transactions or 0) + 1
        await self.agent_repo.save(agent)

        await self.request_repo.mark_commission(request, visit_amount)

        await self.wallet_repo.add_earning(
            agent_id=agent.id,
            amount=visit_amount,
            type="appointment_commission",
            agent_appointment_request_id=request.id,
            description=f"Visit commission for appointment #{appointment.id}",
            added_by_id=changed_by,
        )
        txn = await self.wallet_repo.add_transaction(
            agent_id=agent.id,
            status=PaymentStatus.COMPLETED,
            transaction_type=WalletTransactionType.EARNING,
            amount=visit_amount,
            balance_before=balance_before,
            balance_after=balance_after,
            description=f"Commission from completed appointment #{appointment.id}",
            notes="Automatic commission for completed appointment",
            processed_by_id=changed_by,
            appointment_id=appointment.id,
            agent_appointment_request_id=request.id,
        )

        await self.outbox.record(
            DomainEventType.COMMISSION_CREDITED,
            {
                "appointment_id": appointment.id,
                "request_id": request.id,
                "agent_id": agent.id,
                "agent_user_id": agent.user_id,
                "agent_name": agent.user.full_name if agent.user else None,
                "amount": visit_amount,
                "wallet_balance": balance_after,
                "currency": settings.CURRENCY,
            },
        )
        logger.info(
            "Credited %s %s to agent %s for appointment %s",
            settings.CURRENCY,
            visit_amount,
            agent.id,
            appointment.id,
        )
        return txn

    async def record_expired_visit(self, request: AgentAppointmentRequest) -> None:
        agent = await self.agent_repo.get_by_user_id(request.agent_id, lock=True)
        if agent:
            agent.total_transactions = (agent.total_transactions or 0) + 1
            await self.agent_repo.save(agent)

    async def create_manual_payout(
        self,
        agent_id: uuid.UUID,
        amount,
        current_user,
        notes: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.MANUAL,
    ) -> dict:
        await self.permission.check_admin(current_user)

        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount()

        try:
            agent = await self.agent_repo.get_by_id(agent_id, lock=True)
            if not agent:
                raise AgentNotFound()

            balance_before = to_money(agent.wallet_balance)
            if amount > balance_before:
                raise InsufficientBalance(balance_before, amount, settings.CURRENCY)

            balance_after = balance_before - amount
            now = utcnow()

            agent.wallet_balance = balance_after
            agent.total_paid = to_money(agent.total_paid) + amount
            agent.last_payout_date = now
            agent.total_transactions = (agent.total_transactions or 0) + 1
            await self.agent_repo.save(agent)

            payment = await self.wallet_repo.add_payment(
                agent_id=agent.id,
                amount=amount,
                status=PaymentStatus.COMPLETED,
                payment_method=payment_method,
                notes=notes or "Manual payout processed by admin",
                paid_at=now,
                processed_by_id=current_user.id,
                balance_before=balance_before,
                balance_after=balance_after,
            )
            txn = await self.wallet_repo.add_transaction(
                agent_id=agent.id,
                status=PaymentStatus.COMPLETED,
                transaction_type=WalletTransactionType.PAYOUT,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                description="Manual payout by admin",
                notes=notes,
                processed_by_id=current_user.id,
                agent_payment_id=payment.id,
            )
            await self.outbox.record(
                DomainEventType.PAYOUT_PROCESSED,
                {
                    "agent_id": agent.id,
                    "agent_user_id": agent.user_id,
                    "payment_id": payment.id,
                    "amount": amount,
                    "wallet_balance": balance_after,
                    "currency": settings.CURRENCY,
                },
            )
            payment_id, txn_id = payment.id, txn.id
            total_paid = agent.total_paid
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Payout of %s %s processed for agent %s by %s",
            settings.CURRENCY,
            amount,
            agent_id,
            current_user.id,
        )
        await dispatch_after_commit(self.db, self.outbox.take_recorded())

        return {
            "payment": await self.wallet_repo.get_payment(payment_id),
            "transaction": await self.wallet_repo.get_transaction(txn_id),
            "wallet_balance": balance_after,
            "total_paid": to_money(total_paid),
        }

    async def _get_visible_agent(self, agent_id: uuid.UUID, current_user) -> Agent:
        agent = await self.agent_repo.get_by_id(agent_id)
        if not agent:
            raise AgentNotFound()
        if current_user.role != UserRole.ADMIN and agent.user_id != current_user.id:
            raise ForbiddenError("You can only view your own wallet")
        return agent

    async def get_wallet_stats(self, agent_id: uuid.UUID, current_user) -> dict:
        agent = await self._get_visible_agent(agent_id, current_user)

        since = days_ago(30)
        earnings_30 = await self.wallet_repo.sum_by_type(
            agent.id, WalletTransactionType.EARNING, since
        )
        payouts_30 = await self.wallet_repo.sum_by_type(
            agent.id, WalletTransactionType.PAYOUT, since
        )
        ledger_balance = await self._ledger_balance(agent.id)

        completed = agent.completed_appointments or 0
        average = (
            to_money(to_money(agent.total_earned) / completed) if completed else to_money(0)
        )
        return {
            "agent_id": agent.id,
            "currency": settings.CURRENCY,
            "visit_amount": to_money(agent.visit_amount),
            "wallet_balance": to_money(agent.wallet_balance),
            "total_earned": to_money(agent.total_earned),
            "total_paid": to_money(agent.total_paid),
            "completed_appointments": completed,
            "total_transactions": agent.total_transactions or 0,
            "last_payout_date": agent.last_payout_date,
            "earnings_last_30_days": to_money(earnings_30),
            "payouts_last_30_days": to_money(payouts_30),
            "available_for_payout": to_money(agent.wallet_balance),
            "average_earning_per_appointment": average,
            "ledger_balance": ledger_balance,
        }

    async def _ledger_balance(self, agent_id: uuid.UUID) -> Decimal:
        earned = await self.wallet_repo.sum_by_type(agent_id, WalletTransactionType.EARNING)
        paid = await self.wallet_repo.sum_by_type(agent_id, WalletTransactionType.PAYOUT)
        return to_money(earned - paid)

    async def reconcile_wallet(self, agent_id: uuid.UUID, current_user) -> dict:
        await self.permission.check_admin(current_user)
        agent = await self.agent_repo.get_by_id(agent_id)
        if not agent:
            raise AgentNotFound()

        earned = to_money(
            await self.wallet_repo.sum_by_type(agent.id, WalletTransactionType.EARNING)
        )
        paid = to_money(
            await self.wallet_repo.sum_by_type(agent.id, WalletTransactionType.PAYOUT)
        )
        report = {
            "agent_id": agent.id,
            "stored_balance": to_money(agent.wallet_balance),
            "ledger_balance": earned - paid,
            "stored_total_earned": to_money(agent.total_earned),
            "ledger_total_earned": earned,
            "stored_total_paid": to_money(agent.total_paid),
            "ledger_total_paid": paid,
            "transaction_count": await self.wallet_repo.count_for_agent(agent.id),
        }
        report["in_sync"] = (
            report["stored_balance"] == report["ledger_balance"]
            and report["stored_total_earned"] == earned
            and report["stored_total_paid"] == paid
        )
        if not report["in_sync"]:
            logger.warning(
                "Wallet drift for agent %s: stored=%s ledger=%s",
                agent.id,
                report["stored_balance"],
                report["ledger_balance"],
            )
        return report

    async def list_payouts(
        self,
        current_user,
        agent_id: uuid.UUID | None = None,
        status: PaymentStatus | None = None,
        payment_method: PaymentMethod | None = None,
        date_from=None,
        date_to=None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        await self.permission.check_admin(current_user)
        items, total = await self.wallet_repo.list_payments(
            agent_id=agent_id,
            status=status,
            payment_method=payment_method,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        return paginator.page_of(items, page, per_page, total)

    async def get_payout_summary(self, current_user) -> dict:
        await self.permission.check_admin(current_user)
        total_paid, payouts_count = await self.wallet_repo.payment_totals()
        paid_30, count_30 = await self.wallet_repo.payment_totals(since=days_ago(30))
        return {
            "currency": settings.CURRENCY,
            "total_agents": await self.agent_repo.count(),
            "total_wallet_balance": to_money(await self.agent_repo.sum_wallet_balances()),
            "total_paid_out": to_money(total_paid),
            "payouts_count": payouts_count,
            "paid_last_30_days": to_money(paid_30),
            "payouts_last_30_days": count_30,
        }
