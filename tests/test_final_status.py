"""Completing or expiring an accepted visit, and the commission it pays."""

from decimal import Decimal

import pytest
from sqlalchemy import select, update

from core.errors import (
    BadRequestError,
    CommissionAlreadyApplied,
    Forbidden,
    RequestNotFound,
    VisitAmountNotConfigured,
)
from models.enums import AppointmentStatus, WalletTransactionType
from models.models import AgentEarning, Appointment, Notification, WalletTransaction
from repos.agent_repo import AgentRepo
from services.appointment_service import AppointmentService

S = AppointmentStatus


async def _user(db, user_id):
    return await AppointmentService(db).user_repo.get_by_id(user_id)


async def _transactions(db, agent_id):
    result = await db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.agent_id == agent_id)
        .order_by(WalletTransaction.created_at)
    )
    return list(result.scalars().all())


async def test_completion_credits_the_visit_amount(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()
    agent_user = await _user(db_session, riyadh.first_user_id)

    result = await AppointmentService(db_session).update_final_status(
        accepted.request_id, S.COMPLETED, agent_user
    )

    assert result["appointment"].status == S.COMPLETED
    assert result["request"].status == S.COMPLETED
    assert result["request"].is_commission_added is True
    assert result["request"].commission_amount == Decimal("150.00")

    agent = await AgentRepo(db_session).get_by_id(riyadh.first_id)
    assert agent.wallet_balance == Decimal("150.00")
    assert agent.total_earned == Decimal("150.00")
    assert agent.completed_appointments == 1
    assert agent.total_transactions == 1

    [txn] = await _transactions(db_session, riyadh.first_id)
    assert txn.transaction_type == WalletTransactionType.EARNING
    assert txn.balance_before == Decimal("0.00")
    assert txn.balance_after == Decimal("150.00")
    assert txn.appointment_id == accepted.appointment_id

    earnings = (await db_session.execute(select(AgentEarning))).scalars().all()
    assert [e.agent_appointment_request_id for e in earnings] == [accepted.request_id]


async def test_completion_notifies_agent_and_admins(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()
    agent_user = await _user(db_session, riyadh.first_user_id)

    await AppointmentService(db_session).update_final_status(
        accepted.request_id, S.COMPLETED, agent_user
    )

    result = await db_session.execute(
        select(Notification.user_id, Notification.title).where(
            Notification.title.in_(["Commission Added", "Agent Commission Paid"])
        )
    )
    assert {tuple(row) for row in result.all()} == {
        (riyadh.first_user_id, "Commission Added"),
        (riyadh.admin_id, "Agent Commission Paid"),
    }


async def test_second_completion_is_refused_and_pays_nothing(
    db_session, riyadh, book_and_accept
):
    accepted = await book_and_accept()
    admin = await _user(db_session, riyadh.admin_id)
    service = AppointmentService(db_session)
    await service.update_final_status(accepted.request_id, S.COMPLETED, admin)

    with pytest.raises(CommissionAlreadyApplied):
        await service.update_final_status(accepted.request_id, S.COMPLETED, admin)

    agent = await AgentRepo(db_session).get_by_id(riyadh.first_id)
    assert agent.wallet_balance == Decimal("150.00")
    assert len(await _transactions(db_session, riyadh.first_id)) == 1


async def test_missing_visit_amount_blocks_completion(
    db_session, riyadh, book_and_accept
):
    agent = await AgentRepo(db_session).get_by_id(riyadh.first_id)
    agent.visit_amount = Decimal("0")
    await db_session.commit()
    accepted = await book_and_accept()
    agent_user = await _user(db_session, riyadh.first_user_id)
    service = AppointmentService(db_session)

    with pytest.raises(VisitAmountNotConfigured):
        await service.update_final_status(accepted.request_id, S.COMPLETED, agent_user)

    request = await service.request_repo.get_by_id(accepted.request_id)
    appointment = await service.repo.get_by_id(accepted.appointment_id)
    assert request.status == S.ACCEPTED
    assert request.is_commission_added is False
    assert appointment.status == S.CONFIRMED
    assert await _transactions(db_session, riyadh.first_id) == []


async def test_expiry_counts_the_visit_without_paying(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()
    agent_user = await _user(db_session, riyadh.first_user_id)

    result = await AppointmentService(db_session).update_final_status(
        accepted.request_id, S.EXPIRED, agent_user
    )

    assert result["appointment"].status == S.EXPIRED
    assert result["request"].is_commission_added is False
    agent = await AgentRepo(db_session).get_by_id(riyadh.first_id)
    assert agent.wallet_balance == Decimal("0.00")
    assert agent.total_transactions == 1
    assert await _transactions(db_session, riyadh.first_id) == []


async def test_other_agent_cannot_settle(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()
    other = await _user(db_session, riyadh.second_user_id)

    with pytest.raises(Forbidden):
        await AppointmentService(db_session).update_final_status(
            accepted.request_id, S.COMPLETED, other
        )


async def test_pending_request_cannot_be_settled(db_session, riyadh, book):
    created = await book()
    service = AppointmentService(db_session)
    request = await service.request_repo.get_for_agent(
        created["appointment"].id, riyadh.first_user_id
    )
    agent_user = await _user(db_session, riyadh.first_user_id)

    with pytest.raises(RequestNotFound):
        await service.update_final_status(request.id, S.COMPLETED, agent_user)


async def test_cancelled_visit_cannot_be_settled(db_session, riyadh, book_and_accept):
    accepted = await book_and_accept()
    customer = await _user(db_session, riyadh.customer_id)
    service = AppointmentService(db_session)
    await service.update_status(accepted.appointment_id, S.CANCELLED, customer)

    request = await service.request_repo.get_by_id(accepted.request_id)
    assert request.status == S.CANCELLED

    agent_user = await _user(db_session, riyadh.first_user_id)
    with pytest.raises(RequestNotFound):
        await service.update_final_status(accepted.request_id, S.COMPLETED, agent_user)

    appointment = await service.repo.get_by_id(accepted.appointment_id)
    assert appointment.status == S.CANCELLED
    agent = await AgentRepo(db_session).get_by_id(riyadh.first_id)
    assert agent.wallet_balance == Decimal("0.00")
    assert await _transactions(db_session, riyadh.first_id) == []


async def test_terminal_appointment_is_not_settled_through_a_stale_request(
    db_session, riyadh, book_and_accept
):
    accepted = await book_and_accept()
    await db_session.execute(
        update(Appointment)
        .where(Appointment.id == accepted.appointment_id)
        .values(status=S.CANCELLED)
    )
    await db_session.commit()
    agent_user = await _user(db_session, riyadh.first_user_id)
    service = AppointmentService(db_session)

    with pytest.raises(BadRequestError):
        await service.update_final_status(accepted.request_id, S.COMPLETED, agent_user)

    request = await service.request_repo.get_by_id(accepted.request_id)
    appointment = await service.repo.get_by_id(accepted.appointment_id)
    assert request.status == S.ACCEPTED
    assert request.is_commission_added is False
    assert appointment.status == S.CANCELLED
    assert await _transactions(db_session, riyadh.first_id) == []
