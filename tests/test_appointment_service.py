"""Service tests for booking, fan-out and the accept race."""

from datetime import time

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from core.errors import (
    AgentScheduleConflict,
    AlreadyInTargetStatus,
    AlreadyProcessed,
    AppointmentAlreadyAssigned,
    DuplicateBookingConflict,
    Forbidden,
    ForbiddenError,
    InvalidTimeRange,
    NoAgentsAvailable,
)
from models.enums import AppointmentStatus, NotificationType
from models.models import (
    AgentAppointmentRequest,
    Appointment,
    AppointmentStatusHistory,
    Notification,
)
from schemas.schema import RespondRequestSchema
from services.appointment_service import AppointmentService

S = AppointmentStatus


async def _requests(db, appointment_id):
    result = await db.execute(
        select(AgentAppointmentRequest)
        .where(AgentAppointmentRequest.appointment_id == appointment_id)
        .execution_options(populate_existing=True)
    )
    return {request.agent_id: request for request in result.scalars().all()}


async def _history(db, appointment_id):
    result = await db.execute(
        select(AppointmentStatusHistory)
        .where(AppointmentStatusHistory.appointment_id == appointment_id)
        .order_by(AppointmentStatusHistory.changed_at)
    )
    return list(result.scalars().all())


async def _user(db, user_id):
    return await AppointmentService(db).user_repo.get_by_id(user_id)


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


class TestCreateAppointment:
    async def test_offers_the_visit_to_every_covering_agent(self, db_session, riyadh, book):
        created = await book()

        appointment = created["appointment"]
        assert created["notified_agents"] == 2
        assert appointment.status == S.PENDING
        assert appointment.agent_id is None

        requests = await _requests(db_session, appointment.id)
        assert set(requests) == {riyadh.first_user_id, riyadh.second_user_id}
        assert all(request.status == S.PENDING for request in requests.values())

    async def test_notifies_agents_customer_and_admins(self, db_session, riyadh, book):
        await book()

        result = await db_session.execute(select(Notification))
        by_user = {}
        for notification in result.scalars().all():
            by_user.setdefault(notification.user_id, []).append(notification.title)

        assert by_user[riyadh.first_user_id] == ["New Appointment Request"]
        assert by_user[riyadh.second_user_id] == ["New Appointment Request"]
        assert by_user[riyadh.customer_id] == ["Appointment Created"]
        assert by_user[riyadh.admin_id] == ["New Appointment Created"]

    async def test_overlapping_booking_for_same_property_is_refused(self, book):
        await book(start=time(9, 0), end=time(10, 0))

        with pytest.raises(DuplicateBookingConflict):
            await book(start=time(9, 30), end=time(10, 30))

    async def test_back_to_back_booking_is_allowed(self, book):
        await book(start=time(9, 0), end=time(10, 0))

        created = await book(start=time(10, 0), end=time(11, 0))

        assert created["appointment"].start_time == time(10, 0)

    async def test_end_before_start_is_refused(self, book):
        with pytest.raises(InvalidTimeRange):
            await book(start=time(11, 0), end=time(10, 0))

    async def test_agents_cannot_book(self, db_session, riyadh, book):
        agent_user = await _user(db_session, riyadh.first_user_id)

        with pytest.raises(HTTPException) as exc:
            await book(customer=agent_user)

        assert exc.value.status_code == 403

    async def test_no_covering_agent_leaves_a_rejected_appointment(
        self, db_session, riyadh, book, make_city, make_property
    ):
        jeddah = await make_city("Jeddah")
        prop = await make_property(jeddah, title="Corniche Flat")

        with pytest.raises(NoAgentsAvailable):
            await book(property_id=prop.id)

        result = await db_session.execute(
            select(Appointment).where(Appointment.property_id == prop.id)
        )
        appointment = result.scalar_one()
        assert appointment.status == S.REJECTED
        assert await _requests(db_session, appointment.id) == {}

        history = await _history(db_session, appointment.id)
        assert [(h.old_status, h.new_status) for h in history] == [(S.PENDING, S.REJECTED)]


# ---------------------------------------------------------------------------
# Agent responses
# ---------------------------------------------------------------------------


class TestRespondToRequest:
    async def test_first_acceptance_wins_and_rejects_siblings(self, db_session, riyadh, book):
        created = await book()
        appointment_id = created["appointment"].id
        requests = await _requests(db_session, appointment_id)
        agent_user = await _user(db_session, riyadh.first_user_id)

        result = await AppointmentService(db_session).respond_to_request(
            requests[riyadh.first_user_id].id,
            RespondRequestSchema(status=S.ACCEPTED),
            agent_user,
        )

        assert result["request"].status == S.ACCEPTED
        assert result["appointment"].status == S.CONFIRMED
        assert result["appointment"].agent_id == riyadh.first_user_id

        requests = await _requests(db_session, appointment_id)
        assert requests[riyadh.second_user_id].status == S.REJECTED

        history = await _history(db_session, appointment_id)
        assert [(h.old_status, h.new_status) for h in history] == [(S.PENDING, S.CONFIRMED)]

    async def test_losing_agent_sees_request_already_processed(
        self, db_session, riyadh, book_and_accept
    ):
        accepted = await book_and_accept()
        requests = await _requests(db_session, accepted.appointment_id)
        loser = await _user(db_session, riyadh.second_user_id)

        with pytest.raises(AlreadyProcessed):
            await AppointmentService(db_session).respond_to_request(
                requests[riyadh.second_user_id].id,
                RespondRequestSchema(status=S.ACCEPTED),
                loser,
            )

    async def test_claim_guard_stops_a_second_winner(self, db_session, riyadh, book):
        created = await book()
        appointment_id = created["appointment"].id
        requests = await _requests(db_session, appointment_id)
        second_request_id = requests[riyadh.second_user_id].id

        # the first agent's claim lands before the second agent's request is rejected
        service = AppointmentService(db_session)
        assert await service.repo.claim_for_agent(appointment_id, riyadh.first_user_id)
        await db_session.commit()

        loser = await _user(db_session, riyadh.second_user_id)
        with pytest.raises(AppointmentAlreadyAssigned):
            await service.respond_to_request(
                second_request_id, RespondRequestSchema(status=S.ACCEPTED), loser
            )

        requests = await _requests(db_session, appointment_id)
        assert requests[riyadh.second_user_id].status == S.PENDING
        appointment = await service.repo.get_by_id(appointment_id)
        assert appointment.agent_id == riyadh.first_user_id

    async def test_agent_cannot_answer_someone_elses_request(self, db_session, riyadh, book):
        created = await book()
        requests = await _requests(db_session, created["appointment"].id)
        other = await _user(db_session, riyadh.second_user_id)

        with pytest.raises(Forbidden):
            await AppointmentService(db_session).respond_to_request(
                requests[riyadh.first_user_id].id,
                RespondRequestSchema(status=S.ACCEPTED),
                other,
            )

    async def test_agent_busy_elsewhere_cannot_accept(
        self, db_session, riyadh, book, book_and_accept, make_user
    ):
        await book_and_accept(start=time(9, 0), end=time(10, 0))
        other_customer = await make_user(full_name="Omar Customer")
        created = await book(start=time(9, 30), end=time(10, 30), customer=other_customer)
        requests = await _requests(db_session, created["appointment"].id)
        agent_user = await _user(db_session, riyadh.first_user_id)

        with pytest.raises(AgentScheduleConflict):
            await AppointmentService(db_session).respond_to_request(
                requests[riyadh.first_user_id].id,
                RespondRequestSchema(status=S.ACCEPTED),
                agent_user,
            )

    async def test_rejecting_keeps_the_appointment_open(self, db_session, riyadh, book):
        created = await book()
        appointment_id = created["appointment"].id
        requests = await _requests(db_session, appointment_id)
        agent_user = await _user(db_session, riyadh.first_user_id)

        result = await AppointmentService(db_session).respond_to_request(
            requests[riyadh.first_user_id].id,
            RespondRequestSchema(status=S.REJECTED, notes="Out of town"),
            agent_user,
        )

        assert result["request"].status == S.REJECTED
        assert result["appointment"].status == S.PENDING
        requests = await _requests(db_session, appointment_id)
        assert requests[riyadh.second_user_id].status == S.PENDING

        history = await _history(db_session, appointment_id)
        assert [(h.old_status, h.new_status, h.notes) for h in history] == [
            (S.PENDING, S.PENDING, "Out of town")
        ]

    async def test_acceptance_notifies_customer(self, db_session, riyadh, book_and_accept):
        accepted = await book_and_accept()

        result = await db_session.execute(
            select(Notification).where(
                Notification.user_id == riyadh.customer_id,
                Notification.related_id == accepted.appointment_id,
            )
        )
        titles = {n.title for n in result.scalars().all()}
        assert "Agent Accepted Appointment" in titles
        assert "Appointment Status Updated" in titles


# ---------------------------------------------------------------------------
# Admin and customer status changes
# ---------------------------------------------------------------------------


class TestAssignAndUpdateStatus:
    async def test_admin_reassigns_to_another_agent(
        self, db_session, riyadh, book_and_accept
    ):
        accepted = await book_and_accept()
        admin = await _user(db_session, riyadh.admin_id)

        appointment = await AppointmentService(db_session).assign_agent(
            accepted.appointment_id, riyadh.second_user_id, admin
        )

        assert appointment.agent_id == riyadh.second_user_id
        assert appointment.status == S.CONFIRMED
        requests = await _requests(db_session, accepted.appointment_id)
        assert requests[riyadh.first_user_id].status == S.CANCELLED
        assert requests[riyadh.second_user_id].status == S.ACCEPTED

        result = await db_session.execute(
            select(Notification).where(Notification.user_id == riyadh.second_user_id)
        )
        titles = {n.title for n in result.scalars().all()}
        assert "You Have Been Assigned to a New Appointment" in titles

    async def test_customer_cancels_and_pending_offers_close(self, db_session, riyadh, book):
        created = await book()
        appointment_id = created["appointment"].id
        customer = await _user(db_session, riyadh.customer_id)

        appointment = await AppointmentService(db_session).update_status(
            appointment_id, S.CANCELLED, customer, notes="Plans changed"
        )

        assert appointment.status == S.CANCELLED
        requests = await _requests(db_session, appointment_id)
        assert {r.status for r in requests.values()} == {S.REJECTED}

    async def test_customer_cannot_confirm(self, db_session, riyadh, book):
        created = await book()
        customer = await _user(db_session, riyadh.customer_id)

        with pytest.raises(ForbiddenError):
            await AppointmentService(db_session).update_status(
                created["appointment"].id, S.CONFIRMED, customer
            )

    async def test_same_status_is_refused(self, db_session, riyadh, book):
        created = await book()
        admin = await _user(db_session, riyadh.admin_id)

        with pytest.raises(AlreadyInTargetStatus):
            await AppointmentService(db_session).update_status(
                created["appointment"].id, S.PENDING, admin
            )


class TestVisibility:
    async def test_stranger_cannot_read_appointment(self, db_session, book, make_user):
        created = await book()
        stranger = await make_user(full_name="Nosy Customer")

        with pytest.raises(ForbiddenError):
            await AppointmentService(db_session).get_appointment(
                created["appointment"].id, stranger
            )

    async def test_offered_agent_can_read_appointment(self, db_session, riyadh, book):
        created = await book()
        agent_user = await _user(db_session, riyadh.second_user_id)

        appointment = await AppointmentService(db_session).get_appointment(
            created["appointment"].id, agent_user
        )

        assert appointment.id == created["appointment"].id

    async def test_lists_are_scoped_to_the_customer(self, db_session, riyadh, book, make_user):
        await book()
        other = await make_user(full_name="Omar Customer")
        await book(customer=other, start=time(12, 0), end=time(13, 0))
        customer = await _user(db_session, riyadh.customer_id)

        page = await AppointmentService(db_session).list_appointments(customer)

        assert page["meta"]["total"] == 1
        assert page["data"][0].customer_id == riyadh.customer_id

    async def test_agent_dashboard_splits_confirmed_and_pending(
        self, db_session, riyadh, book, book_and_accept
    ):
        await book_and_accept()
        await book(start=time(14, 0), end=time(15, 0))
        agent_user = await _user(db_session, riyadh.first_user_id)

        board = await AppointmentService(db_session).get_agent_appointments(agent_user)

        assert board["confirmed"]["meta"]["total"] == 1
        assert board["pending"]["meta"]["total"] == 1
        assert board["counts"]["accepted"] == 1
        assert board["counts"]["pending"] == 1
