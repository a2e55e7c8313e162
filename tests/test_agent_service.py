"""Agent onboarding, review and visit amount management."""

from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from core.errors import AgentAlreadyExists, BadRequestError, ForbiddenError
from models.enums import AgentApprovalStatus, NotificationType, UserRole
from models.models import Notification
from repos.user_repo import UserRepo
from schemas.schema import AgentCreateSchema
from services.agent_service import AgentService

A = AgentApprovalStatus


async def _user(db, user_id):
    return await UserRepo(db).get_by_id(user_id)


async def _notifications(db, user_id):
    result = await db.execute(select(Notification).where(Notification.user_id == user_id))
    return list(result.scalars().all())


class TestApplications:
    async def test_self_application_waits_for_review(self, db_session, riyadh, make_user):
        applicant = await make_user(full_name="Khalid Applicant")
        data = AgentCreateSchema(city_ids=[riyadh.city.id], area_ids=[riyadh.olaya.id])

        agent = await AgentService(db_session).create_agent(data, applicant)

        assert agent.status == A.PENDING
        assert agent.visit_amount == Decimal("0.00")
        assert [c.id for c in agent.cities] == [riyadh.city.id]
        assert [a.id for a in agent.areas] == [riyadh.olaya.id]
        assert (await _user(db_session, applicant.id)).role == UserRole.CUSTOMER

        [notice] = await _notifications(db_session, riyadh.admin_id)
        assert notice.type == NotificationType.AGENT_NEW_REGISTRATION

    async def test_single_city_without_areas_covers_the_whole_city(
        self, db_session, riyadh, make_user
    ):
        applicant = await make_user(full_name="Khalid Applicant")
        data = AgentCreateSchema(city_ids=[riyadh.city.id])

        agent = await AgentService(db_session).create_agent(data, applicant)

        assert {a.id for a in agent.areas} == {riyadh.olaya.id, riyadh.malqa.id}

    async def test_duplicate_application_is_refused(self, db_session, riyadh):
        agent_user = await _user(db_session, riyadh.first_user_id)
        data = AgentCreateSchema(city_ids=[riyadh.city.id])

        with pytest.raises(AgentAlreadyExists):
            await AgentService(db_session).create_agent(data, agent_user)

    async def test_area_outside_the_city_is_refused(
        self, db_session, riyadh, make_user, make_city, make_area
    ):
        jeddah = await make_city("Jeddah")
        corniche = await make_area(jeddah, "Corniche")
        applicant = await make_user(full_name="Khalid Applicant")
        data = AgentCreateSchema(city_ids=[riyadh.city.id], area_ids=[corniche.id])

        with pytest.raises(BadRequestError):
            await AgentService(db_session).create_agent(data, applicant)

    async def test_admin_creates_an_approved_agent(
        self, db_session, riyadh, make_user, make_city
    ):
        await make_city("Jeddah")
        candidate = await make_user(full_name="Faisal Candidate")
        admin = await _user(db_session, riyadh.admin_id)
        data = AgentCreateSchema(user_id=candidate.id, city_ids="all", visit_amount=Decimal("120"))

        agent = await AgentService(db_session).create_agent(data, admin)

        assert agent.status == A.APPROVED
        assert agent.visit_amount == Decimal("120.00")
        assert len(agent.cities) == 2
        assert (await _user(db_session, candidate.id)).role == UserRole.AGENT

    async def test_admin_must_name_the_user(self, db_session, riyadh):
        admin = await _user(db_session, riyadh.admin_id)

        with pytest.raises(BadRequestError):
            await AgentService(db_session).create_agent(
                AgentCreateSchema(city_ids="all"), admin
            )


class TestReview:
    async def test_approval_promotes_the_user(self, db_session, riyadh, make_agent):
        pending = await make_agent([riyadh.city], [riyadh.olaya], status=A.PENDING)
        pending_id, user_id = pending.id, pending.user_id
        admin = await _user(db_session, riyadh.admin_id)

        agent = await AgentService(db_session).review_agent(
            pending_id, A.APPROVED, "ID checked", admin
        )

        assert agent.status == A.APPROVED
        assert agent.kyc_notes == "ID checked"
        assert (await _user(db_session, user_id)).role == UserRole.AGENT
        [notice] = await _notifications(db_session, user_id)
        assert notice.type == NotificationType.AGENT_APPROVED
        assert notice.message.endswith("Notes: ID checked")

    async def test_rejection_demotes_an_agent(self, db_session, riyadh):
        admin = await _user(db_session, riyadh.admin_id)

        agent = await AgentService(db_session).review_agent(
            riyadh.second_id, A.REJECTED, None, admin
        )

        assert agent.status == A.REJECTED
        assert (await _user(db_session, riyadh.second_user_id)).role == UserRole.CUSTOMER

    async def test_non_admin_cannot_review(self, db_session, riyadh):
        customer = await _user(db_session, riyadh.customer_id)

        with pytest.raises(HTTPException) as exc:
            await AgentService(db_session).review_agent(
                riyadh.first_id, A.APPROVED, None, customer
            )

        assert exc.value.status_code == 403


class TestVisitAmount:
    async def test_admin_sets_the_visit_amount(self, db_session, riyadh):
        admin = await _user(db_session, riyadh.admin_id)

        agent = await AgentService(db_session).update_visit_amount(
            riyadh.first_id, Decimal("200"), admin
        )

        assert agent.visit_amount == Decimal("200.00")
        [notice] = await _notifications(db_session, riyadh.first_user_id)
        assert notice.title == "Visit Amount Updated"

    @pytest.mark.parametrize("amount", [Decimal("-1"), Decimal("10000.01")])
    async def test_out_of_range_amount_is_refused(self, db_session, riyadh, amount):
        admin = await _user(db_session, riyadh.admin_id)

        with pytest.raises(BadRequestError):
            await AgentService(db_session).update_visit_amount(riyadh.first_id, amount, admin)

    async def test_agent_sees_only_its_own_profile(self, db_session, riyadh):
        agent_user = await _user(db_session, riyadh.first_user_id)
        service = AgentService(db_session)

        assert (await service.get_agent(riyadh.first_id, agent_user)).id == riyadh.first_id
        with pytest.raises(ForbiddenError):
            await service.get_agent(riyadh.second_id, agent_user)
