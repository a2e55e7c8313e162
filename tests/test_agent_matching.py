"""Unit tests for agent coverage matching."""

import uuid
from types import SimpleNamespace

import pytest

from models.enums import AgentApprovalStatus
from services.agent_matching import AgentMatcher, is_agent_eligible


def _place(**kwargs):
    return SimpleNamespace(id=uuid.uuid4(), **kwargs)


def _agent(cities=(), areas=()):
    return SimpleNamespace(cities=list(cities), areas=list(areas))


RIYADH = _place(name="Riyadh")
JEDDAH = _place(name="Jeddah")
OLAYA = _place(name="Olaya", city_id=RIYADH.id)
MALQA = _place(name="Malqa", city_id=RIYADH.id)


def _property(city, area=None):
    return SimpleNamespace(id=uuid.uuid4(), city_id=city.id, area_id=area.id if area else None)


class TestMultiCityAgents:
    def test_matches_on_city(self):
        agent = _agent(cities=[RIYADH, JEDDAH])
        assert is_agent_eligible(agent, _property(RIYADH, MALQA)) is True

    def test_area_list_is_ignored(self):
        agent = _agent(cities=[RIYADH, JEDDAH], areas=[OLAYA])
        assert is_agent_eligible(agent, _property(RIYADH, MALQA)) is True

    def test_other_city_does_not_match(self):
        agent = _agent(cities=[JEDDAH, _place(name="Dammam")])
        assert is_agent_eligible(agent, _property(RIYADH, OLAYA)) is False


class TestSingleCityAgents:
    def test_matches_on_area(self):
        agent = _agent(cities=[RIYADH], areas=[OLAYA])
        assert is_agent_eligible(agent, _property(RIYADH, OLAYA)) is True

    def test_other_area_in_same_city_does_not_match(self):
        agent = _agent(cities=[RIYADH], areas=[OLAYA])
        assert is_agent_eligible(agent, _property(RIYADH, MALQA)) is False

    def test_property_without_area_does_not_match(self):
        agent = _agent(cities=[RIYADH], areas=[OLAYA, MALQA])
        assert is_agent_eligible(agent, _property(RIYADH)) is False


def test_agent_without_cities_never_matches():
    assert is_agent_eligible(_agent(areas=[OLAYA]), _property(RIYADH, OLAYA)) is False


# ---------------------------------------------------------------------------
# Database-backed matching
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_only_approved_agents_are_offered(db_session, riyadh, make_agent):
    await make_agent(
        [riyadh.city],
        [riyadh.olaya],
        status=AgentApprovalStatus.PENDING,
        full_name="Pending Agent",
    )
    await make_agent(
        [riyadh.city],
        [riyadh.olaya],
        status=AgentApprovalStatus.REJECTED,
        full_name="Rejected Agent",
    )

    eligible = await AgentMatcher(db_session).find_eligible_agents(riyadh.property)

    assert {agent.id for agent in eligible} == {riyadh.first_id, riyadh.second_id}


@pytest.mark.asyncio
async def test_area_agents_skip_properties_in_other_areas(
    db_session, riyadh, make_property
):
    prop = await make_property(riyadh.city, riyadh.malqa, title="Malqa Flat")

    eligible = await AgentMatcher(db_session).find_eligible_agents(prop)

    assert eligible == []
