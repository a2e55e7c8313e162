import logging
from typing import List

from models.models import Agent, Property
from repos.agent_repo import AgentRepo

logger = logging.getLogger(__name__)


def is_agent_eligible(agent: Agent, property: Property) -> bool:
    """Coverage rule for fanning out a visit request.

    Agents covering several cities are matched on the property's city.
    Agents covering exactly one city are matched on the property's area.
    Agents without any city never match.
    """
    cities = agent.cities or []
    if len(cities) > 1:
        return any(city.id == property.city_id for city in cities)
    if len(cities) == 1:
        if property.area_id is None:
            return False
        return any(area.id == property.area_id for area in agent.areas or [])
    return False


class AgentMatcher:
    def __init__(self, db):
        self.agent_repo: AgentRepo = AgentRepo(db)

    async def approved_agents(self) -> List[Agent]:
        return await self.agent_repo.get_approved()

    async def find_eligible_agents(self, property: Property) -> List[Agent]:
        agents = await self.approved_agents()
        eligible = [agent for agent in agents if is_agent_eligible(agent, property)]
        logger.info(
            "%s of %s approved agents cover property %s",
            len(eligible),
            len(agents),
            property.id,
        )
        return eligible
