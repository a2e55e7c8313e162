import logging
import uuid
from typing import List, Tuple

from core.check_permission import CheckRolePermission
from core.errors import (
    AgentAlreadyExists,
    AgentNotFound,
    BadRequestError,
    ForbiddenError,
    UserNotFound,
)
from core.paginate import paginator
from core.settings import settings
from models.enums import AgentApprovalStatus, DomainEventType, UserRole
from models.models import Agent, Area, City
from repos.agent_repo import AgentRepo
from repos.location_repo import LocationRepo
from repos.user_repo import UserRepo

from .event_outbox import EventOutbox
from .notification_dispatcher import dispatch_after_commit
from .wallet_service import to_money

logger = logging.getLogger(__name__)


class AgentService:
    def __init__(self, db):
        self.db = db
        self.repo: AgentRepo = AgentRepo(db)
        self.user_repo: UserRepo = UserRepo(db)
        self.location_repo: LocationRepo = LocationRepo(db)
        self.outbox: EventOutbox = EventOutbox(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    async def resolve_coverage(
        self, city_ids, area_ids
    ) -> Tuple[List[City], List[Area]]:
        if city_ids == "all":
            cities = await self.location_repo.get_all_cities()
            return cities, [area for city in cities for area in city.areas]

        wanted = set(city_ids)
        cities = await self.location_repo.get_cities_by_ids(wanted)
        if not cities or len(cities) != len(wanted):
            raise BadRequestError("Invalid city_ids")

        if len(cities) > 1:
            return cities, [area for city in cities for area in city.areas]

        city = cities[0]
        if area_ids == "all" or not area_ids:
            return cities, list(city.areas)

        wanted_areas = set(area_ids)
        areas = await self.location_repo.get_areas_by_ids(wanted_areas, city_id=city.id)
        if len(areas) != len(wanted_areas):
            raise BadRequestError(f"Some area_ids do not belong to {city.name}")
        return cities, areas

    async def create_agent(self, data, current_user) -> Agent:
        by_admin = current_user.role == UserRole.ADMIN
        if by_admin and not data.user_id:
            raise BadRequestError("user_id is required when an admin creates an agent")
        user_id = data.user_id if by_admin else current_user.id

        if await self.repo.get_by_user_id(user_id):
            raise AgentAlreadyExists()

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFound()

        cities, areas = await self.resolve_coverage(data.city_ids, data.area_ids)

        try:
            agent = Agent(
                user_id=user.id,
                status=AgentApprovalStatus.APPROVED
                if by_admin
                else AgentApprovalStatus.PENDING,
                kyc_notes=data.kyc_notes,
                visit_amount=to_money(data.visit_amount) if by_admin else to_money(0),
                updated_by_id=current_user.id if by_admin else None,
            )
            agent.cities = cities
            agent.areas = areas
            await self.repo.add(agent)

            if by_admin:
                await self.user_repo.set_role(user, UserRole.AGENT)
            else:
                await self.outbox.record(
                    DomainEventType.AGENT_REGISTERED,
                    {"agent_id": agent.id, "user_id": user.id, "full_name": user.full_name},
                )
            agent_id = agent.id
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Agent %s created for user %s (%s)",
            agent_id,
            user_id,
            "admin" if by_admin else "self-application",
        )
        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return await self.repo.get_by_id(agent_id)

    async def review_agent(
        self, agent_id: uuid.UUID, status: AgentApprovalStatus, kyc_notes, current_user
    ) -> Agent:
        await self.permission.check_admin(current_user)
        agent = await self.repo.get_by_id(agent_id)
        if not agent:
            raise AgentNotFound()

        try:
            agent.status = status
            agent.kyc_notes = kyc_notes if kyc_notes is not None else agent.kyc_notes
            agent.updated_by_id = current_user.id
            await self.repo.save(agent)

            user = await self.user_repo.get_by_id(agent.user_id)
            if status == AgentApprovalStatus.APPROVED:
                await self.user_repo.set_role(user, UserRole.AGENT)
            elif user.role == UserRole.AGENT:
                await self.user_repo.set_role(user, UserRole.CUSTOMER)

            await self.outbox.record(
                DomainEventType.AGENT_REVIEWED,
                {
                    "agent_id": agent.id,
                    "user_id": agent.user_id,
                    "status": status.value,
                    "kyc_notes": kyc_notes,
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Agent %s reviewed: %s", agent_id, status.value)
        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return await self.repo.get_by_id(agent_id)

    async def update_visit_amount(self, agent_id: uuid.UUID, amount, current_user) -> Agent:
        await self.permission.check_admin(current_user)
        amount = to_money(amount)
        if amount < 0 or amount > settings.MAX_VISIT_AMOUNT:
            raise BadRequestError(
                f"Visit amount must be between 0 and {settings.MAX_VISIT_AMOUNT}"
            )

        agent = await self.repo.get_by_id(agent_id)
        if not agent:
            raise AgentNotFound()

        try:
            old_amount = to_money(agent.visit_amount)
            agent.visit_amount = amount
            agent.updated_by_id = current_user.id
            await self.repo.save(agent)
            await self.outbox.record(
                DomainEventType.VISIT_AMOUNT_UPDATED,
                {
                    "agent_id": agent.id,
                    "agent_user_id": agent.user_id,
                    "old_amount": old_amount,
                    "new_amount": amount,
                    "currency": settings.CURRENCY,
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await dispatch_after_commit(self.db, self.outbox.take_recorded())
        return await self.repo.get_by_id(agent_id)

    async def get_agent(self, agent_id: uuid.UUID, current_user) -> Agent:
        agent = await self.repo.get_by_id(agent_id)
        if not agent:
            raise AgentNotFound()
        if current_user.role != UserRole.ADMIN and agent.user_id != current_user.id:
            raise ForbiddenError("You can only view your own agent profile")
        return agent

    async def list_agents(
        self,
        current_user,
        status: AgentApprovalStatus | None = None,
        city_id: uuid.UUID | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        await self.permission.check_admin(current_user)
        items, total = await self.repo.list_agents(
            status=status, city_id=city_id, page=page, per_page=per_page
        )
        return paginator.page_of(items, page, per_page, total)
