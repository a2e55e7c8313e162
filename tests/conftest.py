"""Shared test infrastructure for the property visits test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- make_user / make_city / make_area / make_property / make_agent: row factories
- riyadh: a city with two areas, a property in Olaya and two approved agents
- book / book_and_accept: drive an appointment through the service layer
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RABBITMQ_URL"] = ""
os.environ.pop("EMAIL_SERVER", None)

import uuid
from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import Base first, then models to register all tables
from core.get_db import Base

import models.event_listener  # noqa: F401

from models.enums import AgentApprovalStatus, AppointmentStatus, UserRole
from models.models import Agent, Area, City, Property, User
from schemas.schema import AppointmentCreate, RespondRequestSchema
from services.appointment_service import AppointmentService


VISIT_DAY = date(2024, 1, 10)


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Async session configured like the application's session factory."""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db_session):
    """Factory that creates a User row.

    Usage:
        admin = await make_user(role=UserRole.ADMIN, full_name="Site Admin")
    """
    async def _factory(
        role: UserRole = UserRole.CUSTOMER,
        full_name: str = "Test Customer",
        email: str | None = None,
    ) -> User:
        user = User(
            full_name=full_name,
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            role=role,
            is_active=True,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _factory


@pytest.fixture
def make_city(db_session):
    async def _factory(name: str) -> City:
        city = City(name=name, areas=[])
        db_session.add(city)
        await db_session.commit()
        return city

    return _factory


@pytest.fixture
def make_area(db_session):
    async def _factory(city: City, name: str) -> Area:
        area = Area(name=name, city=city)
        db_session.add(area)
        await db_session.commit()
        return area

    return _factory


@pytest.fixture
def make_property(db_session):
    async def _factory(
        city: City, area: Area | None = None, title: str = "Sea View Villa"
    ) -> Property:
        prop = Property(
            title=title,
            address="King Fahd Road",
            city_id=city.id,
            area_id=area.id if area else None,
        )
        db_session.add(prop)
        await db_session.commit()
        return prop

    return _factory


@pytest.fixture
def make_agent(db_session, make_user):
    """Factory that creates an agent user plus its Agent profile.

    Usage:
        agent = await make_agent(cities=[riyadh], areas=[olaya], visit_amount="150")
    """
    async def _factory(
        cities,
        areas=(),
        visit_amount="150",
        status: AgentApprovalStatus = AgentApprovalStatus.APPROVED,
        full_name: str = "Test Agent",
    ) -> Agent:
        role = UserRole.AGENT if status == AgentApprovalStatus.APPROVED else UserRole.CUSTOMER
        user = await make_user(role=role, full_name=full_name)
        agent = Agent(
            user_id=user.id,
            status=status,
            visit_amount=Decimal(visit_amount),
            wallet_balance=Decimal("0"),
            total_earned=Decimal("0"),
            total_paid=Decimal("0"),
            completed_appointments=0,
            total_transactions=0,
        )
        agent.cities = list(cities)
        agent.areas = list(areas)
        db_session.add(agent)
        await db_session.commit()
        return agent

    return _factory


# ---------------------------------------------------------------------------
# Scenario fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def riyadh(make_user, make_city, make_area, make_property, make_agent):
    """One city, two areas, a property in Olaya and two agents covering Olaya.

    Ids are copied into plain attributes so tests can keep using them after
    a service rolls its transaction back.
    """
    city = await make_city("Riyadh")
    olaya = await make_area(city, "Olaya")
    malqa = await make_area(city, "Malqa")
    prop = await make_property(city, olaya)
    admin = await make_user(role=UserRole.ADMIN, full_name="Site Admin")
    customer = await make_user(full_name="Sara Customer")
    first = await make_agent([city], [olaya], full_name="First Agent")
    second = await make_agent([city], [olaya], full_name="Second Agent")

    return SimpleNamespace(
        city=city,
        olaya=olaya,
        malqa=malqa,
        property=prop,
        property_id=prop.id,
        admin=admin,
        admin_id=admin.id,
        customer=customer,
        customer_id=customer.id,
        first=first,
        first_id=first.id,
        first_user_id=first.user_id,
        second=second,
        second_id=second.id,
        second_user_id=second.user_id,
    )


@pytest.fixture
def book(db_session, riyadh):
    """Create an appointment for the riyadh property through the service."""
    async def _factory(
        start: time = time(9, 0),
        end: time = time(10, 0),
        day: date = VISIT_DAY,
        customer=None,
        property_id=None,
    ) -> dict:
        data = AppointmentCreate(
            property_id=property_id or riyadh.property_id,
            appointment_date=day,
            start_time=start,
            end_time=end,
        )
        return await AppointmentService(db_session).create_appointment(
            data, customer or riyadh.customer
        )

    return _factory


@pytest.fixture
def book_and_accept(db_session, riyadh, book):
    """Book a visit and let the first agent win it.

    Returns the accepted request id and the appointment id.
    """
    async def _factory(**kwargs) -> SimpleNamespace:
        created = await book(**kwargs)
        appointment_id = created["appointment"].id
        service = AppointmentService(db_session)
        request = await service.request_repo.get_for_agent(
            appointment_id, riyadh.first_user_id
        )
        agent_user = await service.user_repo.get_by_id(riyadh.first_user_id)
        await service.respond_to_request(
            request.id,
            RespondRequestSchema(status=AppointmentStatus.ACCEPTED),
            agent_user,
        )
        return SimpleNamespace(request_id=request.id, appointment_id=appointment_id)

    return _factory
