import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.api.deps import get_current_user
from app.db.models import Appointment, AppointmentStatus, AppointmentType, Patient, User, UserRole
from app.db.session import get_session
from app.main import app


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def create_user(session, role: UserRole, first_name: str, last_name: str = "Test") -> User:
    user = User(
        role=role,
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{last_name.lower()}@example.com",
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def practitioner(session):
    return await create_user(session, UserRole.PRACTITIONER, "Alice")


@pytest_asyncio.fixture
async def other_practitioner(session):
    return await create_user(session, UserRole.PRACTITIONER, "Bob")


@pytest_asyncio.fixture
async def patient(session, practitioner):
    user = await create_user(session, UserRole.PATIENT, "Carol")
    session.add(Patient(app_user_id=user.id, practitioner_id=practitioner.id))
    await session.commit()
    return user


@pytest_asyncio.fixture
async def outsider(session):
    return await create_user(session, UserRole.PATIENT, "Dave")


async def make_appointment(
    session,
    practitioner: User,
    patient: User,
    start: datetime,
    duration: int = 30,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    type: AppointmentType = AppointmentType.IN_PERSON,
) -> Appointment:
    appointment = Appointment(
        practitioner_id=practitioner.id,
        patient_id=patient.id,
        appointment_date_time=start,
        duration_in_minutes=duration,
        type=type,
        status=status,
    )
    session.add(appointment)
    await session.commit()
    await session.refresh(appointment)
    return appointment


@pytest_asyncio.fixture
async def acting():
    """Holder for the user the HTTP client is authenticated as."""
    return {"user": None}


@pytest_asyncio.fixture
async def client(session_factory, acting):
    async def override_session():
        async with session_factory() as session:
            yield session

    async def override_user():
        return acting["user"]

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_current_user] = override_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2025, 8, day, hour, minute)
