"""Shared test fixtures for ClinicDesk API tests.

Uses an in-memory SQLite async engine so tests run without PostgreSQL.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_api.core.auth import create_access_token
from clinic_api.core.database import Base, get_db
from clinic_api.core.dependencies import ActingUser
from clinic_api.main import app

# Import all models to ensure they're registered with Base.metadata
from clinic_api.models.appointment import Appointment  # noqa: F401
from clinic_api.models.clinic import Clinic
from clinic_api.models.invoice import Invoice  # noqa: F401
from clinic_api.models.subscription import Subscription  # noqa: F401
from clinic_api.models.subscription_plan import SubscriptionPlan  # noqa: F401
from clinic_api.models.user import User, UserRole
from clinic_api.services.plans import seed_default_plans


# Use aiosqlite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables and the plan catalog before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestSession() as session:
        await seed_default_plans(session)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with TestSession() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def client():
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db():
    """Direct DB session for test setup/assertions."""
    async with TestSession() as session:
        yield session


async def make_clinic(db, name="Smile Dental", **overrides) -> Clinic:
    fields = dict(
        name=name,
        email="front@smiledental.test",
        status="active",
        working_days=["mon", "tue", "wed", "thu", "fri"],
        working_hours_start="09:00",
        working_hours_end="17:00",
        appointment_duration_minutes=30,
        break_start="13:00",
        break_end="14:00",
    )
    fields.update(overrides)
    clinic = Clinic(**fields)
    db.add(clinic)
    await db.commit()
    return clinic


async def make_user(db, clinic, role: UserRole, name: str, email=None, phone=None) -> User:
    user = User(
        clinic_id=clinic.id,
        name=name,
        email=email,
        phone=phone,
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def clinic(db):
    return await make_clinic(db)


@pytest_asyncio.fixture
async def other_clinic(db):
    return await make_clinic(db, name="Downtown Physio", email="desk@physio.test")


@pytest_asyncio.fixture
async def admin(db, clinic):
    return await make_user(db, clinic, UserRole.ADMIN, "Asha Admin", "admin@smiledental.test")


@pytest_asyncio.fixture
async def receptionist(db, clinic):
    return await make_user(db, clinic, UserRole.RECEPTIONIST, "Ravi Reception", "desk@smiledental.test")


@pytest_asyncio.fixture
async def doctor(db, clinic):
    return await make_user(db, clinic, UserRole.DOCTOR, "Dr. Meera Rao", "meera@smiledental.test")


@pytest_asyncio.fixture
async def second_doctor(db, clinic):
    return await make_user(db, clinic, UserRole.DOCTOR, "Dr. Karan Shah", "karan@smiledental.test")


@pytest_asyncio.fixture
async def patient(db, clinic):
    return await make_user(
        db, clinic, UserRole.PATIENT, "Priya Patel", "priya@example.com", "+919800000001"
    )


@pytest_asyncio.fixture
async def other_patient(db, clinic):
    return await make_user(db, clinic, UserRole.PATIENT, "Vikram Nair", "vikram@example.com")


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def acting(user: User) -> ActingUser:
    return ActingUser.from_user(user)


@pytest.fixture
def notify_mock():
    """Capture appointment notifications instead of sending them."""
    from unittest.mock import AsyncMock, patch

    with patch(
        "clinic_api.services.appointments.notify_appointment_event", new_callable=AsyncMock
    ) as mock:
        yield mock
