"""
Pytest configuration and fixtures
"""
import os

# Point the app at SQLite before database.py builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from typing import AsyncGenerator, Optional
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_async_session
from main import app
from app.core.auth import AuthSession
from app.core.security import create_access_token, hash_password
from app.models import Patient, Profile, User, UserRole, UserRoleAssignment


# Test database URL (use in-memory SQLite for testing)
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///:memory:"
)

TEST_PASSWORD = "testpassword123"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False} if "sqlite" in TEST_DATABASE_URL else {},
        poolclass=StaticPool if "sqlite" in TEST_DATABASE_URL else None,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """API client whose requests share the test session"""
    async def override_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(
    db: AsyncSession,
    email: str,
    role: Optional[UserRole] = None,
    full_name: str = "Test User",
) -> User:
    user = User(email=email, hashed_password=hash_password(TEST_PASSWORD), is_active=True)
    db.add(user)
    await db.flush()
    db.add(Profile(id=user.id, email=email, full_name=full_name))
    if role is not None:
        db.add(UserRoleAssignment(user_id=user.id, role=role))
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def doctor(db_session: AsyncSession) -> User:
    return await create_user(db_session, "doctor@example.com", UserRole.DOCTOR, "Dr. Ada Molar")


@pytest.fixture
async def other_doctor(db_session: AsyncSession) -> User:
    return await create_user(db_session, "other.doctor@example.com", UserRole.DOCTOR, "Dr. Ben Cusp")


@pytest.fixture
async def patient_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "patient@example.com", UserRole.PATIENT, "Pat Incisor")


@pytest.fixture
def doctor_headers(doctor: User) -> dict:
    return headers_for(doctor)


@pytest.fixture
def patient_headers(patient_user: User) -> dict:
    return headers_for(patient_user)


@pytest.fixture
def doctor_auth(doctor: User) -> AuthSession:
    return AuthSession(user_id=doctor.id, role=UserRole.DOCTOR)


@pytest.fixture
async def patient_record(db_session: AsyncSession, doctor: User) -> Patient:
    """Patient "100" owned by the doctor fixture, not yet linked to an account"""
    patient = Patient(doctor_id=doctor.id, patient_code="100", name="Pat Incisor", age=34)
    db_session.add(patient)
    await db_session.commit()
    await db_session.refresh(patient)
    return patient
