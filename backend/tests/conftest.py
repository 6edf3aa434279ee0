"""
Pytest configuration and fixtures for all tests.
"""

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import College, Resource, ResourceType, User, UserRole
from app.services.payment_provider import PaymentProvider


class StubPaymentProvider(PaymentProvider):
    """Provider with a scripted answer that counts its calls."""

    def __init__(self, verified: bool = True, error: Exception = None, delay: float = 0):
        self.verified = verified
        self.error = error
        self.delay = delay
        self.calls = 0

    async def verify_transaction(self, session_id: str) -> bool:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.verified


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    """Create a new database session for a test."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def college_a(db):
    college = College(name="Alpha Institute", email_domain="alpha.edu")
    db.add(college)
    await db.commit()
    return college


@pytest_asyncio.fixture
async def college_b(db):
    college = College(name="Beta University", email_domain="beta.edu")
    db.add(college)
    await db.commit()
    return college


async def create_user(db, username, role, college=None):
    user = User(
        email=f"{username}@{college.email_domain if college else 'mail.com'}",
        username=username,
        display_name=username.title(),
        role=role,
        college_id=college.id if college else None,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def student_a(db, college_a):
    return await create_user(db, "alice", UserRole.COLLEGE_USER, college_a)


@pytest_asyncio.fixture
async def student_b(db, college_b):
    return await create_user(db, "bob", UserRole.COLLEGE_USER, college_b)


@pytest_asyncio.fixture
async def moderator_a(db, college_a):
    return await create_user(db, "mona", UserRole.MODERATOR, college_a)


@pytest_asyncio.fixture
async def moderator_b(db, college_b):
    return await create_user(db, "mark", UserRole.MODERATOR, college_b)


@pytest_asyncio.fixture
async def admin(db):
    return await create_user(db, "root", UserRole.ADMIN)


@pytest_asyncio.fixture
async def general_user(db):
    return await create_user(db, "gary", UserRole.GENERAL_USER)


@pytest_asyncio.fixture
async def guest(db):
    return await create_user(db, "gwen", UserRole.GUEST)


async def create_resource(
    db,
    college,
    uploader,
    resource_type=ResourceType.PYQS,
    department="MBA",
    batch="2024",
    file_name="finance-midterm.pdf",
):
    resource = Resource(
        college_id=college.id,
        resource_type=resource_type,
        department=department,
        batch=batch,
        file_name=file_name,
        file_url=f"https://files.example.com/{college.email_domain}/{file_name}",
        description=f"{file_name} for {department} {batch}",
        uploaded_by=uploader.id,
    )
    db.add(resource)
    await db.commit()
    return resource


@pytest_asyncio.fixture
async def resource_a(db, college_a, moderator_a):
    return await create_resource(db, college_a, moderator_a, file_name="alpha-notes.pdf")


@pytest_asyncio.fixture
async def resource_b(db, college_b, moderator_b):
    return await create_resource(db, college_b, moderator_b, file_name="beta-notes.pdf")


@pytest.fixture
def approving_provider():
    return StubPaymentProvider(verified=True)


@pytest.fixture
def declining_provider():
    return StubPaymentProvider(verified=False)


@pytest.fixture
def user_fixture(request):
    """Resolve a user fixture by name during setup (outside the test's event loop)."""
    return request.getfixturevalue(request.param)
