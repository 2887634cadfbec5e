# tests/conftest.py — Shared test fixtures
import os

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["AUTH_SECRET"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"

import auth as auth_module
from models import (
    Base, User, Account, Organization, OrganizationMember, Project, MemberRole,
)
from auth import AuthService, CREDENTIAL_PROVIDER
from database import get_db_session, build_engine
from main import app

TEST_PASSWORD = "CorrectHorse42"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = build_engine(TEST_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_login_attempts():
    """The brute force tracker is process-wide"""
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


async def make_user(db_session, email: str, name: str) -> User:
    user = User(email=email, name=name, email_verified=True)
    db_session.add(user)
    await db_session.flush()
    db_session.add(Account(
        user_id=user.id,
        provider_id=CREDENTIAL_PROVIDER,
        account_id=user.id,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
    ))
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def alice(db_session):
    """Owner of Acme"""
    return await make_user(db_session, "alice@acme.test", "Alice")


@pytest_asyncio.fixture
async def bob(db_session):
    """Plain member of Acme"""
    return await make_user(db_session, "bob@acme.test", "Bob")


@pytest_asyncio.fixture
async def carol(db_session):
    """Registered but not a member of any organization"""
    return await make_user(db_session, "carol@elsewhere.test", "Carol")


@pytest_asyncio.fixture
async def acme(db_session, alice, bob):
    """Acme with alice as OWNER and bob as MEMBER"""
    org = Organization(name="Acme", slug="acme", description="Acme Corp")
    db_session.add(org)
    await db_session.flush()
    db_session.add(OrganizationMember(user_id=alice.id, organization_id=org.id, role=MemberRole.OWNER))
    db_session.add(OrganizationMember(user_id=bob.id, organization_id=org.id, role=MemberRole.MEMBER))
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest_asyncio.fixture
async def website(db_session, acme):
    """A project inside Acme"""
    project = Project(organization_id=acme.id, name="Website", color="#10b981")
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


async def create_board(client: AsyncClient, user: User, project_id: str, name: str = "Launch") -> dict:
    resp = await client.post(
        "/api/v1/boards",
        json={"name": name, "project_id": project_id},
        headers=get_auth_headers(user),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}
