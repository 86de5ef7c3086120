"""Shared test fixtures: async SQLite in-memory DB + test client."""

import uuid
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Import all models so metadata is populated
import taskhive.models  # noqa: F401
from taskhive.core.database import get_session
from taskhive.main import app
from taskhive.models.user import UserCreate, UserRole
from taskhive.services.access_policy import Caller
from taskhive.services.provisioning import provision_tenant
from taskhive.services.users import register_user

PASSWORD = "testpass123"


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def client(session) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Shared actors ────────────────────────────────────────────

@pytest.fixture
async def admin_headers(client: AsyncClient, session: AsyncSession) -> dict:
    """An admin with their own workspace, logged in."""
    system = Caller(id=uuid.uuid4(), roles=frozenset({UserRole.ADMIN.value}))
    user = await register_user(
        session,
        UserCreate(email="root@example.com", password=PASSWORD, name="Root", roles=[UserRole.ADMIN]),
        system,
    )
    await provision_tenant(session, user)

    resp = await client.post("/api/users/login", json={
        "email": "root@example.com",
        "password": PASSWORD,
    })
    assert resp.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
