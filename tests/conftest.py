"""
Shared test fixtures for the Devcore API test suite.

Async throughout (aiosqlite + AsyncSession); one in-memory database shared
through a StaticPool and rebuilt for every test.
"""

import os
import sys
import tempfile
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
_SETTINGS_DIR = tempfile.mkdtemp(prefix="devcore-settings-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["SETTINGS_FILE"] = os.path.join(_SETTINGS_DIR, "settings.json")

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from devcore.core.config import settings
from devcore.core.permissions import Role, default_permissions
from devcore.core.security import create_access_token, get_password_hash
from devcore.db.session import Database
from devcore.main import app
from devcore.models.project import Project, ProjectMember
from devcore.models.task import Task
from devcore.models.user import User
from devcore.services.rate_limit import get_reset_limiter

PASSWORD = "password123"
API = settings.API_V1_PREFIX

test_database = Database(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
test_database.connect()
app.state.database = test_database

# Hashing once keeps user fixtures fast
_PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    await test_database.create_all()
    get_reset_limiter().reset()

    yield

    await test_database.drop_all()
    if os.path.exists(settings.SETTINGS_FILE):
        os.remove(settings.SETTINGS_FILE)
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with test_database.session() as session:
        yield session


# ── Users & tokens ──────────────────────────────────────────────────
@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: persist a user of *role* with that role's default grants."""
    counter = {"n": 0}

    async def _make(role: Role = Role.CLIENT, **overrides) -> User:
        counter["n"] += 1
        fields = {
            "email": f"{role.value.lower()}{counter['n']}@example.com",
            "hashed_password": _PASSWORD_HASH,
            "first_name": role.value.title(),
            "last_name": str(counter["n"]),
            "role": role.value,
            "is_active": True,
            "is_approved": True,
            **default_permissions(role),
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


def auth_headers(user: User, fresh: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role, fresh=fresh)}"}


@pytest.fixture
async def super_admin(make_user) -> User:
    return await make_user(Role.SUPER_ADMIN)


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(Role.ADMIN)


@pytest.fixture
async def developer(make_user) -> User:
    return await make_user(Role.DEVELOPER)


@pytest.fixture
async def client_user(make_user) -> User:
    return await make_user(Role.CLIENT)


# ── Projects & tasks ────────────────────────────────────────────────
@pytest.fixture
def make_project(db_session: AsyncSession):
    """Factory: persist a project owned by *client* with the given staff members."""

    async def _make(client: User, *members: User, **overrides) -> Project:
        project = Project(name=overrides.pop("name", "Website Redesign"), client_id=client.id, **overrides)
        db_session.add(project)
        await db_session.flush()
        for member in members:
            db_session.add(ProjectMember(project_id=project.id, user_id=member.id))
        await db_session.commit()
        await db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def make_task(db_session: AsyncSession):
    """Factory: persist a task in *project* created by *creator*."""

    async def _make(project: Project, creator: User, **overrides) -> Task:
        task = Task(
            project_id=project.id,
            title=overrides.pop("title", "Build landing page"),
            created_by=creator.id,
            **overrides,
        )
        db_session.add(task)
        await db_session.commit()
        await db_session.refresh(task)
        return task

    return _make
