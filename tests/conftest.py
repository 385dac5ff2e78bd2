"""Shared test fixtures for all tests"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from uuid import uuid4

from billing_resources.core.database import create_session_factory, get_db
from billing_resources.core.security import create_access_token
from billing_resources.models.base import Base
from billing_resources.models.server import (
    AllocationModel,
    BackupModel,
    ServerDatabaseModel,
    ServerModel,
)
from billing_resources.models.user import UserModel, UserRole
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.resource_quota_manager import ResourceQuotaManager
from billing_resources.services.resource_settings import (
    PluginSettingsRepository,
    ResourceSettingsService,
)
from billing_resources.services.user_resources_store import UserResourcesStore


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine (in-memory SQLite)"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session"""
    async_session_factory = create_session_factory(db_engine)

    async with async_session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Panel data factories
# ============================================================================

@pytest.fixture
def make_user(db_session):
    """Create and commit a panel user"""
    async def _make_user(role: UserRole = UserRole.USER, username: str = None) -> UserModel:
        suffix = uuid4().hex[:8]
        user = UserModel(
            uuid=str(uuid4()),
            username=username or f"user_{suffix}",
            email=f"{username or 'user_' + suffix}@example.com",
            role=role,
            is_active=True,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_server(db_session):
    """Create and commit a server owned by a user"""
    async def _make_server(owner: UserModel, **resources) -> ServerModel:
        server_uuid = str(uuid4())
        server = ServerModel(
            uuid=server_uuid,
            uuid_short=server_uuid[:8],
            name=resources.pop("name", f"server-{server_uuid[:4]}"),
            owner_id=owner.id,
            memory=resources.get("memory", 0),
            cpu=resources.get("cpu", 0),
            disk=resources.get("disk", 0),
            database_limit=resources.get("database_limit", 0),
            backup_limit=resources.get("backup_limit", 0),
            allocation_limit=resources.get("allocation_limit", 0),
        )
        db_session.add(server)
        await db_session.commit()
        return server

    return _make_server


@pytest.fixture
def add_children(db_session):
    """Attach databases, backups and allocations to a server"""
    async def _add_children(
        server: ServerModel,
        databases: int = 0,
        backups: int = 0,
        allocations: int = 0
    ) -> None:
        for i in range(databases):
            db_session.add(ServerDatabaseModel(server_id=server.id, database=f"s{server.id}_db{i}"))
        for i in range(backups):
            db_session.add(BackupModel(server_id=server.id, name=f"backup-{i}"))
        for i in range(allocations):
            db_session.add(AllocationModel(server_id=server.id, ip="10.0.0.1", port=25565 + i))
        await db_session.commit()

    return _add_children


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def panel(db_session):
    return PanelRepository(db_session)


@pytest.fixture
def resource_settings(db_session):
    return ResourceSettingsService(PluginSettingsRepository(db_session))


@pytest.fixture
def store(db_session, resource_settings, panel):
    return UserResourcesStore(db_session, resource_settings, panel)


@pytest.fixture
def quota_manager(store, panel, resource_settings):
    return ResourceQuotaManager(store, panel, resource_settings)


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def auth_headers():
    """Bearer headers for a user"""
    def _auth_headers(user: UserModel) -> dict:
        token = create_access_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest_asyncio.fixture
async def client(db_session):
    """HTTP client against the app, sharing the test session"""
    from billing_resources.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "property: marks tests as property-based tests")
