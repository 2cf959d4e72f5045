"""
Shared pytest fixtures for the roleguard test suite.

Tests run against an in-memory SQLite database through aiosqlite. The
system role hierarchy is seeded for every test:

    ROLE_OWNER -> ROLE_ADMIN -> ROLE_MODERATOR -> ROLE_USER
    ROLE_EDITOR -> ROLE_USER

Fixtures hand out ids rather than ORM instances, since a rollback inside a
service expires every instance held by the session.
"""
from typing import Dict
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from roleguard.core.hierarchy_cache import HierarchyCache
from roleguard.models import Base
from roleguard.repositories import AuditLogRepository, RoleRepository, UserRepository
from roleguard.scripts.seed_roles import SYSTEM_ROLES
from roleguard.services import (
    AuditService,
    AuthorizationService,
    PrincipalRoleService,
    RoleService,
)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with foreign keys enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> HierarchyCache:
    """Fresh hierarchy cache per test, independent of the process-wide one."""
    return HierarchyCache()


@pytest_asyncio.fixture
async def role_ids(session) -> Dict[str, UUID]:
    """Seed the system roles and return their ids by name."""
    role_repo = RoleRepository(session)
    ids: Dict[str, UUID] = {}
    for role_enum, parent_enum, description in SYSTEM_ROLES:
        role = await role_repo.create(
            name=role_enum.value,
            description=description,
            parent_id=ids[parent_enum.value] if parent_enum else None,
            is_system=True,
        )
        ids[role.name] = role.id
    await session.commit()
    return ids


@pytest.fixture
def audit_service(session) -> AuditService:
    return AuditService(AuditLogRepository(session))


@pytest.fixture
def role_service(session, audit_service, cache) -> RoleService:
    return RoleService(
        role_repository=RoleRepository(session),
        audit_service=audit_service,
        hierarchy_cache=cache,
    )


@pytest.fixture
def authorization_service(session, cache) -> AuthorizationService:
    return AuthorizationService(
        role_repository=RoleRepository(session),
        user_repository=UserRepository(session),
        hierarchy_cache=cache,
    )


@pytest.fixture
def principal_role_service(session, audit_service) -> PrincipalRoleService:
    return PrincipalRoleService(
        user_repository=UserRepository(session),
        role_repository=RoleRepository(session),
        audit_service=audit_service,
    )
