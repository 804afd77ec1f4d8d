"""Shared pytest fixtures for the ACL admin tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path

# Configure the app before anything under ``app`` is imported
_DB_DIR = Path(tempfile.mkdtemp(prefix="acl-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'acl.sqlite'}"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("ACL_ENFORCE", None)

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import Base
from app.core.database.engine import AsyncSessionLocal, engine, init_db
from app.features.acl.models import Group, Permission
from app.features.acl.registry import PermissionRegistry
from app.features.acl.repository import GroupRepository, PermissionRepository
from app.features.acl.service import AclService
from app.features.acl.sync import PermissionSynchronizer
from app.features.users.models import User
from app.main import app as fastapi_app


@pytest_asyncio.fixture()
async def database() -> AsyncIterator[None]:
    """Create the schema for one test and drop it afterwards."""

    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture()
async def session(database: None) -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture()
def registry() -> PermissionRegistry:
    registry = PermissionRegistry()
    registry.declare("Reports", "List")
    registry.declare("Reports", "Export")
    registry.declare("ACL", "List")
    return registry


@pytest.fixture()
def service(session: AsyncSession, registry: PermissionRegistry) -> AclService:
    groups = GroupRepository(session, Group)
    permissions = PermissionRepository(session, Permission, Group)
    return AclService(session, groups, permissions, PermissionSynchronizer(permissions, registry))


@pytest_asyncio.fixture()
async def permissions(service: AclService) -> dict[tuple[str, str], Permission]:
    """Synchronized catalog keyed by ``(resource, name)``."""

    async with service.transaction():
        await service.synchronizer.sync()
    return {(p.resource, p.name): p for p in await service.permissions.list_all()}


@pytest.fixture()
def app(database: None) -> FastAPI:
    return fastapi_app


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the FastAPI app."""

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
def make_group(session: AsyncSession):
    """Return a coroutine that persists a group with the given permissions."""

    async def _make(name: str, permissions: list[Permission] | None = None) -> Group:
        group = Group(name=name, permissions=list(permissions or []))
        session.add(group)
        await session.commit()
        return group

    return _make


@pytest.fixture()
def make_user(session: AsyncSession):
    """Return a coroutine that persists a user in a group."""

    async def _make(group: Group, email: str, *, is_admin: bool = False) -> User:
        user = User(email=email, name=email.split("@")[0], group_id=group.id, is_admin=is_admin)
        session.add(user)
        await session.commit()
        return user

    return _make
