"""
FastAPI dependencies for the ACL feature.

- ``get_acl_service`` wires the service from the configured model bindings
- ``require_permission`` declares a route permission and guards the route
"""
from typing import Annotated
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.acl.registry import PermissionRegistry, permission_registry
from app.features.acl.repository import GroupRepository, PermissionRepository
from app.features.acl.resolver import resolve_acl_models
from app.features.acl.service import AclService
from app.features.acl.sync import PermissionSynchronizer
from app.features.users.dependencies import get_current_user, security
from app.utils import get_logger


log = get_logger(__name__)


def build_acl_service(db: AsyncSession, registry: PermissionRegistry = permission_registry) -> AclService:
    """Assemble the service for a session; also used by the sync command."""
    models = resolve_acl_models()
    groups = GroupRepository(db, models.group)
    permissions = PermissionRepository(db, models.permission, models.group)
    return AclService(db, groups, permissions, PermissionSynchronizer(permissions, registry))


async def get_acl_service(db: Annotated[AsyncSession, Depends(get_db)]) -> AclService:
    return build_acl_service(db)


def require_permission(resource: str, name: str, registry: PermissionRegistry = permission_registry):
    """
    Declare ``(resource, name)`` and return a dependency enforcing it.

    Declaring happens once, when the route module is imported. Enforcement
    only applies while ACL_ENFORCE is on: the caller must present a bearer
    token for an active user who is an admin or whose group holds the
    permission.

    Usage:
        @router.get("/reports", dependencies=[Depends(require_permission("Reports", "List"))])
        async def list_reports(): ...
    """
    definition = registry.declare(resource, name)

    async def check_permission(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> None:
        if not config.ACL_ENFORCE:
            return

        groups = GroupRepository(db, resolve_acl_models().group)
        credentials = await security(request)
        user = await get_current_user(credentials, db)
        if user.is_admin:
            return

        if not await groups.has_permission(user.group_id, definition.resource, definition.name):
            log.info(
                "Denied %s %s to user %s: missing %s/%s",
                request.method, request.url.path, user.id, definition.resource, definition.name,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {definition.resource} / {definition.name}",
            )

    return check_permission
