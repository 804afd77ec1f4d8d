"""
ACL group service.

Every mutation runs as one unit of work on the request session: it commits
on success and rolls back on any exception, which is then re-raised for the
route to report.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.acl.exceptions import (
    GroupHasUsersError,
    ReplacementGroupNotFoundError,
    SameGroupReassignmentError,
)
from app.features.acl.repository import GroupRepository, PermissionRepository
from app.features.acl.schemas import GroupCreate, GroupUpdate
from app.features.acl.sync import PermissionSynchronizer
from app.utils import get_logger


log = get_logger(__name__)


class AclService:
    def __init__(
        self,
        session: AsyncSession,
        groups: GroupRepository,
        permissions: PermissionRepository,
        synchronizer: PermissionSynchronizer,
    ):
        self.session = session
        self.groups = groups
        self.permissions = permissions
        self.synchronizer = synchronizer

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def list_groups(self) -> Sequence[Any]:
        """Synchronize the permission catalog, then return every group."""
        try:
            async with self.transaction():
                await self.synchronizer.sync()
        except IntegrityError:
            # Another request inserted the same permissions first
            log.warning("Permission sync lost a race with a concurrent writer; listing anyway", exc_info=True)
        return await self.groups.list_all()

    async def new_group_form(self) -> dict[str, list[Any]]:
        """Permissions grouped by resource, ordered by resource then name."""
        return await self.permissions.grouped_by_resource()

    async def create_group(self, payload: GroupCreate) -> Any:
        async with self.transaction():
            group = self.groups.model(name=payload.name, description=payload.description)
            if payload.permissions:
                group.permissions = await self.permissions.get_many(payload.permissions)
            self.groups.add(group)
            await self.session.flush()

        log.info("Created group %s (%r) with %d permission(s)", group.id, group.name, len(payload.permissions or []))
        return group

    async def edit_group(self, group_id: str) -> Any:
        return await self.groups.get(group_id, with_permissions=True)

    async def update_group(self, group_id: str, payload: GroupUpdate) -> Any:
        async with self.transaction():
            group = await self.groups.get(group_id, with_permissions=True)
            group.name = payload.name
            group.description = payload.description
            # Replace, not append: the group ends up with exactly these permissions
            group.permissions = await self.permissions.get_many(payload.permissions or [])
            await self.session.flush()

        log.info("Updated group %s (%r)", group.id, group.name)
        return group

    async def delete_group(self, group_id: str, replacement_group_id: Optional[str] = None) -> None:
        """
        Delete a group, first moving its users to ``replacement_group_id``.

        Raises:
            GroupNotFoundError: the group does not exist
            SameGroupReassignmentError: the replacement is the group itself
            ReplacementGroupNotFoundError: the group has users and the replacement does not exist
            GroupHasUsersError: the group has users and no replacement was given
        """
        async with self.transaction():
            group = await self.groups.get(group_id, with_permissions=True)

            if replacement_group_id == group.id:
                raise SameGroupReassignmentError(group.id)

            moved = 0
            user_count = await self.groups.count_users(group.id)
            if user_count:
                if replacement_group_id is None:
                    raise GroupHasUsersError(group.id, user_count)
                # The replacement only matters when there are users to move
                if await self.groups.find(replacement_group_id) is None:
                    raise ReplacementGroupNotFoundError(replacement_group_id)
                moved = await self.groups.reassign_users(group.id, replacement_group_id)

            group.permissions.clear()
            await self.groups.delete(group)
            await self.session.flush()

        log.info("Deleted group %s; %d user(s) moved to %s", group_id, moved, replacement_group_id)
