"""
Data access for ACL groups and permissions.

Both repositories are parameterized by the ORM classes the resolver binds,
so they only touch attributes every bound class is required to have:
``permissions`` / ``users`` relationships on the group model and
``resource`` / ``name`` columns on the permission model.
"""
from itertools import groupby
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import delete, func, select, update, Column, Table
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.features.acl.exceptions import (
    AclConfigurationError,
    GroupNotFoundError,
    UnknownPermissionError,
)


class GroupRepository:
    def __init__(self, session: AsyncSession, model: type):
        self.session = session
        self.model = model

    @property
    def permission_model(self) -> type:
        return self.model.permissions.property.mapper.class_

    def _membership(self) -> tuple[type, Any]:
        """Return the user class and its foreign-key attribute pointing at groups."""
        prop = self.model.users.property
        user_mapper = prop.mapper
        (_, remote_column), = prop.local_remote_pairs
        fk_attribute = getattr(user_mapper.class_, user_mapper.get_property_by_column(remote_column).key)
        return user_mapper.class_, fk_attribute

    async def list_all(self) -> Sequence[Any]:
        result = await self.session.execute(select(self.model).order_by(self.model.name))
        return result.scalars().all()

    async def find(self, group_id: str, with_permissions: bool = False) -> Optional[Any]:
        stmt = select(self.model).where(self.model.id == group_id)
        if with_permissions:
            stmt = stmt.options(selectinload(self.model.permissions))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, group_id: str, with_permissions: bool = False) -> Any:
        group = await self.find(group_id, with_permissions=with_permissions)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    def add(self, group: Any) -> None:
        self.session.add(group)

    async def delete(self, group: Any) -> None:
        await self.session.delete(group)

    async def count_users(self, group_id: str) -> int:
        user_model, fk = self._membership()
        result = await self.session.execute(
            select(func.count()).select_from(user_model).where(fk == group_id)
        )
        return result.scalar_one()

    async def reassign_users(self, from_group_id: str, to_group_id: str) -> int:
        """Move every user of one group to another; returns the number moved."""
        user_model, fk = self._membership()
        result = await self.session.execute(
            update(user_model)
            .where(fk == from_group_id)
            .values({fk: to_group_id})
        )
        return result.rowcount

    async def has_permission(self, group_id: str, resource: str, name: str) -> bool:
        permission = self.permission_model
        result = await self.session.execute(
            select(func.count())
            .select_from(self.model)
            .join(self.model.permissions)
            .where(
                self.model.id == group_id,
                permission.resource == resource,
                permission.name == name,
            )
        )
        return result.scalar_one() > 0


class PermissionRepository:
    def __init__(self, session: AsyncSession, model: type, group_model: type):
        self.session = session
        self.model = model
        self.association: Table = group_model.permissions.property.secondary
        self.association_column = self._association_column()

    def _association_column(self) -> Column:
        target = self.model.__table__
        for column in self.association.columns:
            if any(fk.references(target) for fk in column.foreign_keys):
                return column
        raise AclConfigurationError(
            f"{self.association.name} has no foreign key to {target.name}"
        )

    async def list_all(self) -> Sequence[Any]:
        result = await self.session.execute(
            select(self.model).order_by(self.model.resource, self.model.name)
        )
        return result.scalars().all()

    async def grouped_by_resource(self) -> dict[str, list[Any]]:
        permissions = await self.list_all()
        return {
            resource: list(items)
            for resource, items in groupby(permissions, key=lambda p: p.resource)
        }

    async def get_many(self, permission_ids: Iterable[str]) -> list[Any]:
        """Load permissions by id; every id must exist."""
        wanted = list(dict.fromkeys(permission_ids))
        if not wanted:
            return []
        result = await self.session.execute(select(self.model).where(self.model.id.in_(wanted)))
        found = {permission.id: permission for permission in result.scalars()}
        missing = set(wanted) - set(found)
        if missing:
            raise UnknownPermissionError(missing)
        return [found[permission_id] for permission_id in wanted]

    def add(self, resource: str, name: str) -> Any:
        permission = self.model(resource=resource, name=name)
        self.session.add(permission)
        return permission

    async def delete_many(self, permission_ids: Sequence[str]) -> None:
        """Delete permissions together with the group associations that reference them."""
        if not permission_ids:
            return
        await self.session.execute(
            delete(self.association).where(self.association_column.in_(permission_ids))
        )
        await self.session.execute(delete(self.model).where(self.model.id.in_(permission_ids)))

    async def flush(self) -> None:
        await self.session.flush()
