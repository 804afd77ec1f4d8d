"""
Default Group and Permission models for the ACL admin.

These are the classes bound by ACL_GROUP_MODEL / ACL_PERMISSION_MODEL unless
the deployment points those settings at its own models.
"""
from sqlalchemy import String, ForeignKey, Table, Column, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin


# Group-Permission relationship
group_permissions = Table(
    "acl_group_permissions",
    Base.metadata,
    Column("group_id", String(26), ForeignKey("acl_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("acl_permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(ULIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    A (resource, name) pair declared by a route handler.

    Rows are owned by the permission synchronizer; they are never edited
    through the admin routes.
    """
    __tablename__ = "acl_permissions"
    __table_args__ = (UniqueConstraint("resource", "name", name="uq_acl_permissions_resource_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    resource: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    groups: Mapped[list["Group"]] = relationship(
        "Group",
        secondary=group_permissions,
        back_populates="permissions",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, resource={self.resource!r}, name={self.name!r})>"


class Group(ULIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    ACL group: a named set of permissions that users belong to.

    Every user belongs to exactly one group, so a group with members can only
    be deleted after its users are moved to another group.
    """
    __tablename__ = "acl_groups"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=group_permissions,
        back_populates="groups",
        order_by=lambda: [Permission.resource, Permission.name],
    )

    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        back_populates="group",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name!r})>"
