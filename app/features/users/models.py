"""
User model with ULID primary keys.
"""
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin


class User(ULIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    User model representing authenticated users.

    Each user belongs to exactly one ACL group; the group decides which
    routes the user may call when ACL enforcement is on.
    """
    __tablename__ = "users"

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    group_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("acl_groups.id"),
        nullable=False,
        index=True
    )

    group: Mapped["Group"] = relationship(  # type: ignore
        "Group",
        back_populates="users",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, group_id={self.group_id})>"
