"""
Database models for CMS users and roles.

``User.role`` is the legacy role name kept for stores created before roles
became rows of their own. ``User.role_id`` is authoritative when set; the
database nulls it if the referenced role is deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cms.db.base import Base, JSONType, Timestamp, TimestampMixin, UUIDPrimaryKeyMixin


class Role(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A named bundle of resource/action permissions."""

    __tablename__ = "cms_roles"
    __table_args__ = (UniqueConstraint("name", name="uq_cms_roles_name"),)

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permissions: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_system: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0", nullable=False
    )

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """CMS account with a bcrypt password hash."""

    __tablename__ = "cms_users"
    __table_args__ = (UniqueConstraint("username", name="uq_cms_users_username"),)

    username: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    locale: Mapped[str] = mapped_column(
        String(10), default="en", server_default="en", nullable=False
    )
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("cms_roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1", nullable=False
    )
    last_login: Mapped[datetime | None] = mapped_column(Timestamp(), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
