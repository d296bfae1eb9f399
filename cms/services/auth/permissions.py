"""
Role-based access control.

A role's permissions map resource categories to allowed actions.
``collections`` and ``singletons`` are scoped per resource name (``*``
matches every name); ``media``, ``users``, ``roles`` and ``settings`` are
flat action lists. ``manage`` implies every action. Anything not granted
is denied.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cms.core.errors import ForbiddenError
from cms.db.models.user import Role, User

_log = structlog.get_logger(__name__)


class PermissionAction(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    MANAGE = "manage"


class ResourceCategory(StrEnum):
    COLLECTIONS = "collections"
    SINGLETONS = "singletons"
    MEDIA = "media"
    USERS = "users"
    ROLES = "roles"
    SETTINGS = "settings"


SCOPED_CATEGORIES = frozenset({ResourceCategory.COLLECTIONS, ResourceCategory.SINGLETONS})
WILDCARD = "*"

SUPER_ADMIN = "super_admin"
ADMIN = "admin"
EDITOR = "editor"
AUTHOR = "author"
VIEWER = "viewer"


class RolePermissions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collections: dict[str, list[PermissionAction]] = Field(default_factory=dict)
    singletons: dict[str, list[PermissionAction]] = Field(default_factory=dict)
    media: list[PermissionAction] = Field(default_factory=list)
    users: list[PermissionAction] = Field(default_factory=list)
    roles: list[PermissionAction] = Field(default_factory=list)
    settings: list[PermissionAction] = Field(default_factory=list)


class RoleDefinition(BaseModel):
    name: str
    display_name: str
    description: str
    permissions: RolePermissions


def _actions(*names: str) -> list[PermissionAction]:
    return [PermissionAction(n) for n in names]


DEFAULT_ROLES: dict[str, RoleDefinition] = {
    SUPER_ADMIN: RoleDefinition(
        name=SUPER_ADMIN,
        display_name="Super Administrator",
        description="Full access to all CMS features",
        permissions=RolePermissions(
            collections={WILDCARD: _actions("create", "read", "update", "delete", "publish", "manage")},
            singletons={WILDCARD: _actions("read", "update", "publish", "manage")},
            media=_actions("create", "read", "update", "delete", "manage"),
            users=_actions("create", "read", "update", "delete", "manage"),
            roles=_actions("create", "read", "update", "delete", "manage"),
            settings=_actions("read", "update", "manage"),
        ),
    ),
    ADMIN: RoleDefinition(
        name=ADMIN,
        display_name="Administrator",
        description="Manage content and users",
        permissions=RolePermissions(
            collections={WILDCARD: _actions("create", "read", "update", "delete", "publish")},
            singletons={WILDCARD: _actions("read", "update", "publish")},
            media=_actions("create", "read", "update", "delete"),
            users=_actions("create", "read", "update"),
            roles=_actions("read"),
            settings=_actions("read"),
        ),
    ),
    EDITOR: RoleDefinition(
        name=EDITOR,
        display_name="Editor",
        description="Create and edit content",
        permissions=RolePermissions(
            collections={WILDCARD: _actions("create", "read", "update", "publish")},
            singletons={WILDCARD: _actions("read", "update")},
            media=_actions("create", "read", "update"),
            settings=_actions("read"),
        ),
    ),
    AUTHOR: RoleDefinition(
        name=AUTHOR,
        display_name="Author",
        description="Create and edit own content",
        permissions=RolePermissions(
            collections={WILDCARD: _actions("create", "read", "update")},
            singletons={WILDCARD: _actions("read")},
            media=_actions("create", "read"),
        ),
    ),
    VIEWER: RoleDefinition(
        name=VIEWER,
        display_name="Viewer",
        description="Read-only access to content",
        permissions=RolePermissions(
            collections={WILDCARD: _actions("read")},
            singletons={WILDCARD: _actions("read")},
            media=_actions("read"),
        ),
    ),
}


def role_permissions(role: Role) -> RolePermissions:
    """Parse a role's stored permissions; malformed entries grant nothing."""
    raw: Any = role.permissions or {}
    if not isinstance(raw, dict):
        return RolePermissions()
    try:
        return RolePermissions.model_validate(raw)
    except ValueError:
        _log.warning("role_permissions_invalid", role=role.name)
        return RolePermissions()


def has_permission(
    role: Role | None,
    category: ResourceCategory | str,
    action: PermissionAction | str,
    resource: str | None = None,
) -> bool:
    if role is None:
        return False
    if role.name == SUPER_ADMIN:
        return True

    category = ResourceCategory(category)
    action = PermissionAction(action)
    permissions = role_permissions(role)

    if category in SCOPED_CATEGORIES:
        scoped: dict[str, list[PermissionAction]] = getattr(permissions, category.value)
        granted: list[PermissionAction] = []
        if resource is not None:
            granted += scoped.get(resource, [])
        granted += scoped.get(WILDCARD, [])
    else:
        granted = getattr(permissions, category.value)

    return action in granted or PermissionAction.MANAGE in granted


async def resolve_role(db: AsyncSession, user: User) -> Role | None:
    """
    Find the role governing ``user``.

    ``role_id`` wins. Otherwise the legacy ``role`` string is looked up among
    the built-in roles; an unrecognised legacy value means no role at all.
    """
    if user.role_id:
        role = await db.get(Role, user.role_id)
        if role is not None:
            return role
    if user.role and user.role in DEFAULT_ROLES:
        result = await db.execute(select(Role).where(Role.name == user.role))
        return result.scalar_one_or_none()
    return None


async def require_permission(
    db: AsyncSession,
    user: User,
    category: ResourceCategory | str,
    action: PermissionAction | str,
    resource: str | None = None,
) -> Role:
    """
    Raises:
        ForbiddenError: generic message; the missing permission is only logged.
    """
    role = await resolve_role(db, user)
    if not has_permission(role, category, action, resource):
        _log.info(
            "permission_denied",
            user_id=user.id,
            role=role.name if role else None,
            category=str(category),
            action=str(action),
            resource=resource,
        )
        raise ForbiddenError()
    assert role is not None
    return role


def ensure_can_modify(role: Role, user: User, created_by: str | None) -> None:
    """Authors may only update or delete content they created."""
    if role.name == AUTHOR and created_by != user.id:
        raise ForbiddenError()


async def seed_roles(db: AsyncSession) -> list[str]:
    """Insert any missing built-in role. Existing rows are left untouched."""
    result = await db.execute(select(Role.name).where(Role.name.in_(list(DEFAULT_ROLES))))
    existing = set(result.scalars().all())
    created: list[str] = []
    for name, definition in DEFAULT_ROLES.items():
        if name in existing:
            continue
        db.add(
            Role(
                name=name,
                display_name=definition.display_name,
                description=definition.description,
                permissions=definition.permissions.model_dump(mode="json"),
                is_system=True,
            )
        )
        created.append(name)
    if created:
        await db.flush()
        _log.info("roles_seeded", roles=created)
    return created


async def backfill_role_ids(db: AsyncSession) -> int:
    """Point users that only carry a legacy role string at the matching role row."""
    result = await db.execute(select(Role.id, Role.name).where(Role.name.in_(list(DEFAULT_ROLES))))
    updated = 0
    for role_id, name in result.all():
        outcome = await db.execute(
            update(User)
            .where(User.role_id.is_(None), User.role == name)
            .values(role_id=role_id)
        )
        updated += outcome.rowcount or 0
    if updated:
        _log.info("legacy_roles_backfilled", users=updated)
    return updated
