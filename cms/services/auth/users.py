"""User and role administration."""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.core.errors import (
    AuthError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from cms.core.security import (
    hash_password_async,
    password_policy_violations,
    verify_password_async,
)
from cms.db.models.user import Role, User
from cms.schemas.auth import CreateUserRequest, UpdateUserRequest
from cms.schemas.role import CreateRoleRequest, UpdateRoleRequest
from cms.services.auth.permissions import EDITOR, SUPER_ADMIN, resolve_role

_log = structlog.get_logger(__name__)


def check_password_policy(password: str) -> None:
    violations = password_policy_violations(password)
    if violations:
        raise ValidationError(
            "Password does not meet the policy",
            detail={"errors": {"password": violations}},
            code=ErrorCode.AUTH_PASSWORD_POLICY,
        )


# ── Users ─────────────────────────────────────────────────────────────── #


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id, code=ErrorCode.USER_NOT_FOUND)
    return user


async def list_users(db: AsyncSession, *, offset: int = 0, limit: int = 50) -> tuple[list[User], int]:
    total = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    result = await db.execute(
        select(User).order_by(User.created_at.desc(), User.id).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total


async def _assignable_role(db: AsyncSession, role_id: str, actor_role: Role | None) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise ValidationError(
            "Invalid role ID",
            detail={"errors": {"role_id": ["Role does not exist"]}},
        )
    if role.name == SUPER_ADMIN and (actor_role is None or actor_role.name != SUPER_ADMIN):
        raise ForbiddenError("Only super administrators can assign the super_admin role")
    return role


async def _guard_super_admin_target(db: AsyncSession, user: User, actor_role: Role | None) -> None:
    target_role = await resolve_role(db, user)
    if target_role is not None and target_role.name == SUPER_ADMIN and (
        actor_role is None or actor_role.name != SUPER_ADMIN
    ):
        raise ForbiddenError("Only super administrators can manage super_admin accounts")


async def _ensure_email_free(db: AsyncSession, email: str, exclude_id: str | None = None) -> None:
    query = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id:
        query = query.where(User.id != exclude_id)
    if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
        raise ConflictError(ErrorCode.USER_EMAIL_TAKEN, "Email already exists")


async def create_user(
    db: AsyncSession, body: CreateUserRequest, actor_role: Role | None, rounds: int = 12
) -> User:
    """
    Create an account. Without ``role_id`` the user becomes an editor.

    Raises:
        ValidationError: password policy or unknown role.
        ConflictError: username or email already in use.
        ForbiddenError: non super admin assigning super_admin.
    """
    check_password_policy(body.password)

    existing = await db.execute(select(User.id).where(User.username == body.username))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(ErrorCode.USER_USERNAME_TAKEN, "Username already exists")
    await _ensure_email_free(db, body.email)

    if body.role_id:
        role: Role | None = await _assignable_role(db, body.role_id, actor_role)
    else:
        result = await db.execute(select(Role).where(Role.name == EDITOR))
        role = result.scalar_one_or_none()

    user = User(
        username=body.username,
        email=body.email,
        name=body.name,
        avatar=body.avatar,
        locale=body.locale,
        password_hash=await hash_password_async(body.password, rounds),
        role=role.name if role else EDITOR,
        role_id=role.id if role else None,
        active=True,
    )
    db.add(user)
    await db.flush()
    _log.info("user_created", user_id=user.id, role=user.role)
    return user


async def update_user(
    db: AsyncSession,
    user_id: str,
    body: UpdateUserRequest,
    actor: User,
    actor_role: Role | None,
    rounds: int = 12,
) -> User:
    user = await get_user(db, user_id)
    await _guard_super_admin_target(db, user, actor_role)

    if body.email is not None:
        await _ensure_email_free(db, body.email, exclude_id=user.id)
        user.email = body.email
    if body.password is not None:
        check_password_policy(body.password)
        user.password_hash = await hash_password_async(body.password, rounds)
    if body.role_id is not None:
        role = await _assignable_role(db, body.role_id, actor_role)
        user.role_id = role.id
        user.role = role.name
    if body.active is not None:
        if not body.active and user.id == actor.id:
            raise ValidationError(
                "You cannot deactivate your own account",
                detail={"errors": {"active": ["Cannot deactivate yourself"]}},
            )
        user.active = body.active
    for attr in ("name", "avatar", "locale"):
        value = getattr(body, attr)
        if value is not None:
            setattr(user, attr, value)

    await db.flush()
    _log.info("user_updated", user_id=user.id)
    return user


async def delete_user(
    db: AsyncSession, user_id: str, actor: User, actor_role: Role | None
) -> None:
    if user_id == actor.id:
        raise ValidationError(
            "You cannot delete your own account",
            detail={"errors": {"id": ["Cannot delete yourself"]}},
        )
    user = await get_user(db, user_id)
    await _guard_super_admin_target(db, user, actor_role)
    await db.delete(user)
    await db.flush()
    _log.info("user_deleted", user_id=user_id)


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str, rounds: int = 12
) -> None:
    if not await verify_password_async(current_password, user.password_hash):
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Current password is incorrect")
    check_password_policy(new_password)
    user.password_hash = await hash_password_async(new_password, rounds)
    await db.flush()
    _log.info("password_changed", user_id=user.id)


# ── Roles ─────────────────────────────────────────────────────────────── #


async def get_role(db: AsyncSession, role_id: str) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role", role_id, code=ErrorCode.ROLE_NOT_FOUND)
    return role


async def list_roles(db: AsyncSession) -> list[Role]:
    result = await db.execute(select(Role).order_by(Role.is_system.desc(), Role.name))
    return list(result.scalars().all())


async def _ensure_role_name_free(db: AsyncSession, name: str) -> None:
    result = await db.execute(select(Role.id).where(Role.name == name))
    if result.scalar_one_or_none() is not None:
        raise ConflictError(ErrorCode.ROLE_NAME_TAKEN, f"Role '{name}' already exists")


async def create_role(db: AsyncSession, body: CreateRoleRequest) -> Role:
    await _ensure_role_name_free(db, body.name)
    role = Role(
        name=body.name,
        display_name=body.display_name,
        description=body.description,
        permissions=body.permissions.model_dump(mode="json"),
        is_system=False,
    )
    db.add(role)
    await db.flush()
    _log.info("role_created", role=role.name)
    return role


async def update_role(db: AsyncSession, role_id: str, body: UpdateRoleRequest) -> Role:
    """System roles keep their name; everything else may change."""
    role = await get_role(db, role_id)

    if body.name is not None and body.name != role.name:
        if role.is_system:
            raise ForbiddenError("System roles cannot be renamed", code=ErrorCode.ROLE_SYSTEM_PROTECTED)
        await _ensure_role_name_free(db, body.name)
        role.name = body.name
    if body.display_name is not None:
        role.display_name = body.display_name
    if body.description is not None:
        role.description = body.description
    if body.permissions is not None:
        role.permissions = body.permissions.model_dump(mode="json")

    await db.flush()
    _log.info("role_updated", role=role.name)
    return role


async def delete_role(db: AsyncSession, role_id: str) -> None:
    """Delete a custom role. Users holding it lose their ``role_id``."""
    role = await get_role(db, role_id)
    if role.is_system:
        raise ForbiddenError("System roles cannot be deleted", code=ErrorCode.ROLE_SYSTEM_PROTECTED)
    await db.delete(role)
    await db.flush()
    _log.info("role_deleted", role=role.name)
