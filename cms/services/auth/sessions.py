"""Login, session verification and the bootstrap admin account."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.config.settings import Settings
from cms.core.errors import ConfigurationError, ErrorCode
from cms.core.security import (
    create_session_token,
    decode_session_token,
    dummy_password_hash,
    hash_password_async,
    password_policy_violations,
    verify_password_async,
)
from cms.db.models.user import Role, User
from cms.services.auth.permissions import SUPER_ADMIN, resolve_role

_log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str
    role: Role | None


async def login(
    db: AsyncSession, username: str, password: str, settings: Settings
) -> LoginResult | None:
    """
    Check credentials and issue a session token.

    Unknown usernames, inactive accounts and wrong passwords all return None.
    A bcrypt check runs on every path so response times do not reveal which
    usernames exist.
    """
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()

    stored_hash = user.password_hash if user is not None else dummy_password_hash(settings.bcrypt_rounds)
    password_ok = await verify_password_async(password, stored_hash)

    if user is None or not user.active or not password_ok:
        _log.warning("login_failed", username=username)
        return None

    role = await resolve_role(db, user)
    user.last_login = datetime.now(UTC)
    await db.flush()

    token = create_session_token(
        settings,
        user_id=user.id,
        username=user.username,
        role=role.name if role else user.role,
    )
    _log.info("login_success", user_id=user.id, role=role.name if role else None)
    return LoginResult(user=user, token=token, role=role)


async def verify_session(db: AsyncSession, token: str, settings: Settings) -> User | None:
    """Return the active user a token belongs to, or None."""
    payload = decode_session_token(token, settings)
    if payload is None:
        return None
    user = await db.get(User, payload["sub"])
    if user is None or not user.active:
        return None
    return user


async def create_initial_admin(db: AsyncSession, username: str, password: str, rounds: int = 12) -> bool:
    """
    Create a super admin unless the username is already taken.

    Returns True when a user was created.

    Raises:
        ConfigurationError: the configured password fails the password policy.
    """
    result = await db.execute(select(User.id).where(User.username == username))
    if result.scalar_one_or_none() is not None:
        _log.info("initial_admin_exists", username=username)
        return False

    violations = password_policy_violations(password)
    if violations:
        raise ConfigurationError(
            ErrorCode.CONFIG_INVALID,
            "Initial admin password does not meet the policy: " + "; ".join(violations),
        )

    role_result = await db.execute(select(Role).where(Role.name == SUPER_ADMIN))
    role = role_result.scalar_one_or_none()

    db.add(
        User(
            username=username,
            password_hash=await hash_password_async(password, rounds),
            role=SUPER_ADMIN,
            role_id=role.id if role else None,
            active=True,
        )
    )
    await db.flush()
    _log.info("initial_admin_created", username=username)
    return True
