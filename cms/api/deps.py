"""
FastAPI dependency providers.

All authentication, authorization and throttling logic lives here, not in routes.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cms.core.context import CmsContext
from cms.core.errors import AuthError
from cms.core.rate_limit import Bucket
from cms.db.models.user import Role, User
from cms.services.auth.permissions import (
    PermissionAction,
    ResourceCategory,
    require_permission,
)
from cms.services.auth.sessions import verify_session

_log = structlog.get_logger(__name__)
_bearer = HTTPBearer(auto_error=False)


def get_context(request: Request) -> CmsContext:
    return request.app.state.cms


Context = Annotated[CmsContext, Depends(get_context)]


async def get_db(ctx: Context) -> AsyncGenerator[AsyncSession, None]:
    """One session per request. Routes commit explicitly; anything else rolls back."""
    async with ctx.database.session() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


def client_key(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def rate_limit(bucket: Bucket) -> Callable[[Request, CmsContext], Awaitable[None]]:
    """Return a dependency that counts the request against ``bucket``."""

    async def _check(request: Request, ctx: Context) -> None:
        ctx.rate_limiter.check(bucket, client_key(request))

    return _check


async def get_current_user(
    request: Request,
    ctx: Context,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: DbSession,
) -> User:
    """
    Resolve the session from the cookie, falling back to a Bearer token.

    Raises AuthError when neither yields an active user.
    """
    token = request.cookies.get(ctx.settings.session_cookie_name)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise AuthError()

    user = await verify_session(db, token, ctx.settings)
    if user is None:
        raise AuthError()

    structlog.contextvars.bind_contextvars(user_id=user.id, username=user.username)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require(
    category: ResourceCategory, action: PermissionAction, *, scoped: bool = False
) -> Callable[..., Awaitable[Role]]:
    """
    Return a dependency enforcing ``action`` on ``category``.

    With ``scoped=True`` the ``{name}`` path parameter selects the
    collection or singleton the check applies to.
    """

    async def _check(request: Request, user: CurrentUser, db: DbSession) -> Role:
        resource = request.path_params.get("name") if scoped else None
        return await require_permission(db, user, category, action, resource)

    return _check
