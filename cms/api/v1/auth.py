"""Authentication API endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request, Response

from cms.api.deps import Context, CurrentUser, DbSession, client_key, rate_limit
from cms.core.errors import AuthError, ErrorCode
from cms.core.rate_limit import Bucket
from cms.db.models.user import Role, User
from cms.schemas.auth import ChangePasswordRequest, CurrentUserOut, LoginRequest, LoginResponse
from cms.services.auth.permissions import RolePermissions, resolve_role, role_permissions
from cms.services.auth.sessions import login
from cms.services.auth.users import change_password

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def current_user_out(user: User, role: Role | None) -> CurrentUserOut:
    out = CurrentUserOut.model_validate(user)
    return out.model_copy(
        update={
            "role_name": role.name if role else user.role,
            "role_display_name": role.display_name if role else user.role,
            "permissions": role_permissions(role) if role else RolePermissions(),
        }
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit(Bucket.LOGIN))],
    summary="Start a session",
)
async def login_route(
    body: LoginRequest,
    request: Request,
    response: Response,
    ctx: Context,
    db: DbSession,
) -> LoginResponse:
    """
    Authenticate with username and password.

    Sets the httponly session cookie and also returns the token for
    clients that prefer a Bearer header.
    """
    result = await login(db, body.username, body.password, ctx.settings)
    if result is None:
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Invalid username or password")
    await db.commit()

    ctx.rate_limiter.reset(Bucket.LOGIN, client_key(request))
    response.set_cookie(
        key=ctx.settings.session_cookie_name,
        value=result.token,
        httponly=True,
        samesite="strict",
        secure=ctx.settings.is_production,
        max_age=ctx.settings.session_expire_days * 24 * 60 * 60,
        path="/",
    )
    return LoginResponse(user=current_user_out(result.user, result.role), token=result.token)


@router.delete("/sessions", summary="End the current session")
async def logout(response: Response, ctx: Context) -> dict[str, bool]:
    response.delete_cookie(ctx.settings.session_cookie_name, path="/")
    return {"success": True}


@router.get("/me", response_model=CurrentUserOut, summary="Current user profile")
async def get_me(current_user: CurrentUser, db: DbSession) -> CurrentUserOut:
    """Return the authenticated user with the resolved role and its permissions."""
    role = await resolve_role(db, current_user)
    return current_user_out(current_user, role)


@router.post("/change-password", status_code=204, summary="Change own password")
async def change_password_route(
    body: ChangePasswordRequest,
    current_user: CurrentUser,
    ctx: Context,
    db: DbSession,
) -> None:
    await change_password(
        db,
        current_user,
        body.current_password,
        body.new_password,
        ctx.settings.bcrypt_rounds,
    )
    await db.commit()
