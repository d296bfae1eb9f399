"""User administration endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from cms.api.deps import Context, CurrentUser, DbSession, require
from cms.db.models.user import Role
from cms.schemas.auth import CreateUserRequest, UpdateUserRequest, UserListResponse, UserOut
from cms.schemas.content import MutationResponse
from cms.services.auth import users as user_service
from cms.services.auth.permissions import PermissionAction, ResourceCategory

router = APIRouter(prefix="/users", tags=["users"])

_U = ResourceCategory.USERS


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    db: DbSession,
    _role: Annotated[Role, Depends(require(_U, PermissionAction.READ))],
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> UserListResponse:
    users, total = await user_service.list_users(db, offset=offset, limit=limit)
    return UserListResponse(items=[UserOut.model_validate(u) for u in users], total=total)


@router.post("", response_model=MutationResponse, status_code=201, summary="Create a user")
async def create_user(
    body: CreateUserRequest,
    ctx: Context,
    db: DbSession,
    role: Annotated[Role, Depends(require(_U, PermissionAction.CREATE))],
) -> MutationResponse:
    user = await user_service.create_user(db, body, role, ctx.settings.bcrypt_rounds)
    await db.commit()
    return MutationResponse(id=user.id)


@router.get("/{user_id}", response_model=UserOut, summary="Get a user")
async def get_user(
    user_id: str,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_U, PermissionAction.READ))],
) -> UserOut:
    return UserOut.model_validate(await user_service.get_user(db, user_id))


@router.patch("/{user_id}", response_model=UserOut, summary="Update a user")
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    current_user: CurrentUser,
    ctx: Context,
    db: DbSession,
    role: Annotated[Role, Depends(require(_U, PermissionAction.UPDATE))],
) -> UserOut:
    user = await user_service.update_user(
        db, user_id, body, current_user, role, ctx.settings.bcrypt_rounds
    )
    await db.commit()
    return UserOut.model_validate(user)


@router.delete("/{user_id}", response_model=MutationResponse, summary="Delete a user")
async def delete_user(
    user_id: str,
    current_user: CurrentUser,
    db: DbSession,
    role: Annotated[Role, Depends(require(_U, PermissionAction.DELETE))],
) -> MutationResponse:
    await user_service.delete_user(db, user_id, current_user, role)
    await db.commit()
    return MutationResponse(id=user_id)
