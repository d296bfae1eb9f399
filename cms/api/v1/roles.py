"""Role administration endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from cms.api.deps import DbSession, require
from cms.db.models.user import Role
from cms.schemas.content import MutationResponse
from cms.schemas.role import CreateRoleRequest, RoleListResponse, RoleOut, UpdateRoleRequest
from cms.services.auth import users as user_service
from cms.services.auth.permissions import PermissionAction, ResourceCategory

router = APIRouter(prefix="/roles", tags=["roles"])

_R = ResourceCategory.ROLES


@router.get("", response_model=RoleListResponse, summary="List roles")
async def list_roles(
    db: DbSession,
    _role: Annotated[Role, Depends(require(_R, PermissionAction.READ))],
) -> RoleListResponse:
    roles = await user_service.list_roles(db)
    return RoleListResponse(items=[RoleOut.model_validate(r) for r in roles], total=len(roles))


@router.post("", response_model=RoleOut, status_code=201, summary="Create a role")
async def create_role(
    body: CreateRoleRequest,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_R, PermissionAction.CREATE))],
) -> RoleOut:
    role = await user_service.create_role(db, body)
    await db.commit()
    return RoleOut.model_validate(role)


@router.put("/{role_id}", response_model=RoleOut, summary="Update a role")
async def update_role(
    role_id: str,
    body: UpdateRoleRequest,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_R, PermissionAction.UPDATE))],
) -> RoleOut:
    role = await user_service.update_role(db, role_id, body)
    await db.commit()
    return RoleOut.model_validate(role)


@router.delete("/{role_id}", response_model=MutationResponse, summary="Delete a role")
async def delete_role(
    role_id: str,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_R, PermissionAction.DELETE))],
) -> MutationResponse:
    await user_service.delete_role(db, role_id)
    await db.commit()
    return MutationResponse(id=role_id)
