"""Role schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from cms.services.auth.permissions import RolePermissions


class RoleOut(BaseModel):
    id: str
    name: str
    display_name: str
    description: str | None
    permissions: RolePermissions
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CreateRoleRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    permissions: RolePermissions = Field(default_factory=RolePermissions)


class UpdateRoleRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    permissions: RolePermissions | None = None


class RoleListResponse(BaseModel):
    items: list[RoleOut]
    total: int
