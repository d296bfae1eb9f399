"""Auth and user schemas: login, sessions, user representations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from cms.services.auth.permissions import RolePermissions


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=256)


class UserOut(BaseModel):
    id: str
    username: str
    email: str | None
    name: str | None
    avatar: str | None
    locale: str
    role: str | None
    role_id: str | None
    active: bool
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CurrentUserOut(UserOut):
    role_name: str | None = None
    role_display_name: str | None = None
    permissions: RolePermissions = Field(default_factory=RolePermissions)


class LoginResponse(BaseModel):
    user: CurrentUserOut
    token: str


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_.\-]+$")
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)
    name: str | None = Field(default=None, max_length=255)
    role_id: str | None = None
    avatar: str | None = Field(default=None, max_length=500)
    locale: str = Field(default="en", max_length=10)


class UpdateUserRequest(BaseModel):
    email: str | None = Field(default=None, min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    password: str | None = Field(default=None, min_length=1, max_length=256)
    role_id: str | None = None
    avatar: str | None = Field(default=None, max_length=500)
    locale: str | None = Field(default=None, max_length=10)
    active: bool | None = None


class UserListResponse(BaseModel):
    items: list[UserOut]
    total: int
