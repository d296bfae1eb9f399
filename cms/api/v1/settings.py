"""Site settings endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from cms.api.deps import DbSession, require
from cms.db.models.user import Role
from cms.services.auth.permissions import PermissionAction, ResourceCategory
from cms.services.settings.store import get_branding, put_branding

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/branding", summary="Branding for the admin shell")
async def read_branding(db: DbSession) -> dict[str, Any]:
    """Public: the login page needs it before anyone is signed in."""
    return await get_branding(db)


@router.put("/branding", summary="Save branding")
async def save_branding(
    db: DbSession,
    _role: Annotated[Role, Depends(require(ResourceCategory.SETTINGS, PermissionAction.UPDATE))],
    body: Annotated[dict[str, Any], Body(...)],
) -> dict[str, Any]:
    branding = await put_branding(db, body)
    await db.commit()
    return {"success": True, "branding": branding}
