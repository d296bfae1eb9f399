"""Authenticated singleton endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from cms.api.deps import Context, CurrentUser, DbSession, require
from cms.db.models.user import Role
from cms.schemas.content import (
    ContentTypeSummary,
    MutationResponse,
    SingletonOut,
    SingletonUpdateRequest,
)
from cms.services.auth.permissions import PermissionAction, ResourceCategory, has_permission, resolve_role
from cms.services.content.repository import ContentRepository

router = APIRouter(prefix="/singletons", tags=["singletons"])

_S = ResourceCategory.SINGLETONS


@router.get("", response_model=list[ContentTypeSummary], summary="Singletons visible to the user")
async def list_singletons(user: CurrentUser, ctx: Context, db: DbSession) -> list[ContentTypeSummary]:
    role = await resolve_role(db, user)
    return [
        ContentTypeSummary(name=name, label=config.label, description=config.description, icon=config.icon)
        for name, config in ctx.cms_config.singletons.items()
        if has_permission(role, _S, PermissionAction.READ, name)
    ]


@router.get("/{name}", response_model=SingletonOut, summary="Get a singleton")
async def get_singleton(
    name: str,
    ctx: Context,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_S, PermissionAction.READ, scoped=True))],
    locale: str | None = Query(default=None, max_length=10),
) -> SingletonOut:
    """An unsaved singleton comes back with ``id`` null and empty data."""
    item = await ContentRepository(db, ctx.cms_config).get_singleton(name, locale)
    if item is None:
        return SingletonOut(collection=name)
    return SingletonOut(
        id=item.id,
        collection=name,
        data=item.data,
        translations=item.translations or {},
        updated_at=item.updated_at,
    )


@router.put("/{name}", response_model=MutationResponse, summary="Save a singleton")
async def put_singleton(
    name: str,
    body: SingletonUpdateRequest,
    user: CurrentUser,
    ctx: Context,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_S, PermissionAction.UPDATE, scoped=True))],
) -> MutationResponse:
    item_id = await ContentRepository(db, ctx.cms_config).upsert_singleton(
        name, body.data, translations=body.translations, updated_by=user.id
    )
    await db.commit()
    return MutationResponse(id=item_id)
