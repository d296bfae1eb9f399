"""Authenticated collection endpoints used by the admin UI."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query

from cms.api.deps import Context, CurrentUser, DbSession, require
from cms.core.errors import ForbiddenError
from cms.db.models.content import ContentStatus
from cms.db.models.user import Role
from cms.schemas.content import (
    STATUS_ALL,
    ContentCreateRequest,
    ContentOut,
    ContentPage,
    ContentTypeSummary,
    ContentUpdateRequest,
    ListParams,
    MutationResponse,
)
from cms.services.auth.permissions import (
    PermissionAction,
    ResourceCategory,
    ensure_can_modify,
    has_permission,
    resolve_role,
)
from cms.services.content.repository import ContentRepository

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/collections", tags=["collections"])

_C = ResourceCategory.COLLECTIONS
CanRead = Annotated[Role, Depends(require(_C, PermissionAction.READ, scoped=True))]
CanCreate = Annotated[Role, Depends(require(_C, PermissionAction.CREATE, scoped=True))]
CanUpdate = Annotated[Role, Depends(require(_C, PermissionAction.UPDATE, scoped=True))]
CanDelete = Annotated[Role, Depends(require(_C, PermissionAction.DELETE, scoped=True))]


def _ensure_can_publish(role: Role, name: str) -> None:
    if not has_permission(role, _C, PermissionAction.PUBLISH, name):
        raise ForbiddenError()


@router.get("", response_model=list[ContentTypeSummary], summary="Collections visible to the user")
async def list_collections(user: CurrentUser, ctx: Context, db: DbSession) -> list[ContentTypeSummary]:
    role = await resolve_role(db, user)
    return [
        ContentTypeSummary(
            name=name,
            label=config.label_plural or config.label,
            description=config.description,
            icon=config.icon,
        )
        for name, config in ctx.cms_config.collections.items()
        if has_permission(role, _C, PermissionAction.READ, name)
    ]


@router.get("/{name}", response_model=ContentPage, summary="List entries")
async def list_items(
    name: str,
    ctx: Context,
    db: DbSession,
    _role: CanRead,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100, alias="perPage"),
    status: str = Query(default=STATUS_ALL),
    locale: str | None = Query(default=None, max_length=10),
    sort: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=200),
) -> ContentPage:
    """Every status by default; pass ``status`` to narrow."""
    collection = ctx.cms_config.collection(name)
    if sort is None:
        sort = collection.default_sort.as_sort if collection.default_sort else "-createdAt"
    params = ListParams(
        page=page, per_page=per_page, status=status, locale=locale, sort=sort, search=search
    )
    return await ContentRepository(db, ctx.cms_config).list_collection(name, params)


@router.post("/{name}", response_model=MutationResponse, status_code=201, summary="Create an entry")
async def create_item(
    name: str,
    body: ContentCreateRequest,
    user: CurrentUser,
    ctx: Context,
    db: DbSession,
    role: CanCreate,
) -> MutationResponse:
    if body.status == ContentStatus.PUBLISHED and ctx.cms_config.collection(name).publishable:
        _ensure_can_publish(role, name)

    item_id = await ContentRepository(db, ctx.cms_config).create(
        name,
        body.data,
        translations=body.translations,
        status=body.status,
        sort_order=body.sort_order,
        created_by=user.id,
    )
    await db.commit()
    return MutationResponse(id=item_id)


@router.get("/{name}/{item_id}", response_model=ContentOut, summary="Get an entry")
async def get_item(
    name: str,
    item_id: str,
    ctx: Context,
    db: DbSession,
    _role: CanRead,
    locale: str | None = Query(default=None, max_length=10),
) -> ContentOut:
    return await ContentRepository(db, ctx.cms_config).get_by_id(name, item_id, locale)


@router.put("/{name}/{item_id}", response_model=MutationResponse, summary="Update an entry")
async def update_item(
    name: str,
    item_id: str,
    body: ContentUpdateRequest,
    user: CurrentUser,
    ctx: Context,
    db: DbSession,
    role: CanUpdate,
) -> MutationResponse:
    repo = ContentRepository(db, ctx.cms_config)
    existing = await repo.get_by_id(name, item_id)
    ensure_can_modify(role, user, existing.created_by)
    if (
        body.status == ContentStatus.PUBLISHED
        and existing.status != ContentStatus.PUBLISHED
        and ctx.cms_config.collection(name).publishable
    ):
        _ensure_can_publish(role, name)

    await repo.update(
        name,
        item_id,
        data=body.data,
        translations=body.translations,
        status=body.status,
        sort_order=body.sort_order,
    )
    await db.commit()
    return MutationResponse(id=item_id)


@router.delete("/{name}/{item_id}", response_model=MutationResponse, summary="Delete an entry")
async def delete_item(
    name: str,
    item_id: str,
    user: CurrentUser,
    ctx: Context,
    db: DbSession,
    role: CanDelete,
) -> MutationResponse:
    repo = ContentRepository(db, ctx.cms_config)
    existing = await repo.get_by_id(name, item_id)
    ensure_can_modify(role, user, existing.created_by)
    await repo.delete(name, item_id)
    await db.commit()
    return MutationResponse(id=item_id)
