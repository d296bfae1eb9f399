"""Unauthenticated read endpoints for site front ends."""

from __future__ import annotations

from fastapi import APIRouter, Query

from cms.api.deps import Context, DbSession
from cms.core.errors import ErrorCode, NotFoundError
from cms.db.models.content import ContentStatus
from cms.schemas.content import ContentPage, ListParams, SingletonOut
from cms.services.content.repository import ContentRepository

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/collections/{name}", response_model=ContentPage, summary="Published entries")
async def public_collection(
    name: str,
    ctx: Context,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100, alias="perPage"),
    status: str = Query(default=ContentStatus.PUBLISHED.value),
    locale: str | None = Query(default=None, max_length=10),
    sort: str = Query(default="-createdAt", max_length=100),
    search: str | None = Query(default=None, max_length=200),
) -> ContentPage:
    """Only published entries unless ``status=all`` is passed explicitly."""
    params = ListParams(
        page=page, per_page=per_page, status=status, locale=locale, sort=sort, search=search
    )
    return await ContentRepository(db, ctx.cms_config).list_collection(name, params)


@router.get("/singletons/{name}", response_model=SingletonOut, summary="Published singleton")
async def public_singleton(
    name: str,
    ctx: Context,
    db: DbSession,
    locale: str | None = Query(default=None, max_length=10),
) -> SingletonOut:
    item = await ContentRepository(db, ctx.cms_config).get_singleton(name, locale)
    if item is None:
        return SingletonOut(collection=name)
    if item.status != ContentStatus.PUBLISHED:
        raise NotFoundError("Singleton", name, code=ErrorCode.CONTENT_NOT_FOUND)
    return SingletonOut(id=item.id, collection=name, data=item.data, updated_at=item.updated_at)
