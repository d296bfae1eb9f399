"""Media library endpoints."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse

from cms.api.deps import Context, CurrentUser, DbSession, rate_limit, require
from cms.core.rate_limit import Bucket
from cms.db.models.user import Role
from cms.schemas.content import MutationResponse
from cms.schemas.media import MediaListParams, MediaOut, MediaPage
from cms.services.auth.permissions import PermissionAction, ResourceCategory
from cms.services.media.store import MediaStore

router = APIRouter(prefix="/media", tags=["media"])

_M = ResourceCategory.MEDIA


@router.get("", response_model=MediaPage, summary="List media")
async def list_media(
    ctx: Context,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_M, PermissionAction.READ))],
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100, alias="perPage"),
    type: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=200),
    order_by: Literal["createdAt", "filename", "size"] = Query(default="createdAt", alias="orderBy"),
    order: Literal["asc", "desc"] = Query(default="desc", alias="orderDir"),
) -> MediaPage:
    params = MediaListParams(
        page=page, per_page=per_page, type=type, search=search, order_by=order_by, order=order
    )
    return await MediaStore(db, ctx.settings).list_media(params)


@router.post(
    "/upload",
    response_model=MediaOut,
    status_code=201,
    dependencies=[Depends(rate_limit(Bucket.UPLOAD))],
    summary="Upload a file",
)
async def upload_media(
    user: CurrentUser,
    ctx: Context,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_M, PermissionAction.CREATE))],
    file: UploadFile = File(...),
    alt: str | None = Form(default=None),
) -> MediaOut:
    # One byte over the limit is enough to reject.
    content = await file.read(ctx.settings.max_upload_size + 1)
    store = MediaStore(db, ctx.settings)
    item = await store.upload(
        content,
        original_name=file.filename or "file",
        mime_type=file.content_type,
        alt=alt,
        created_by=user.id,
    )
    try:
        await db.commit()
    except Exception:
        await store.remove_file(item.path)
        raise
    return MediaOut.model_validate(item)


@router.delete("/{media_id}", response_model=MutationResponse, summary="Delete media")
async def delete_media(
    media_id: str,
    ctx: Context,
    db: DbSession,
    _role: Annotated[Role, Depends(require(_M, PermissionAction.DELETE))],
) -> MutationResponse:
    store = MediaStore(db, ctx.settings)
    filename = await store.delete(media_id)
    await db.commit()
    await store.remove_file(filename)
    return MutationResponse(id=media_id)


@router.get("/file/{filename}", summary="Serve an uploaded file")
async def serve_file(filename: str, ctx: Context, db: DbSession) -> FileResponse:
    path = MediaStore(db, ctx.settings).resolve_file(filename)
    return FileResponse(path, headers={"Cache-Control": "public, max-age=31536000, immutable"})
