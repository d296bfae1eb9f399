"""
Media library: uploads on local disk, metadata in ``cms_media``.

Stored filenames are ``{uuid hex}{extension}``; the client's filename is
kept only as ``original_name``. Files are served back by name from
``upload_dir`` and never from anywhere else.
"""

from __future__ import annotations

import io
import math
import re
import uuid
from pathlib import Path

import structlog
from PIL import Image, UnidentifiedImageError
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from cms.config.settings import Settings
from cms.core.errors import AppError, ErrorCode, NotFoundError, ValidationError
from cms.db.models.media import MediaItem
from cms.schemas.media import MediaListParams, MediaOut, MediaPage

_log = structlog.get_logger(__name__)

_EXTENSION = re.compile(r"^\.[a-z0-9]{1,10}$")
_SAFE_FILENAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*(\.[A-Za-z0-9]{1,10})?$")

_ORDER_COLUMNS = {
    "createdAt": MediaItem.created_at,
    "filename": MediaItem.filename,
    "size": MediaItem.size,
}


def mime_allowed(mime_type: str, allowed: list[str]) -> bool:
    """Match against exact types and ``family/*`` wildcards."""
    mime_type = mime_type.lower()
    for pattern in allowed:
        pattern = pattern.lower()
        if pattern.endswith("/*"):
            if mime_type.startswith(pattern[:-1]):
                return True
        elif mime_type == pattern:
            return True
    return False


def image_dimensions(content: bytes) -> tuple[int, int] | None:
    try:
        with Image.open(io.BytesIO(content)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        _log.debug("image_dimensions_unavailable", error=str(exc))
        return None


class MediaStore:
    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self._db = db
        self._settings = settings
        self._root = Path(settings.upload_dir)

    async def upload(
        self,
        content: bytes,
        *,
        original_name: str,
        mime_type: str | None,
        alt: str | None = None,
        created_by: str | None = None,
    ) -> MediaItem:
        """
        Validate and persist an upload.

        The file is written before the row is flushed. If the caller's commit
        fails it must pass ``item.path`` to ``remove_file``.

        Raises:
            ValidationError: MIME type not on the allow-list.
            AppError: MEDIA_TOO_LARGE (413) when over ``max_upload_size``.
        """
        mime_type = (mime_type or "application/octet-stream").split(";")[0].strip().lower()
        if not mime_allowed(mime_type, self._settings.allowed_mime_types):
            raise ValidationError(
                f"File type {mime_type} is not allowed",
                detail={"mime_type": mime_type},
                code=ErrorCode.MEDIA_MIME_REJECTED,
            )

        size = len(content)
        if size > self._settings.max_upload_size:
            raise AppError(
                code=ErrorCode.MEDIA_TOO_LARGE,
                message=f"File size exceeds maximum of {self._settings.max_upload_size} bytes",
                http_status=413,
                detail={"size": size, "max_size": self._settings.max_upload_size},
            )

        suffix = Path(original_name).suffix.lower()
        if not _EXTENSION.match(suffix):
            suffix = ""
        filename = f"{uuid.uuid4().hex}{suffix}"
        target = self._root / filename

        self._root.mkdir(parents=True, exist_ok=True)
        await run_in_threadpool(target.write_bytes, content)

        dimensions = None
        if mime_type.startswith("image/") and "svg" not in mime_type:
            dimensions = await run_in_threadpool(image_dimensions, content)

        item = MediaItem(
            filename=filename,
            original_name=original_name[:500] or "file",
            mime_type=mime_type,
            size=size,
            path=filename,
            url=f"{self._settings.media_url_prefix.rstrip('/')}/{filename}",
            width=dimensions[0] if dimensions else None,
            height=dimensions[1] if dimensions else None,
            alt=alt or None,
            created_by=created_by,
        )
        self._db.add(item)
        try:
            await self._db.flush()
        except Exception:
            target.unlink(missing_ok=True)
            raise

        _log.info("media_uploaded", media_id=item.id, mime_type=mime_type, size=size)
        return item

    async def list_media(self, params: MediaListParams) -> MediaPage:
        query = select(MediaItem)
        if params.type:
            query = query.where(MediaItem.mime_type.startswith(params.type.lower(), autoescape=True))
        if params.search:
            query = query.where(
                or_(
                    MediaItem.filename.icontains(params.search, autoescape=True),
                    MediaItem.alt.icontains(params.search, autoescape=True),
                )
            )

        total = (await self._db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

        column = _ORDER_COLUMNS[params.order_by]
        result = await self._db.execute(
            query.order_by(column.asc() if params.order == "asc" else column.desc(), MediaItem.id)
            .offset((params.page - 1) * params.per_page)
            .limit(params.per_page)
        )
        return MediaPage(
            items=[MediaOut.model_validate(m) for m in result.scalars().all()],
            total=total,
            page=params.page,
            per_page=params.per_page,
            total_pages=math.ceil(total / params.per_page) if total else 0,
        )

    async def get(self, media_id: str) -> MediaItem:
        item = await self._db.get(MediaItem, media_id)
        if item is None:
            raise NotFoundError("Media", media_id, code=ErrorCode.MEDIA_NOT_FOUND)
        return item

    async def delete(self, media_id: str) -> str:
        """
        Remove the row and return the stored filename.

        The file stays on disk; callers pass the name to ``remove_file`` once
        the transaction has committed.
        """
        item = await self.get(media_id)
        filename = item.path
        await self._db.delete(item)
        await self._db.flush()
        _log.info("media_deleted", media_id=media_id)
        return filename

    async def remove_file(self, filename: str) -> None:
        """Unlink a stored file. Failures are logged and the file is left behind."""
        path = self._root / filename
        try:
            await run_in_threadpool(path.unlink, missing_ok=True)
        except OSError as exc:
            _log.warning("media_file_delete_failed", path=str(path), error=str(exc))

    def resolve_file(self, filename: str) -> Path:
        """
        Map a requested filename to a file inside ``upload_dir``.

        Raises:
            ValidationError: names with separators, dot segments or odd characters.
            NotFoundError: no such file.
        """
        if not _SAFE_FILENAME.match(filename):
            raise ValidationError("Invalid filename", code=ErrorCode.MEDIA_INVALID_FILENAME)
        root = self._root.resolve()
        path = (root / filename).resolve()
        if path.parent != root or not path.is_file():
            raise NotFoundError("Media file", filename, code=ErrorCode.MEDIA_NOT_FOUND)
        return path
