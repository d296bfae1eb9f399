"""
Content repository: collection entries and singletons with translations.

Base field values live on ``ContentItem.data``; per-locale overrides live in
``ContentTranslation`` rows. Reads for a locale shallow-merge that locale's
overrides over the base data. Writes are flushed into the caller's session
and committed by the caller, so an item and its translations land together.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.config.content import CmsConfig
from cms.core.errors import ErrorCode, NotFoundError, ValidationError
from cms.db.base import new_id
from cms.db.models.content import ContentItem, ContentStatus, ContentTranslation, ContentType
from cms.schemas.content import STATUS_ALL, ContentOut, ContentPage, ListParams
from cms.services.fields.definitions import FieldsSchema
from cms.services.fields.pipeline import process_content

_log = structlog.get_logger(__name__)

_SORT_COLUMNS: dict[str, Any] = {
    "createdAt": ContentItem.created_at,
    "created_at": ContentItem.created_at,
    "updatedAt": ContentItem.updated_at,
    "updated_at": ContentItem.updated_at,
    "publishedAt": ContentItem.published_at,
    "published_at": ContentItem.published_at,
    "sortOrder": ContentItem.sort_order,
    "sort_order": ContentItem.sort_order,
    "status": ContentItem.status,
}
_DATA_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ContentRepository:
    """CRUD over content items for the collections and singletons a CmsConfig declares."""

    def __init__(self, db: AsyncSession, config: CmsConfig) -> None:
        self._db = db
        self._config = config

    # ── Collections ──────────────────────────────────────────────────── #

    async def list_collection(self, name: str, params: ListParams | None = None) -> ContentPage:
        """
        Page through a collection.

        ``status`` of None or ``"all"`` disables the status filter. Search
        matches the collection's title field case-insensitively and runs on
        the fetched page after the locale merge; ``total`` counts storage rows.
        """
        collection = self._config.collection(name)
        params = params or ListParams()

        query = select(ContentItem).where(
            ContentItem.collection == name,
            ContentItem.type == ContentType.COLLECTION,
        )
        if params.status and params.status != STATUS_ALL:
            query = query.where(ContentItem.status == _parse_status(params.status))

        count_result = await self._db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar_one()

        result = await self._db.execute(
            query.order_by(*_order_by(params.sort))
            .offset((params.page - 1) * params.per_page)
            .limit(params.per_page)
        )
        rows = list(result.scalars().all())

        overrides: dict[str, dict[str, Any]] = {}
        if params.locale and rows:
            overrides = await self._translations_for_locale([row.id for row in rows], params.locale)

        items = [_to_out(row, data={**row.data, **overrides.get(row.id, {})}) for row in rows]

        if params.search:
            needle = params.search.lower()
            title_field = collection.title_field
            items = [item for item in items if needle in str(item.data.get(title_field) or "").lower()]

        return ContentPage(
            items=items,
            total=total,
            page=params.page,
            per_page=params.per_page,
            total_pages=math.ceil(total / params.per_page) if total else 0,
        )

    async def get_by_id(self, collection: str, item_id: str, locale: str | None = None) -> ContentOut:
        """
        Fetch one entry with every translation as ``{locale: data}``.

        Raises:
            NotFoundError: the id does not exist in this collection.
        """
        self._config.collection(collection)
        item = await self._get_item(ContentType.COLLECTION, collection, item_id)
        translations = await self._all_translations(item.id)
        data = {**item.data, **translations.get(locale, {})} if locale else item.data
        return _to_out(item, data=data, translations=translations)

    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        translations: dict[str, dict[str, Any]] | None = None,
        status: ContentStatus = ContentStatus.DRAFT,
        sort_order: int | None = None,
        created_by: str | None = None,
    ) -> str:
        """
        Insert an entry and its translations.

        Collections that are not publishable store every entry as published.
        In sortable collections an entry without ``sort_order`` goes last.
        """
        config = self._config.collection(collection)
        fields = config.fields
        if not config.publishable:
            status = ContentStatus.PUBLISHED
        if sort_order is None:
            sort_order = await self._next_sort_order(collection) if config.sortable else 0
        processed = process_content(data, fields)
        processed_translations = self._process_translations(translations, fields)

        now = _utcnow()
        item = ContentItem(
            id=new_id(),
            type=ContentType.COLLECTION,
            collection=collection,
            data=processed,
            status=status,
            sort_order=sort_order,
            published_at=now if status == ContentStatus.PUBLISHED else None,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._db.add(item)
        await self._db.flush()

        for locale, payload in processed_translations.items():
            self._db.add(ContentTranslation(content_id=item.id, locale=locale, data=payload))
        await self._db.flush()

        _log.info("content_created", collection=collection, content_id=item.id, status=status.value)
        return item.id

    async def update(
        self,
        collection: str,
        item_id: str,
        data: dict[str, Any] | None = None,
        translations: dict[str, dict[str, Any]] | None = None,
        status: ContentStatus | None = None,
        sort_order: int | None = None,
    ) -> bool:
        """
        Apply a partial update. Only the arguments given change.

        The first transition to published stamps ``published_at``; later
        ones keep the original timestamp.
        Status changes are ignored in collections that are not publishable.
        """
        config = self._config.collection(collection)
        fields = config.fields
        if not config.publishable:
            status = None
        item = await self._get_item(ContentType.COLLECTION, collection, item_id)
        processed_translations = self._process_translations(translations, fields)

        now = _utcnow()
        if data is not None:
            item.data = process_content(data, fields)
        if status is not None:
            self._apply_status(item, status, now)
        if sort_order is not None:
            item.sort_order = sort_order
        await self._upsert_translations(item.id, processed_translations, now)
        item.updated_at = now
        await self._db.flush()

        _log.info("content_updated", collection=collection, content_id=item.id)
        return True

    async def delete(self, collection: str, item_id: str) -> bool:
        """Delete an entry; the database removes its translations."""
        item = await self._get_item(ContentType.COLLECTION, collection, item_id)
        await self._db.delete(item)
        await self._db.flush()
        _log.info("content_deleted", collection=collection, content_id=item_id)
        return True

    # ── Singletons ───────────────────────────────────────────────────── #

    async def get_singleton(self, name: str, locale: str | None = None) -> ContentOut | None:
        self._config.singleton(name)
        item = await self._find_singleton(name)
        if item is None:
            return None
        translations = await self._all_translations(item.id)
        data = {**item.data, **translations.get(locale, {})} if locale else item.data
        return _to_out(item, data=data, translations=translations)

    async def upsert_singleton(
        self,
        name: str,
        data: dict[str, Any],
        translations: dict[str, dict[str, Any]] | None = None,
        updated_by: str | None = None,
    ) -> str:
        """Create the singleton on first call, update it afterwards. Always published."""
        fields = self._config.singleton(name).fields
        processed = process_content(data, fields)
        processed_translations = self._process_translations(translations, fields)

        now = _utcnow()
        item = await self._find_singleton(name)
        if item is None:
            item = ContentItem(
                id=new_id(),
                type=ContentType.SINGLETON,
                collection=name,
                data=processed,
                status=ContentStatus.PUBLISHED,
                published_at=now,
                created_by=updated_by,
                created_at=now,
                updated_at=now,
            )
            self._db.add(item)
            await self._db.flush()
        else:
            item.data = processed
            self._apply_status(item, ContentStatus.PUBLISHED, now)
            item.updated_at = now

        await self._upsert_translations(item.id, processed_translations, now)
        await self._db.flush()
        _log.info("singleton_saved", singleton=name, content_id=item.id)
        return item.id

    # ── Internals ────────────────────────────────────────────────────── #

    def _process_translations(
        self, translations: dict[str, dict[str, Any]] | None, fields: FieldsSchema
    ) -> dict[str, dict[str, Any]]:
        processed: dict[str, dict[str, Any]] = {}
        for locale, payload in (translations or {}).items():
            if locale not in self._config.locales:
                raise ValidationError(
                    f"Unsupported locale: {locale}",
                    detail={"errors": {f"translations.{locale}": ["Locale is not configured"]}},
                    code=ErrorCode.CONTENT_INVALID,
                )
            processed[locale] = process_content(payload, fields, partial=True)
        return processed

    async def _next_sort_order(self, collection: str) -> int:
        result = await self._db.execute(
            select(func.max(ContentItem.sort_order)).where(
                ContentItem.collection == collection,
                ContentItem.type == ContentType.COLLECTION,
            )
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    @staticmethod
    def _apply_status(item: ContentItem, status: ContentStatus, now: datetime) -> None:
        if status == ContentStatus.PUBLISHED and item.published_at is None:
            item.published_at = now
        item.status = status

    async def _upsert_translations(
        self, content_id: str, translations: dict[str, dict[str, Any]], now: datetime
    ) -> None:
        for locale, payload in translations.items():
            result = await self._db.execute(
                select(ContentTranslation).where(
                    ContentTranslation.content_id == content_id,
                    ContentTranslation.locale == locale,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                self._db.add(ContentTranslation(content_id=content_id, locale=locale, data=payload))
            else:
                existing.data = payload
                existing.updated_at = now

    async def _get_item(self, kind: ContentType, collection: str, item_id: str) -> ContentItem:
        result = await self._db.execute(
            select(ContentItem).where(
                ContentItem.id == item_id,
                ContentItem.collection == collection,
                ContentItem.type == kind,
            )
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError("Content", item_id, code=ErrorCode.CONTENT_NOT_FOUND)
        return item

    async def _find_singleton(self, name: str) -> ContentItem | None:
        result = await self._db.execute(
            select(ContentItem)
            .where(ContentItem.collection == name, ContentItem.type == ContentType.SINGLETON)
            .order_by(ContentItem.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _all_translations(self, content_id: str) -> dict[str, dict[str, Any]]:
        result = await self._db.execute(
            select(ContentTranslation).where(ContentTranslation.content_id == content_id)
        )
        return {row.locale: row.data for row in result.scalars().all()}

    async def _translations_for_locale(
        self, content_ids: list[str], locale: str
    ) -> dict[str, dict[str, Any]]:
        result = await self._db.execute(
            select(ContentTranslation).where(
                ContentTranslation.content_id.in_(content_ids),
                ContentTranslation.locale == locale,
            )
        )
        return {row.content_id: row.data for row in result.scalars().all()}


def _parse_status(value: str) -> ContentStatus:
    try:
        return ContentStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown status: {value}",
            detail={"errors": {"status": [f"Expected one of: all, {', '.join(ContentStatus)}"]}},
        ) from None


def _order_by(sort: str) -> list[ColumnElement[Any]]:
    """Translate a signed sort key (``-createdAt``) into ORDER BY clauses."""
    descending = sort.startswith("-")
    key = sort.lstrip("-+")
    column = _SORT_COLUMNS.get(key)
    if column is None:
        if not _DATA_KEY.match(key):
            raise ValidationError(
                f"Invalid sort field: {key}",
                detail={"errors": {"sort": ["Must be a column or a data field name"]}},
            )
        column = ContentItem.data[key].as_string()
    primary = column.desc() if descending else column.asc()
    return [primary, ContentItem.id.asc()]


def _to_out(
    item: ContentItem,
    *,
    data: dict[str, Any],
    translations: dict[str, dict[str, Any]] | None = None,
) -> ContentOut:
    out = ContentOut.model_validate(item)
    return out.model_copy(update={"data": data, "translations": translations})
