"""
Content and translation models.

A ContentItem holds the untranslated field values of one collection entry
or singleton. Each ContentTranslation overlays locale-specific values and
is removed by the database when its parent is deleted.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cms.db.base import Base, JSONType, Timestamp, TimestampMixin, UUIDPrimaryKeyMixin


class ContentType(StrEnum):
    COLLECTION = "collection"
    SINGLETON = "singleton"


class ContentStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class ContentItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A collection entry or singleton instance."""

    __tablename__ = "cms_content"
    __table_args__ = (
        Index("ix_cms_content_collection_type", "collection", "type"),
    )

    type: Mapped[ContentType] = mapped_column(
        SAEnum(ContentType, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
    )
    collection: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[ContentStatus] = mapped_column(
        SAEnum(ContentStatus, native_enum=False, length=20, values_callable=_enum_values),
        default=ContentStatus.DRAFT,
        nullable=False,
        index=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(Timestamp(), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<ContentItem {self.type}:{self.collection} id={self.id}>"


class ContentTranslation(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Locale-specific field values for a ContentItem."""

    __tablename__ = "cms_content_translations"
    __table_args__ = (
        UniqueConstraint("content_id", "locale", name="uq_cms_translation_content_locale"),
    )

    content_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("cms_content.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    locale: Mapped[str] = mapped_column(String(10), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<ContentTranslation {self.locale} content={self.content_id}>"
