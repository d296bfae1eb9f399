"""Content schemas: request bodies and list/item responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cms.db.models.content import ContentStatus, ContentType

# Accepts "all" in addition to the stored statuses.
STATUS_ALL = "all"


class ContentOut(BaseModel):
    id: str
    type: ContentType
    collection: str
    data: dict[str, Any]
    status: ContentStatus
    sort_order: int
    created_at: datetime
    updated_at: datetime
    published_at: datetime | None
    created_by: str | None
    translations: dict[str, dict[str, Any]] | None = None

    model_config = {"from_attributes": True}


class ContentPage(BaseModel):
    items: list[ContentOut]
    total: int
    page: int
    per_page: int
    total_pages: int


class ContentCreateRequest(BaseModel):
    data: dict[str, Any]
    translations: dict[str, dict[str, Any]] | None = None
    status: ContentStatus = ContentStatus.DRAFT
    sort_order: int | None = None


class ContentUpdateRequest(BaseModel):
    data: dict[str, Any] | None = None
    translations: dict[str, dict[str, Any]] | None = None
    status: ContentStatus | None = None
    sort_order: int | None = None


class SingletonUpdateRequest(BaseModel):
    data: dict[str, Any]
    translations: dict[str, dict[str, Any]] | None = None


class MutationResponse(BaseModel):
    success: bool = True
    id: str


class ContentTypeSummary(BaseModel):
    name: str
    label: str
    description: str | None = None
    icon: str | None = None


class ListParams(BaseModel):
    """Query options for collection listings."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)
    status: str | None = None
    locale: str | None = None
    sort: str = "-createdAt"
    search: str | None = None


class SingletonOut(BaseModel):
    """A singleton's current value. ``id`` is None until it is first saved."""

    id: str | None = None
    collection: str
    data: dict[str, Any] = Field(default_factory=dict)
    translations: dict[str, dict[str, Any]] = Field(default_factory=dict)
    updated_at: datetime | None = None
