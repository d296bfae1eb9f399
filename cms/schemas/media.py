"""Media schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class MediaOut(BaseModel):
    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    width: int | None
    height: int | None
    alt: str | None
    extra: dict[str, Any] | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime
    created_by: str | None

    model_config = {"from_attributes": True}


class MediaPage(BaseModel):
    items: list[MediaOut]
    total: int
    page: int
    per_page: int
    total_pages: int


class MediaListParams(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)
    type: str | None = Field(default=None, description="MIME prefix filter, e.g. 'image'")
    search: str | None = None
    order_by: Literal["createdAt", "filename", "size"] = "createdAt"
    order: Literal["asc", "desc"] = "desc"
