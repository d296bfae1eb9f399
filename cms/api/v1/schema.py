"""Content model introspection for the admin UI."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from cms.api.deps import Context, CurrentUser

router = APIRouter(tags=["schema"])


@router.get("/schema", summary="Locales, collections and singletons")
async def get_schema(_user: CurrentUser, ctx: Context) -> dict[str, Any]:
    return ctx.cms_config.model_dump(mode="json", by_alias=True, exclude_none=True)
