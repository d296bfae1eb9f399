"""Key/value site settings. Branding is stored as JSON under the ``branding`` key."""

from __future__ import annotations

import copy
import json
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.db.models.setting import Setting

_log = structlog.get_logger(__name__)

BRANDING_KEY = "branding"

DEFAULT_BRANDING: dict[str, Any] = {
    "name": "CMS",
    "logo": "",
    "primaryColor": "#2563eb",
    "favicon": "",
    "login": {"title": "", "description": "", "backgroundImage": ""},
    "poweredBy": {"name": "Neskeep", "url": ""},
}


async def get_setting(db: AsyncSession, key: str) -> str | None:
    result = await db.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def set_setting(db: AsyncSession, key: str, value: str) -> None:
    """Insert or overwrite ``key``."""
    result = await db.execute(select(Setting).where(Setting.key == key))
    existing = result.scalar_one_or_none()
    if existing is None:
        db.add(Setting(key=key, value=value))
    else:
        existing.value = value
    await db.flush()
    _log.info("setting_saved", key=key)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


async def get_branding(db: AsyncSession) -> dict[str, Any]:
    """
    Stored branding merged over the defaults.

    Unreadable storage or a corrupt value yields the defaults so the admin
    login page can always render.
    """
    try:
        raw = await get_setting(db, BRANDING_KEY)
    except SQLAlchemyError as exc:
        _log.warning("branding_read_failed", error=str(exc))
        return copy.deepcopy(DEFAULT_BRANDING)
    if raw is None:
        return copy.deepcopy(DEFAULT_BRANDING)
    try:
        stored = json.loads(raw)
    except json.JSONDecodeError:
        _log.warning("branding_value_corrupt")
        return copy.deepcopy(DEFAULT_BRANDING)
    if not isinstance(stored, dict):
        return copy.deepcopy(DEFAULT_BRANDING)
    return _merge(DEFAULT_BRANDING, stored)


async def put_branding(db: AsyncSession, branding: dict[str, Any]) -> dict[str, Any]:
    await set_setting(db, BRANDING_KEY, json.dumps(branding))
    return _merge(DEFAULT_BRANDING, branding)
