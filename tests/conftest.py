"""
Shared pytest fixtures for the CMS tests.

Provides:
  - isolated Settings and CmsContext over in-memory SQLite (per test)
  - async HTTP client bound to the app
  - helpers to create users of any built-in role and sign them in
"""
from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.config.content import CmsConfig, parse_cms_config
from cms.config.settings import Settings
from cms.core.context import CmsContext
from cms.core.security import hash_password
from cms.db.models.user import Role, User
from cms.main import create_app

ADMIN_USERNAME = "superadmin"
ADMIN_PASSWORD = "SuperAdmin2024"
USER_PASSWORD = "Passw0rdTest"

CMS_CONFIG: dict[str, Any] = {
    "locales": ["en", "es"],
    "defaultLocale": "en",
    "collections": {
        "posts": {
            "label": "Post",
            "labelPlural": "Posts",
            "fields": {
                "title": {"type": "text", "required": True, "maxLength": 120},
                "slug": {"type": "slug", "from": "title"},
                "body": {"type": "richtext"},
                "rating": {"type": "number", "min": 0, "max": 5},
                "category": {
                    "type": "select",
                    "options": [
                        {"label": "News", "value": "news"},
                        {"label": "Guides", "value": "guides"},
                    ],
                },
            },
        },
        "pages": {
            "label": "Page",
            "fields": {"title": {"type": "text", "required": True}},
        },
    },
    "singletons": {
        "homepage": {
            "label": "Homepage",
            "fields": {
                "headline": {"type": "text", "required": True},
                "tagline": {"type": "textarea"},
            },
        },
    },
}


# ─── Settings / context ───────────────────────────────────────────────────────

def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "testing",
        "database_path": ":memory:",
        "upload_dir": tmp_path / "uploads",
        "cms_config_path": tmp_path / "cms.config.yaml",
        "jwt_secret_key": "test-secret-key-not-for-production-at-all",
        "bcrypt_rounds": 4,
        "log_json": False,
        "rate_limit_api": "10000/minute",
        "rate_limit_upload": "1000/hour",
        "admin_username": ADMIN_USERNAME,
        "admin_password": ADMIN_PASSWORD,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def cms_config() -> CmsConfig:
    return parse_cms_config(CMS_CONFIG)


@pytest_asyncio.fixture
async def context(settings: Settings, cms_config: CmsConfig) -> AsyncGenerator[CmsContext, None]:
    """A started context: schema provisioned, roles seeded, super admin created."""
    ctx = CmsContext.from_settings(settings, cms_config)
    await ctx.startup()
    yield ctx
    await ctx.shutdown()


@pytest_asyncio.fixture
async def db(context: CmsContext) -> AsyncGenerator[AsyncSession, None]:
    async with context.database.session() as session:
        yield session
        await session.rollback()


# ─── App & HTTP client ────────────────────────────────────────────────────────

@pytest.fixture
def app(context: CmsContext):
    return create_app(context=context)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ─── Users ────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_user(context: CmsContext) -> Callable[..., Awaitable[User]]:
    """Factory: insert an active user holding one of the built-in roles."""

    async def _make(username: str, role_name: str, password: str = USER_PASSWORD) -> User:
        async with context.database.session() as session:
            role = (await session.execute(select(Role).where(Role.name == role_name))).scalar_one()
            user = User(
                username=username,
                email=f"{username}@example.com",
                password_hash=hash_password(password, rounds=4),
                role=role_name,
                role_id=role.id,
                active=True,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def login(client: AsyncClient) -> Callable[[str, str], Awaitable[dict[str, str]]]:
    """
    Factory: sign in and return Bearer headers.

    The session cookie is dropped so one client can act as several users.
    """

    async def _login(username: str, password: str = USER_PASSWORD) -> dict[str, str]:
        resp = await client.post(
            "/api/cms/auth/login", json={"username": username, "password": password}
        )
        assert resp.status_code == 200, resp.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login


@pytest_asyncio.fixture
async def admin_headers(login) -> dict[str, str]:
    return await login(ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def headers_for(make_user, login) -> Callable[[str], Awaitable[dict[str, str]]]:
    """Factory: create ``<role>_user`` and return its Bearer headers."""

    async def _headers(role_name: str) -> dict[str, str]:
        await make_user(f"{role_name}_user", role_name)
        return await login(f"{role_name}_user")

    return _headers
