"""
Process-wide application state.

A ``CmsContext`` is built once per app and stored on ``app.state.cms``.
Dependencies read it from the request, so tests can run several isolated
apps side by side.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from cms.config.content import CmsConfig, load_cms_config
from cms.config.settings import Settings
from cms.core.rate_limit import Bucket, RateLimiter
from cms.core.security import validate_jwt_secret
from cms.db.session import Database, create_database
from cms.services.auth.permissions import backfill_role_ids, seed_roles
from cms.services.auth.sessions import create_initial_admin

_log = structlog.get_logger(__name__)


@dataclass
class CmsContext:
    settings: Settings
    database: Database
    rate_limiter: RateLimiter
    cms_config: CmsConfig

    @classmethod
    def from_settings(cls, settings: Settings, cms_config: CmsConfig | None = None) -> CmsContext:
        return cls(
            settings=settings,
            database=create_database(settings),
            rate_limiter=RateLimiter(
                {
                    Bucket.LOGIN: settings.rate_limit_login,
                    Bucket.API: settings.rate_limit_api,
                    Bucket.UPLOAD: settings.rate_limit_upload,
                }
            ),
            cms_config=cms_config if cms_config is not None else load_cms_config(settings.cms_config_path),
        )

    async def startup(self) -> None:
        """Check secrets, provision the schema, seed roles and the initial admin."""
        validate_jwt_secret(self.settings)
        await self.database.initialize()

        async with self.database.session() as db:
            await seed_roles(db)
            if self.settings.admin_username and self.settings.admin_password:
                await create_initial_admin(
                    db,
                    self.settings.admin_username,
                    self.settings.admin_password.get_secret_value(),
                    self.settings.bcrypt_rounds,
                )
            if self.settings.backfill_legacy_roles:
                await backfill_role_ids(db)
            await db.commit()

        _log.info(
            "cms_ready",
            driver=self.database.driver.value,
            collections=len(self.cms_config.collections),
            singletons=len(self.cms_config.singletons),
        )

    async def shutdown(self) -> None:
        await self.database.dispose()
