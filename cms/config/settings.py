"""
Application configuration via Pydantic Settings.

All values are sourced from ``CMS_``-prefixed environment variables or an
.env file. Insecure defaults are rejected at startup in production.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import (
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-this-secret-in-production"


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseDriver(StrEnum):
    """Supported persistence backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


def _parse_csv(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list."""
    if isinstance(value, list):
        return value
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Centralised, type-validated application configuration.

    Secrets are Pydantic SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_prefix="CMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="Headless CMS", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(default=False, description="Enable debug mode. Must be False in production.")

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="127.0.0.1", description="Bind host. Default local-only.")
    port: int = Field(default=8000, ge=1024, le=65535, description="Bind port")

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: Annotated[list[str], BeforeValidator(_parse_csv)] = Field(
        default=["http://localhost:3000"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_driver: DatabaseDriver = Field(
        default=DatabaseDriver.SQLITE,
        description="sqlite (embedded file) or postgresql (networked)",
    )
    database_path: str = Field(
        default=".cms/data.db",
        description="SQLite database file, or ':memory:' for a throwaway store",
    )
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL connection string. Required when database_driver=postgresql.",
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")

    # ── Auth / Sessions ────────────────────────────────────────────────── #
    jwt_secret_key: SecretStr = Field(
        default=SecretStr(DEFAULT_JWT_SECRET),
        description="HS256 signing secret. Minimum 32 characters.",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    session_expire_days: int = Field(default=7, ge=1, le=30, description="Session token TTL in days")
    session_cookie_name: str = Field(default="cms_session", description="Session cookie name")
    bcrypt_rounds: int = Field(default=12, ge=4, le=16, description="bcrypt cost factor")

    # ── Uploads ────────────────────────────────────────────────────────── #
    upload_dir: Path = Field(default=Path(".cms/uploads"), description="Directory for uploaded media")
    max_upload_size: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Maximum upload size in bytes",
    )
    allowed_mime_types: Annotated[list[str], BeforeValidator(_parse_csv)] = Field(
        default=[
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "image/svg+xml",
            "application/pdf",
            "video/mp4",
            "video/webm",
        ],
        description="Allowed upload MIME types. 'type/*' matches a whole family.",
    )
    media_url_prefix: str = Field(
        default="/api/cms/media/file",
        description="Public URL prefix under which uploaded files are served",
    )

    # ── Content schema ─────────────────────────────────────────────────── #
    cms_config_path: Path = Field(
        default=Path("cms.config.yaml"),
        description="YAML file declaring locales, collections and singletons",
    )

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_login: str = Field(default="5/15 minutes", description="Login attempts per client")
    rate_limit_api: str = Field(default="100/minute", description="General API requests per client")
    rate_limit_upload: str = Field(default="20/hour", description="Media uploads per client")

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Admin Bootstrap ────────────────────────────────────────────────── #
    admin_username: str | None = Field(
        default=None,
        description="Initial super admin username (created only if absent)",
    )
    admin_password: SecretStr | None = Field(
        default=None,
        description="Initial super admin password. Must satisfy the password policy.",
    )
    backfill_legacy_roles: bool = Field(
        default=False,
        description="On startup, assign role_id to users that only carry a legacy role name",
    )

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("jwt_secret_key")
    @classmethod
    def jwt_secret_must_be_long(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters")
        return v

    @field_validator("admin_password")
    @classmethod
    def admin_password_must_be_strong(cls, v: SecretStr | None) -> SecretStr | None:
        from cms.core.security import password_policy_violations

        if v is not None:
            violations = password_policy_violations(v.get_secret_value())
            if violations:
                raise ValueError("admin_password: " + "; ".join(violations))
        return v

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                raise ValueError("debug must be False in production")
            if self.db_echo:
                raise ValueError("db_echo must be False in production")
        return self

    @model_validator(mode="after")
    def ensure_directories_exist(self) -> Settings:
        """Create the upload directory if it does not exist."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings singleton used when no explicit settings are given."""
    return Settings()
