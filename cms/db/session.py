"""
Database lifecycle: driver selection, schema provisioning, sessions.

One set of declarative models serves both backends; the column types in
``cms.db.base`` adapt per dialect. Driver-specific behaviour (connection
options, pragmas, post-hoc constraints) lives only in the subclasses here.
"""

from __future__ import annotations

import abc
from pathlib import Path
from typing import Any, ClassVar

import sqlalchemy as sa
import structlog
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, Table, event, inspect
from sqlalchemy.engine import URL, Connection, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cms.config.settings import DatabaseDriver, Settings
from cms.core.errors import ConfigurationError, ErrorCode
from cms.db import models  # noqa: F401  (registers every table on Base.metadata)
from cms.db.base import Base

_log = structlog.get_logger(__name__)


class Database(abc.ABC):
    """
    Owns one async engine and its session factory.

    ``initialize`` is idempotent: tables and indexes are created only if
    absent, and columns added to models after a store was first created
    are migrated in additively. Nothing is ever dropped or altered.
    """

    driver: ClassVar[DatabaseDriver]

    def __init__(self, *, echo: bool = False) -> None:
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    # ── Driver hooks ─────────────────────────────────────────────────── #

    @abc.abstractmethod
    def _create_engine(self) -> AsyncEngine:
        """Build the driver's async engine."""

    def _after_add_column(self, ops: Operations, table: Table, column: Column[Any]) -> None:
        """Attach constraints to a freshly added column, where the backend allows it."""

    # ── Lifecycle ────────────────────────────────────────────────────── #

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def initialize(self) -> None:
        if self._engine is not None:
            return

        engine = self._create_engine()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                added = await conn.run_sync(self._migrate_columns)
        except Exception:
            await engine.dispose()
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        _log.info("database_initialized", driver=self.driver.value, columns_added=added)

    def get_handle(self) -> AsyncEngine:
        if self._engine is None:
            raise ConfigurationError(
                ErrorCode.DB_NOT_INITIALIZED,
                "Database not initialized. Call initialize() first.",
            )
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with database.session() as db``."""
        self.get_handle()
        assert self._session_factory is not None
        return self._session_factory()

    async def ping(self) -> bool:
        try:
            async with self.get_handle().connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
        except Exception as exc:
            _log.warning("database_ping_failed", error=str(exc))
            return False
        return True

    async def dispose(self) -> None:
        """Dispose the engine; used on application shutdown."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    # ── Additive column migration ───────────────────────────────────── #

    def _migrate_columns(self, connection: Connection) -> list[str]:
        inspector = inspect(connection)
        ops = Operations(MigrationContext.configure(connection))
        added: list[str] = []

        for table in Base.metadata.sorted_tables:
            present = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in present:
                    continue
                if not column.nullable and column.server_default is None:
                    _log.warning(
                        "column_migration_skipped",
                        table=table.name,
                        column=column.name,
                        reason="NOT NULL without server default",
                    )
                    continue
                ops.add_column(table.name, _detached_copy(column))
                self._after_add_column(ops, table, column)
                present.add(column.name)
                added.append(f"{table.name}.{column.name}")

            for index in table.indexes:
                if all(col.name in present for col in index.columns):
                    index.create(connection, checkfirst=True)

        return added


def _detached_copy(column: Column[Any]) -> Column[Any]:
    """Plain copy of a model column, free of its table binding and constraints."""
    server_default = column.server_default.arg if column.server_default is not None else None  # type: ignore[attr-defined]
    return Column(
        column.name,
        column.type,
        nullable=column.nullable,
        server_default=server_default,
    )


class SqliteDatabase(Database):
    """Embedded file store (or ``:memory:``) via aiosqlite."""

    driver = DatabaseDriver.SQLITE

    def __init__(self, path: str | Path, *, echo: bool = False) -> None:
        super().__init__(echo=echo)
        self.path = str(path)

    @property
    def in_memory(self) -> bool:
        return self.path in ("", ":memory:")

    def _create_engine(self) -> AsyncEngine:
        kwargs: dict[str, Any] = {
            "echo": self.echo,
            "connect_args": {"check_same_thread": False},
        }
        if self.in_memory:
            url = URL.create("sqlite+aiosqlite")
            # One shared connection, otherwise every checkout sees an empty store.
            kwargs["poolclass"] = StaticPool
        else:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            url = URL.create("sqlite+aiosqlite", database=self.path)

        engine = create_async_engine(url, **kwargs)
        in_memory = self.in_memory

        @event.listens_for(engine.sync_engine, "connect")
        def _set_pragmas(dbapi_connection: Any, _record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    def _after_add_column(self, ops: Operations, table: Table, column: Column[Any]) -> None:
        if column.foreign_keys:
            # SQLite cannot add a constraint to an existing table.
            _log.info(
                "foreign_key_not_added",
                table=table.name,
                column=column.name,
                driver=self.driver.value,
            )


class PostgresDatabase(Database):
    """Networked store via asyncpg with a connection pool."""

    driver = DatabaseDriver.POSTGRESQL

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        super().__init__(echo=echo)
        parsed = make_url(url)
        if parsed.drivername in ("postgres", "postgresql"):
            parsed = parsed.set(drivername="postgresql+asyncpg")
        self.url = parsed
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(
            self.url,
            echo=self.echo,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_pre_ping=True,
        )

    def _after_add_column(self, ops: Operations, table: Table, column: Column[Any]) -> None:
        for fk in column.foreign_keys:
            ops.create_foreign_key(
                f"fk_{table.name}_{column.name}",
                table.name,
                fk.column.table.name,
                [column.name],
                [fk.column.name],
                ondelete=fk.ondelete,
            )


def create_database(settings: Settings) -> Database:
    """
    Select the persistence backend from configuration.

    Raises:
        ConfigurationError: PostgreSQL selected without a connection URL.
    """
    if settings.database_driver == DatabaseDriver.POSTGRESQL:
        if not settings.database_url:
            raise ConfigurationError(
                ErrorCode.CONFIG_MISSING_DATABASE_URL,
                "database_driver=postgresql requires CMS_DATABASE_URL",
            )
        return PostgresDatabase(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.db_echo,
        )
    return SqliteDatabase(settings.database_path, echo=settings.db_echo)
