"""
CMS application factory.

Application lifecycle:
  startup  → configure logging, validate secrets, provision schema, seed roles/admin
  shutdown → dispose DB engine pool
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from cms.api.v1.router import router as api_router
from cms.config.logging_config import configure_logging
from cms.config.settings import Settings, get_settings
from cms.core.context import CmsContext
from cms.core.errors import AppError
from cms.core.middleware import (
    CorrelationIDMiddleware,
    SecurityHeadersMiddleware,
    app_error_handler,
    unhandled_exception_handler,
)

_log = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, context: CmsContext | None = None) -> FastAPI:
    """
    Application factory. Returns a configured FastAPI instance.

    Pass ``context`` to reuse an already built CmsContext (tests do this).
    """
    if context is None:
        settings = settings or get_settings()
        context = CmsContext.from_settings(settings)
    settings = context.settings

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Headless CMS: content collections, singletons, media and users over HTTP.",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )
    app.state.cms = context

    # ── Startup / Shutdown ────────────────────────────────────────────── #
    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging(settings)
        _log.info(
            "cms_starting",
            version=settings.app_version,
            environment=settings.environment.value,
        )
        await context.startup()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await context.shutdown()
        _log.info("cms_shutdown")

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "Retry-After"],
    )

    # ── Custom Middleware (applied in reverse order) ───────────────────── #
    app.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(api_router)

    # ── Health ────────────────────────────────────────────────────────── #
    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict[str, object]:
        """Reports database reachability."""
        db_ok = context.database.is_initialized and await context.database.ping()
        return {
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "driver": context.database.driver.value,
            "version": settings.app_version,
        }

    # ── Metrics (Prometheus) ──────────────────────────────────────────── #
    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Entry point for uvicorn
app = create_app()
