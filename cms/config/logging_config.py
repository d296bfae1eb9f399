"""structlog setup shared by the CMS app and its CLI entry point."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from cms.config.settings import Settings

REDACTED = "[redacted]"

# Exact keys plus suffixes (``admin_password``, ``session_token``, ``jwt_secret_key``).
_SECRET_KEYS = frozenset({"password", "password_hash", "token", "authorization", "cookie", "set-cookie"})
_SECRET_SUFFIXES = ("_password", "_token", "_secret", "_secret_key")


def _is_secret(key: str) -> bool:
    key = key.lower()
    return key in _SECRET_KEYS or key.endswith(_SECRET_SUFFIXES)


def _redact_secrets(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    for key in [k for k in event_dict if _is_secret(k)]:
        event_dict[key] = REDACTED
    return event_dict


def _service_context(service: str, environment: str) -> Processor:
    def add_service(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("env", environment)
        return event_dict

    return add_service


def _library_levels(settings: Settings) -> dict[str, int]:
    # SQL echo is opt-in; otherwise libraries only speak up on warnings.
    return {
        "uvicorn.access": logging.WARNING,
        "sqlalchemy.engine": logging.INFO if settings.db_echo else logging.WARNING,
        "aiosqlite": logging.WARNING,
        "asyncpg": logging.WARNING,
        "multipart": logging.WARNING,
        "PIL": logging.WARNING,
    }


def configure_logging(settings: Settings) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    JSON output when ``settings.log_json`` is set, coloured console output
    otherwise. Every event carries the service name and environment, and
    secret-looking keys are masked before rendering. Calling it again
    replaces the root handler.
    """
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_context(settings.app_name, settings.environment.value),
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.value)
    for name, level in _library_levels(settings).items():
        logging.getLogger(name).setLevel(level)
