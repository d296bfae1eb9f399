"""
Structured error taxonomy for the CMS.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

No internal state (stack traces, DB internals) is ever surfaced to clients.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes. Never reuse a retired code."""

    # Auth
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_UNAUTHORIZED = "AUTH_002"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_003"
    AUTH_PASSWORD_POLICY = "AUTH_004"

    # Content
    CONTENT_NOT_FOUND = "CNT_001"
    CONTENT_INVALID = "CNT_002"
    CONTENT_TYPE_UNKNOWN = "CNT_003"

    # Media
    MEDIA_NOT_FOUND = "MED_001"
    MEDIA_MIME_REJECTED = "MED_002"
    MEDIA_TOO_LARGE = "MED_003"
    MEDIA_INVALID_FILENAME = "MED_004"

    # Users / Roles
    USER_NOT_FOUND = "USR_001"
    USER_USERNAME_TAKEN = "USR_002"
    USER_EMAIL_TAKEN = "USR_003"
    ROLE_NOT_FOUND = "ROL_001"
    ROLE_NAME_TAKEN = "ROL_002"
    ROLE_SYSTEM_PROTECTED = "ROL_003"

    # Configuration
    CONFIG_INVALID = "CFG_001"
    CONFIG_INSECURE_SECRET = "CFG_002"
    CONFIG_MISSING_DATABASE_URL = "CFG_003"
    DB_NOT_INITIALIZED = "CFG_004"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: str | None = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail = {"entity": entity}
        if entity_id:
            detail["id"] = entity_id
        super().__init__(
            code=code,
            message=f"{entity} not found",
            http_status=404,
            detail=detail,
        )


class AuthError(AppError):
    def __init__(
        self, code: ErrorCode = ErrorCode.AUTH_UNAUTHORIZED, message: str = "Unauthorized"
    ) -> None:
        super().__init__(code=code, message=message, http_status=401)


class ForbiddenError(AppError):
    """Authorization failure. The message never names the missing permission."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        code: ErrorCode = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            http_status=403,
        )


class ValidationError(AppError):
    def __init__(
        self,
        message: str,
        detail: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            http_status=422,
            detail=detail,
        )


class ConflictError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=409)


class RateLimitedError(AppError):
    def __init__(self, retry_after: int) -> None:
        self.retry_after = max(1, int(retry_after))
        super().__init__(
            code=ErrorCode.RATE_LIMITED,
            message="Too many requests. Please try again later.",
            http_status=429,
            detail={"retry_after": self.retry_after},
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ConfigurationError(AppError):
    """Fatal misconfiguration, raised at startup or on first database use."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=500)
