"""
Security utilities: password hashing and policy, session tokens, secret checks.

Secrets are never logged. Password comparison is timing-safe.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import bcrypt
import structlog
from jose import JWTError, jwt
from starlette.concurrency import run_in_threadpool

from cms.core.errors import ConfigurationError, ErrorCode

if TYPE_CHECKING:
    from cms.config.settings import Settings

_log = structlog.get_logger(__name__)

PASSWORD_MIN_LENGTH = 8
SESSION_TOKEN_TYPE = "session"


# ── Password ──────────────────────────────────────────────────────────── #


def _normalize(plain: str) -> bytes:
    # bcrypt truncates at 72 bytes; pre-hashing keeps long passphrases intact.
    return hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_normalize(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored hash.

    Returns False (never raises) on malformed hashes.
    """
    try:
        return bcrypt.checkpw(_normalize(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


async def hash_password_async(plain: str, rounds: int = 12) -> str:
    """Hash off the event loop; bcrypt is deliberately slow."""
    return await run_in_threadpool(hash_password, plain, rounds)


async def verify_password_async(plain: str, hashed: str) -> bool:
    return await run_in_threadpool(verify_password, plain, hashed)


@lru_cache(maxsize=4)
def dummy_password_hash(rounds: int) -> str:
    """A throwaway hash to verify against when the username does not exist."""
    return hash_password(secrets.token_urlsafe(16), rounds)


def password_policy_violations(password: str) -> list[str]:
    """
    Return the password policy rules the candidate breaks. Empty list = valid.

    Policy: at least 8 characters with an uppercase letter, a lowercase
    letter and a digit.
    """
    violations: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        violations.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not any(c.isupper() for c in password):
        violations.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        violations.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        violations.append("Password must contain at least one digit")
    return violations


# ── Session tokens ────────────────────────────────────────────────────── #


def _now_utc() -> datetime:
    return datetime.now(UTC)


def create_session_token(
    settings: Settings,
    *,
    user_id: str,
    username: str,
    role: str | None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed session token binding user id, username and role.

    Lifetime defaults to ``settings.session_expire_days``.
    """
    issued = _now_utc()
    expire = issued + (expires_delta or timedelta(days=settings.session_expire_days))
    payload: dict[str, Any] = {
        "sub": user_id,
        "username": username,
        "role": role,
        "iat": issued,
        "exp": expire,
        "type": SESSION_TOKEN_TYPE,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_session_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """
    Decode and validate a session token.

    Returns None if the signature, expiry or token type is wrong.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("sub"):
        return None
    return payload


# ── Secret management ─────────────────────────────────────────────────── #


def validate_jwt_secret(settings: Settings) -> None:
    """
    Refuse to run production with the placeholder signing secret.

    Raises:
        ConfigurationError: placeholder secret in production.
    """
    from cms.config.settings import DEFAULT_JWT_SECRET

    if not secrets.compare_digest(
        settings.jwt_secret_key.get_secret_value(), DEFAULT_JWT_SECRET
    ):
        return
    if settings.is_production:
        raise ConfigurationError(
            ErrorCode.CONFIG_INSECURE_SECRET,
            "CMS_JWT_SECRET_KEY is set to the default placeholder. "
            "Set a unique secret before running in production.",
        )
    _log.warning("insecure_jwt_secret", environment=settings.environment.value)


__all__ = [
    "create_session_token",
    "decode_session_token",
    "dummy_password_hash",
    "hash_password",
    "hash_password_async",
    "password_policy_violations",
    "validate_jwt_secret",
    "verify_password",
    "verify_password_async",
]
