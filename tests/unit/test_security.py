"""Unit tests for cms.core.security."""
from datetime import timedelta

import pytest
from jose import jwt
from pydantic import SecretStr
from structlog.testing import capture_logs

from cms.config.settings import DEFAULT_JWT_SECRET, Environment
from cms.core.errors import ConfigurationError, ErrorCode
from cms.core.security import (
    create_session_token,
    decode_session_token,
    hash_password,
    password_policy_violations,
    validate_jwt_secret,
    verify_password,
)


# ─── Password hashing ─────────────────────────────────────────────────────────

def test_hash_password_produces_bcrypt_hash():
    h = hash_password("hunter2", rounds=4)
    assert h.startswith("$2b$04$")


def test_verify_password_correct():
    h = hash_password("correct-horse", rounds=4)
    assert verify_password("correct-horse", h) is True


def test_verify_password_wrong():
    h = hash_password("correct-horse", rounds=4)
    assert verify_password("wrong-password", h) is False


def test_hash_is_non_deterministic():
    """bcrypt should produce different hashes for the same input."""
    assert hash_password("same", rounds=4) != hash_password("same", rounds=4)


def test_long_passwords_are_not_truncated():
    base = "x" * 80
    h = hash_password(base + "a", rounds=4)
    assert verify_password(base + "b", h) is False


def test_verify_password_malformed_hash_returns_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


# ─── Password policy ──────────────────────────────────────────────────────────

def test_policy_accepts_strong_password():
    assert password_policy_violations("Str0ngPass") == []


@pytest.mark.parametrize(
    ("password", "fragment"),
    [
        ("Sh0rt", "8 characters"),
        ("alllower1", "uppercase"),
        ("ALLUPPER1", "lowercase"),
        ("NoDigitsHere", "digit"),
    ],
)
def test_policy_reports_each_violation(password, fragment):
    violations = password_policy_violations(password)
    assert any(fragment in v for v in violations)


# ─── Session tokens ───────────────────────────────────────────────────────────

def test_session_token_round_trip(settings):
    token = create_session_token(settings, user_id="user-123", username="alice", role="editor")
    payload = decode_session_token(token, settings)
    assert payload is not None
    assert payload["sub"] == "user-123"
    assert payload["username"] == "alice"
    assert payload["role"] == "editor"
    assert payload["type"] == "session"
    assert payload["jti"]


def test_session_token_expires_after_seven_days(settings):
    token = create_session_token(settings, user_id="u", username="u", role=None)
    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60


def test_expired_token_is_rejected(settings):
    token = create_session_token(
        settings, user_id="u", username="u", role=None, expires_delta=timedelta(seconds=-1)
    )
    assert decode_session_token(token, settings) is None


def test_token_signed_with_other_secret_is_rejected(settings):
    token = create_session_token(settings, user_id="u", username="u", role=None)
    other = settings.model_copy(update={"jwt_secret_key": SecretStr("another-secret-key-" + "x" * 20)})
    assert decode_session_token(token, other) is None


def test_token_of_wrong_type_is_rejected(settings):
    forged = jwt.encode(
        {"sub": "u", "type": "refresh"},
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )
    assert decode_session_token(forged, settings) is None


def test_garbage_token_is_rejected(settings):
    assert decode_session_token("not.a.token", settings) is None


# ─── Secret checks ────────────────────────────────────────────────────────────

def _with_placeholder_secret(settings, environment):
    return settings.model_copy(
        update={"environment": environment, "jwt_secret_key": SecretStr(DEFAULT_JWT_SECRET)}
    )


def test_placeholder_secret_fails_in_production(settings):
    prod = _with_placeholder_secret(settings, Environment.PRODUCTION)
    with pytest.raises(ConfigurationError) as exc_info:
        validate_jwt_secret(prod)
    assert exc_info.value.code == ErrorCode.CONFIG_INSECURE_SECRET


def test_placeholder_secret_only_warns_in_development(settings):
    dev = _with_placeholder_secret(settings, Environment.DEVELOPMENT)
    with capture_logs() as logs:
        validate_jwt_secret(dev)
    assert any(entry["event"] == "insecure_jwt_secret" for entry in logs)


def test_custom_secret_passes_silently(settings):
    with capture_logs() as logs:
        validate_jwt_secret(settings)
    assert logs == []
