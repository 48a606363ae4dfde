"""Unit tests for the token codec: issue, three-way verify, secret separation."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.config import settings
from app.core.auth import (
    TokenExpired,
    TokenInvalid,
    TokenValid,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    issue_token,
    verify_token,
)


def _tamper_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    first = "A" if signature[0] != "A" else "B"
    return ".".join([header, payload, first + signature[1:]])


def test_access_token_roundtrip():
    token = create_access_token(user_id=42, email="u@example.com")
    assert isinstance(token, str)
    outcome = decode_access_token(token)
    assert isinstance(outcome, TokenValid)
    assert outcome.claims.sub == "42"
    assert outcome.claims.email == "u@example.com"
    assert outcome.claims.jti


def test_access_token_expires_after_configured_minutes():
    before = datetime.now(timezone.utc)
    outcome = decode_access_token(create_access_token(1, "a@b.com"))
    assert isinstance(outcome, TokenValid)
    lifetime = outcome.claims.exp - before
    assert timedelta(minutes=settings.access_token_expire_minutes - 1) < lifetime
    assert lifetime <= timedelta(minutes=settings.access_token_expire_minutes, seconds=1)


def test_tokens_issued_in_same_second_differ():
    """jti makes every refresh token (and so its stored hash) unique."""
    assert create_refresh_token(7, "a@b.com") != create_refresh_token(7, "a@b.com")


def test_refresh_token_is_not_an_access_token():
    """Access and refresh tokens are signed with different secrets."""
    refresh = create_refresh_token(1, "a@b.com")
    access = create_access_token(1, "a@b.com")
    assert isinstance(decode_access_token(refresh), TokenInvalid)
    assert isinstance(decode_refresh_token(access), TokenInvalid)
    assert isinstance(decode_refresh_token(refresh), TokenValid)


def test_tampered_signature_is_invalid():
    token = create_refresh_token(1, "a@b.com")
    outcome = decode_refresh_token(_tamper_signature(token))
    assert isinstance(outcome, TokenInvalid)


def test_expired_token_is_expired_not_invalid():
    token = issue_token(5, "old@b.com", "secret", timedelta(minutes=-1))
    outcome = verify_token(token, "secret")
    assert isinstance(outcome, TokenExpired)
    assert outcome.claims.sub == "5"
    assert outcome.claims.email == "old@b.com"
    assert outcome.expired_at < datetime.now(timezone.utc)


def test_expired_token_with_wrong_secret_is_invalid():
    token = issue_token(5, "old@b.com", "secret", timedelta(minutes=-1))
    assert isinstance(verify_token(token, "other-secret"), TokenInvalid)


def test_not_yet_valid_token_is_invalid():
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "1",
        "email": "a@b.com",
        "nbf": now + timedelta(hours=1),
        "exp": now + timedelta(hours=2),
    }
    token = jwt.encode(payload, "secret", algorithm=settings.jwt_algorithm)
    assert isinstance(verify_token(token, "secret"), TokenInvalid)


def test_token_without_email_is_invalid():
    payload = {"sub": "1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
    token = jwt.encode(payload, "secret", algorithm=settings.jwt_algorithm)
    outcome = verify_token(token, "secret")
    assert isinstance(outcome, TokenInvalid)
    assert "claims" in outcome.reason


@pytest.mark.parametrize("raw", ["", "   ", "not-a-jwt", "a.b.c", None, 123])
def test_unparseable_input_is_invalid(raw):
    assert isinstance(verify_token(raw, "secret"), TokenInvalid)
