"""Password hashing and JWT creation/verification."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings

# Same cost as hash_password so the unknown-user path does the same work
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"dummy-password-for-timing", bcrypt.gensalt())

_REQUIRED_CLAIMS = ("sub", "email", "exp")


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit); no passlib re-encoding."""
    pwd_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify password with bcrypt. Plain password truncated to 72 bytes; malformed hash is a mismatch."""
    plain_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))
    except ValueError:
        return False


def verify_dummy_password(plain_password: str) -> bool:
    """Burn one bcrypt comparison for a user that does not exist. Always False."""
    bcrypt.checkpw(plain_password.encode("utf-8")[:72], _DUMMY_PASSWORD_HASH)
    return False


def hash_refresh_token(token: str) -> str:
    """SHA256 hash of refresh token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    email: str
    iat: datetime | None
    exp: datetime
    jti: str | None = None


@dataclass(frozen=True)
class TokenValid:
    claims: TokenClaims


@dataclass(frozen=True)
class TokenExpired:
    """Signature and structure check out; only the expiry failed."""

    claims: TokenClaims
    expired_at: datetime


@dataclass(frozen=True)
class TokenInvalid:
    reason: str


TokenOutcome = TokenValid | TokenExpired | TokenInvalid


def _timestamp(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _claims_from_payload(payload: dict) -> TokenClaims | None:
    if any(not payload.get(name) for name in _REQUIRED_CLAIMS):
        return None
    try:
        return TokenClaims(
            sub=str(payload["sub"]),
            email=str(payload["email"]),
            iat=_timestamp(payload.get("iat")),
            exp=_timestamp(payload["exp"]),
            jti=payload.get("jti"),
        )
    except (TypeError, ValueError, OverflowError):
        return None


def issue_token(user_id: int | str, email: str, secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    result = jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)
    return result if isinstance(result, str) else result.decode("utf-8")


def verify_token(token: str, secret: str) -> TokenOutcome:
    """Verify signature and expiry. Never raises: every failure is a TokenInvalid."""
    if not isinstance(token, str) or not token.strip():
        return TokenInvalid("Token is missing")
    algorithms = [settings.jwt_algorithm]
    try:
        payload = jwt.decode(token, secret, algorithms=algorithms)
    except ExpiredSignatureError:
        try:
            payload = jwt.decode(token, secret, algorithms=algorithms, options={"verify_exp": False})
        except JWTError as e:
            return TokenInvalid(str(e))
        claims = _claims_from_payload(payload)
        if claims is None:
            return TokenInvalid("Token is missing required claims")
        return TokenExpired(claims=claims, expired_at=claims.exp)
    except JWTError as e:
        return TokenInvalid(str(e))
    claims = _claims_from_payload(payload)
    if claims is None:
        return TokenInvalid("Token is missing required claims")
    return TokenValid(claims)


def create_access_token(user_id: int | str, email: str) -> str:
    return issue_token(
        user_id,
        email,
        settings.access_token_secret,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: int | str, email: str) -> str:
    """Signed refresh token; caller must hash and store it."""
    return issue_token(
        user_id,
        email,
        settings.refresh_token_secret,
        timedelta(days=settings.refresh_token_expire_days),
    )


def decode_access_token(token: str) -> TokenOutcome:
    return verify_token(token, settings.access_token_secret)


def decode_refresh_token(token: str) -> TokenOutcome:
    return verify_token(token, settings.refresh_token_secret)
