"""
Session flows: login, refresh rotation, logout, logout-all.

Composes the credential check, the token codec and the refresh token store,
and is the only place internal outcomes are turned into client-facing errors
(app.core.errors). Rotation is strictly sequential: the presented refresh token
is revoked with a conditional write before the replacement is minted, so of two
concurrent refreshes with the same token exactly one gets a new pair.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from app.config import Settings, settings as default_settings
from app.core.auth import (
    TokenExpired,
    TokenInvalid,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    verify_dummy_password,
    verify_password,
)
from app.core.errors import (
    AuthError,
    AuthenticationFailed,
    InvalidRefreshToken,
    RefreshTokenExpired,
    RefreshTokenRevokedOrUnknown,
)
from app.core.metrics import LOGIN_ATTEMPTS, REFRESH_ATTEMPTS, REVOKED_TOKENS
from app.models.refresh_token import BulkRevocation, RefreshTokenRecord
from app.models.user import User
from app.services.refresh_tokens import RefreshTokenStore
from app.services.users import UserStore

logger = logging.getLogger(__name__)

POLICY_REVOKE_ALL = "revoke_all"
POLICY_LIMIT = "limit"


@dataclass(frozen=True)
class SanitizedUser:
    """User as shown to clients: never carries the password hash."""

    id: int
    email: str
    name: str | None
    created_at: datetime | None

    @classmethod
    def from_user(cls, user: User) -> SanitizedUser:
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


@dataclass(frozen=True)
class IssuedSession:
    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires
    user_id: str
    user: SanitizedUser | None = None


class SessionService:
    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        settings: Settings = default_settings,
    ) -> None:
        self._users = users
        self._refresh_tokens = refresh_tokens
        self._settings = settings

    async def _issue_pair(self, user_id: int | str, email: str) -> tuple[str, str]:
        access = create_access_token(user_id, email)
        refresh = create_refresh_token(user_id, email)
        await self._refresh_tokens.create(user_id, refresh)
        return access, refresh

    async def _apply_login_policy(self, user_id: int) -> BulkRevocation:
        if self._settings.session_policy == POLICY_LIMIT:
            outcome = await self._refresh_tokens.limit_active_for_user(user_id, self._settings.max_active_sessions)
            reason = "session_limit"
        else:
            outcome = await self._refresh_tokens.revoke_all_for_user(user_id)
            reason = "new_login"
        if outcome.revoked:
            REVOKED_TOKENS.labels(reason=reason).inc(outcome.revoked)
        return outcome

    async def login(self, email: str, password: str) -> IssuedSession:
        user = await self._users.get_by_email(email)
        if user is None:
            await asyncio.to_thread(verify_dummy_password, password)
            LOGIN_ATTEMPTS.labels(outcome="failed").inc()
            logger.warning("Login failed: invalid credentials")
            raise AuthenticationFailed()
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            LOGIN_ATTEMPTS.labels(outcome="failed").inc()
            logger.warning("Login failed: invalid credentials")
            raise AuthenticationFailed()

        await self._apply_login_policy(user.id)
        access, refresh = await self._issue_pair(user.id, user.email)
        LOGIN_ATTEMPTS.labels(outcome="success").inc()
        logger.info("Login succeeded for user %s", user.id)
        return IssuedSession(
            access_token=access,
            refresh_token=refresh,
            expires_in=self._settings.access_token_expire_minutes * 60,
            user_id=str(user.id),
            user=SanitizedUser.from_user(user),
        )

    def _reject_refresh(self, error: AuthError, reason: str) -> AuthError:
        REFRESH_ATTEMPTS.labels(outcome=error.code).inc()
        logger.warning("Refresh rejected: %s", reason)
        return error

    async def refresh(self, raw_refresh_token: str) -> IssuedSession:
        outcome = decode_refresh_token(raw_refresh_token)
        if isinstance(outcome, TokenInvalid):
            raise self._reject_refresh(InvalidRefreshToken(), outcome.reason)
        if isinstance(outcome, TokenExpired):
            raise self._reject_refresh(RefreshTokenExpired(), "signed expiry passed")
        claims = outcome.claims

        record = await self._refresh_tokens.find_active(raw_refresh_token)
        if record is None:
            raise self._reject_refresh(RefreshTokenRevokedOrUnknown(), "no active record")
        if record.user_id != claims.sub:
            raise self._reject_refresh(InvalidRefreshToken(), "record owner does not match token subject")

        # Conditional revoke: a concurrent refresh with the same token loses here
        if not await self._refresh_tokens.revoke_one(raw_refresh_token):
            raise self._reject_refresh(RefreshTokenRevokedOrUnknown(), "token already rotated")
        REVOKED_TOKENS.labels(reason="rotation").inc()
        await self._refresh_tokens.touch_last_used(raw_refresh_token)

        access, refresh = await self._issue_pair(claims.sub, claims.email)
        REFRESH_ATTEMPTS.labels(outcome="success").inc()
        return IssuedSession(
            access_token=access,
            refresh_token=refresh,
            expires_in=self._settings.access_token_expire_minutes * 60,
            user_id=claims.sub,
        )

    async def logout(self, raw_refresh_token: str | None) -> None:
        """Revoke the token if there is one. Already revoked or unknown tokens are not an error."""
        if not raw_refresh_token:
            return
        if await self._refresh_tokens.revoke_one(raw_refresh_token):
            REVOKED_TOKENS.labels(reason="logout").inc()

    async def logout_all(self, user_id: int | str) -> BulkRevocation:
        outcome = await self._refresh_tokens.revoke_all_for_user(user_id)
        if outcome.revoked:
            REVOKED_TOKENS.labels(reason="logout_all").inc(outcome.revoked)
        logger.info("Logout-all for user %s: %d sessions revoked", user_id, outcome.revoked)
        return outcome

    async def register(self, email: str, password: str, name: str | None = None) -> SanitizedUser:
        user = await self._users.create(email, password, name)
        logger.info("Registered user %s", user.id)
        return SanitizedUser.from_user(user)

    async def list_sessions(self, user_id: int | str) -> list[RefreshTokenRecord]:
        return await self._refresh_tokens.list_active_for_user(user_id)
