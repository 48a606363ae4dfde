"""FastAPI dependencies: stores, session service, current user from JWT."""

from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.auth import TokenExpired, TokenInvalid, decode_access_token
from app.core.errors import AccessTokenExpired, AccessTokenInvalid, AccessTokenRequired, AuthenticationFailed
from app.db.dynamodb import get_dynamodb_client
from app.db.session import get_db
from app.models.user import User
from app.services.refresh_tokens import RefreshTokenStore
from app.services.sessions import SessionService
from app.services.users import UserStore

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


def get_refresh_token_store() -> RefreshTokenStore:
    return RefreshTokenStore(
        get_dynamodb_client(),
        settings.refresh_tokens_table,
        token_ttl=timedelta(days=settings.refresh_token_expire_days),
    )


def get_user_store(session: Annotated[AsyncSession, Depends(get_db)]) -> UserStore:
    return UserStore(session)


def get_session_service(
    users: Annotated[UserStore, Depends(get_user_store)],
    refresh_tokens: Annotated[RefreshTokenStore, Depends(get_refresh_token_store)],
) -> SessionService:
    return SessionService(users, refresh_tokens, settings)


def get_access_token(request: Request) -> str:
    """Bearer token from the Authorization header, else from the accessToken cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    else:
        token = (request.cookies.get(ACCESS_TOKEN_COOKIE) or "").strip()
    if not token:
        raise AccessTokenRequired()
    return token


async def get_current_user(
    token: Annotated[str, Depends(get_access_token)],
    users: Annotated[UserStore, Depends(get_user_store)],
) -> User:
    outcome = decode_access_token(token)
    if isinstance(outcome, TokenExpired):
        raise AccessTokenExpired()
    if isinstance(outcome, TokenInvalid):
        raise AccessTokenInvalid()
    user = await users.get_by_id(outcome.claims.sub)
    if user is None:
        raise AuthenticationFailed("User not found")
    return user
