"""Auth: register, login, refresh, logout, logout-all, sessions, me."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_current_user,
    get_session_service,
)
from app.config import settings
from app.core.errors import RequestValidationFailed
from app.core.rate_limit import limiter
from app.models.user import User
from app.schemas.auth import (
    LoginBody,
    LogoutResponse,
    RefreshBody,
    RegisterBody,
    RegisterResponse,
    SessionOut,
    TokenResponse,
    UserOut,
)
from app.services.sessions import IssuedSession, SanitizedUser, SessionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

_REFRESH_ERRORS = {403: {"description": "Refresh token invalid, expired, revoked or unknown"}}
_STORE_ERRORS = {500: {"description": "Token store unavailable"}}


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    for name, value in ((ACCESS_TOKEN_COOKIE, access_token), (REFRESH_TOKEN_COOKIE, refresh_token)):
        response.set_cookie(
            key=name,
            value=value,
            max_age=settings.cookie_max_age_seconds,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite="strict",
        )


def _clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            key=name,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite="strict",
        )


def _user_out(user: SanitizedUser) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


def _token_response(issued: IssuedSession) -> TokenResponse:
    return TokenResponse(
        access_token=issued.access_token,
        refresh_token=issued.refresh_token,
        expires_in=issued.expires_in,
        user=_user_out(issued.user) if issued.user else None,
    )


def _refresh_token_from(request: Request, body: RefreshBody | None) -> str | None:
    """Token from the JSON body (mobile clients), else from the refreshToken cookie."""
    token = body.refresh_token if body is not None else None
    if not token:
        token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    token = (token or "").strip()
    return token or None


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=201,
    summary="Register a new user",
    responses={
        400: {"description": "Validation failed or email already registered"},
        **_STORE_ERRORS,
    },
)
async def register(
    service: Annotated[SessionService, Depends(get_session_service)],
    body: RegisterBody,
) -> RegisterResponse:
    user = await service.register(body.email, body.password, body.name)
    return RegisterResponse(user=_user_out(user))


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    responses={
        401: {"description": "Invalid email or password"},
        **_STORE_ERRORS,
    },
)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    response: Response,
    service: Annotated[SessionService, Depends(get_session_service)],
    body: LoginBody,
) -> TokenResponse:
    issued = await service.login(body.email, body.password)
    _set_auth_cookies(response, issued.access_token, issued.refresh_token)
    return _token_response(issued)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange refresh token for new access and refresh tokens",
    responses={
        400: {"description": "Refresh token missing"},
        **_REFRESH_ERRORS,
        **_STORE_ERRORS,
    },
)
async def refresh_tokens(
    request: Request,
    response: Response,
    service: Annotated[SessionService, Depends(get_session_service)],
    body: RefreshBody | None = None,
) -> TokenResponse:
    """Rotate: the presented refresh token is revoked and can never be used again."""
    token = _refresh_token_from(request, body)
    if token is None:
        raise RequestValidationFailed([{"field": "refreshToken", "message": "Refresh token is required"}])
    issued = await service.refresh(token)
    _set_auth_cookies(response, issued.access_token, issued.refresh_token)
    return _token_response(issued)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Revoke the current refresh token",
    responses=_STORE_ERRORS,
)
async def logout(
    request: Request,
    response: Response,
    service: Annotated[SessionService, Depends(get_session_service)],
    body: RefreshBody | None = None,
) -> LogoutResponse:
    """Always succeeds for missing, unknown or already revoked tokens."""
    await service.logout(_refresh_token_from(request, body))
    _clear_auth_cookies(response)
    return LogoutResponse(success=True)


@router.post(
    "/logout-all",
    response_model=LogoutResponse,
    summary="Revoke every refresh token of the current user",
    responses={
        401: {"description": "Not authenticated"},
        **_STORE_ERRORS,
    },
)
async def logout_all(
    response: Response,
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> LogoutResponse:
    outcome = await service.logout_all(user.id)
    _clear_auth_cookies(response)
    return LogoutResponse(success=True, revoked=outcome.revoked)


@router.get(
    "/sessions",
    response_model=list[SessionOut],
    summary="List active sessions of the current user",
    responses={
        401: {"description": "Not authenticated"},
        **_STORE_ERRORS,
    },
)
async def list_sessions(
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> list[SessionOut]:
    records = await service.list_sessions(user.id)
    return [
        SessionOut(created_at=r.created_at, last_used_at=r.last_used_at, expires_at=r.expires_at)
        for r in records
    ]


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user",
    responses={
        401: {"description": "Not authenticated or token expired"},
        403: {"description": "Invalid token"},
    },
)
async def me(user: Annotated[User, Depends(get_current_user)]) -> UserOut:
    return _user_out(SanitizedUser.from_user(user))
