import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.api.errors import register_exception_handlers
from app.api.v1 import auth

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("app").setLevel(logging.DEBUG)
from app.config import settings
from app.core.errors import StoreUnavailable
from app.core.metrics import SWEPT_TOKENS
from app.core.rate_limit import limiter
from app.db.dynamodb import close_dynamodb, ensure_refresh_tokens_table, get_dynamodb_client, init_dynamodb
from app.db.session import init_db
from app.services.refresh_tokens import RefreshTokenStore
from prometheus_client import make_asgi_app

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def scheduled_refresh_token_sweep():
    """Delete refresh token records past expires_at (DynamoDB TTL is best effort)."""
    store = RefreshTokenStore(
        get_dynamodb_client(),
        settings.refresh_tokens_table,
        token_ttl=timedelta(days=settings.refresh_token_expire_days),
    )
    try:
        deleted = await store.sweep_expired()
    except StoreUnavailable:
        logger.exception("Scheduled refresh token sweep failed")
        return
    SWEPT_TOKENS.inc(deleted)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_jwt_config()
    await init_db()
    client = init_dynamodb()
    if settings.dynamodb_create_table:
        if settings.is_production:
            raise RuntimeError("DYNAMODB_CREATE_TABLE must not be enabled in production")
        ensure_refresh_tokens_table(client, settings.refresh_tokens_table)

    hour = settings.sweep_cron_hour if 0 <= settings.sweep_cron_hour <= 23 else 3
    scheduler.add_job(scheduled_refresh_token_sweep, "cron", hour=hour, minute=0)
    scheduler.start()
    yield
    scheduler.shutdown()
    close_dynamodb()


app = FastAPI(
    title="Session Auth API",
    description="Password login with rotating refresh tokens stored in DynamoDB",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)
app.add_middleware(SlowAPIMiddleware)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if getattr(settings, "enable_hsts", False):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else []
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
