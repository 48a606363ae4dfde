"""
Request rate limiting (slowapi). Shared limiter so routers can decorate endpoints;
login is limited per client address to slow down password guessing.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    enabled=settings.rate_limit_enabled,
)
