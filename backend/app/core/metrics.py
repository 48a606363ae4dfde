"""Prometheus counters for auth flows (exposed under /metrics)."""

from prometheus_client import Counter

LOGIN_ATTEMPTS = Counter("auth_login_total", "Login attempts by outcome", ["outcome"])
REFRESH_ATTEMPTS = Counter("auth_refresh_total", "Refresh token rotations by outcome", ["outcome"])
REVOKED_TOKENS = Counter("auth_refresh_tokens_revoked_total", "Refresh tokens revoked", ["reason"])
SWEPT_TOKENS = Counter("auth_refresh_tokens_swept_total", "Expired refresh tokens deleted by the sweep")
