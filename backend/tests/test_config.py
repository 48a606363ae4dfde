"""Settings checks that guard production startup."""

import pytest

from app.config import DEV_ACCESS_SECRET, Settings


def _prod(**overrides) -> Settings:
    values = {
        "app_env": "production",
        "access_token_secret": "a" * 32,
        "refresh_token_secret": "r" * 32,
    }
    values.update(overrides)
    return Settings(**values)


def test_development_accepts_defaults():
    Settings(app_env="development", access_token_secret=DEV_ACCESS_SECRET).validate_jwt_config()


def test_production_accepts_distinct_secrets():
    cfg = _prod()
    cfg.validate_jwt_config()
    assert cfg.cookie_secure is True


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"access_token_secret": DEV_ACCESS_SECRET}, "ACCESS_TOKEN_SECRET"),
        ({"refresh_token_secret": ""}, "REFRESH_TOKEN_SECRET"),
        ({"refresh_token_secret": "a" * 32}, "must differ"),
    ],
)
def test_production_rejects_unsafe_config(overrides, message):
    with pytest.raises(RuntimeError, match=message):
        _prod(**overrides).validate_jwt_config()


def test_session_policy_is_restricted():
    with pytest.raises(ValueError):
        Settings(session_policy="everything")


@pytest.mark.parametrize("app_env", ["development", "production"])
def test_max_active_sessions_must_be_positive(app_env):
    with pytest.raises(ValueError, match="max_active_sessions"):
        Settings(app_env=app_env, session_policy="limit", max_active_sessions=0)
