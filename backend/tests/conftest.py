"""Pytest configuration and shared fixtures for API and store tests."""

import os
import tempfile
import threading

import boto3
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from moto import mock_aws

# Set test DB, secrets and fake AWS credentials before app imports so config/engine use them
_tmp_dir = tempfile.mkdtemp(prefix="session-auth-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp_dir}/test.db")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REFRESH_TOKENS_TABLE", "refresh_tokens_test")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from app.config import settings
from app.core.auth import create_access_token, hash_password
from app.db.base import Base
from app.db.dynamodb import close_dynamodb, ensure_refresh_tokens_table, init_dynamodb
from app.db.session import async_session_maker, engine, init_db
from app.main import app
from app.models.user import User
from app.services.refresh_tokens import RefreshTokenStore

pytest_plugins = ["pytest_asyncio"]

TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "Correct1"


class SerializedClient:
    """moto applies conditional writes without locking; DynamoDB makes each item write atomic."""

    def __init__(self, client):
        self._client = client
        self._lock = threading.Lock()

    def __getattr__(self, name):
        attr = getattr(self._client, name)
        if not callable(attr):
            return attr

        def call(*args, **kwargs):
            with self._lock:
                return attr(*args, **kwargs)

        return call


@pytest.fixture
def dynamodb_client():
    """Mocked DynamoDB with the refresh token table created."""
    with mock_aws():
        client = SerializedClient(boto3.client("dynamodb", region_name="us-east-1"))
        ensure_refresh_tokens_table(client, settings.refresh_tokens_table)
        init_dynamodb(client)
        yield client
        close_dynamodb()


@pytest.fixture
def token_store(dynamodb_client):
    return RefreshTokenStore(dynamodb_client, settings.refresh_tokens_table)


@pytest_asyncio.fixture
async def clean_db():
    """Create tables and delete all rows so the next test has a clean DB."""
    await init_db()
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())
    yield


@pytest_asyncio.fixture
async def client(clean_db, dynamodb_client):
    """Yield AsyncClient against the app (lifespan not run; DB and DynamoDB set up by fixtures)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def test_user(clean_db):
    """Create a user via DB (committed) and return (user_id, email, access_token)."""
    async with async_session_maker() as session:
        user = User(
            email=TEST_EMAIL,
            password_hash=hash_password(TEST_PASSWORD),
            name="Test User",
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        token = create_access_token(user.id, user.email)
        return user.id, user.email, token


@pytest.fixture
def auth_headers(test_user):
    """Return dict of Authorization header for test_user."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}
