#!/usr/bin/env python3
"""One-off: delete refresh token records past expires_at (same job the app runs daily).
Usage: REFRESH_TOKENS_TABLE=refresh_tokens python scripts/sweep_expired_tokens.py"""
import asyncio

from app.config import settings
from app.db.dynamodb import create_dynamodb_client
from app.services.refresh_tokens import RefreshTokenStore


async def main():
    store = RefreshTokenStore(create_dynamodb_client(settings), settings.refresh_tokens_table)
    deleted = await store.sweep_expired()
    print(f"Deleted {deleted} expired refresh tokens")


if __name__ == "__main__":
    asyncio.run(main())
