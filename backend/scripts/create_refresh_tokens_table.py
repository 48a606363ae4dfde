#!/usr/bin/env python3
"""Create the refresh token DynamoDB table (token_hash key, user_id-index GSI, TTL on `ttl`).
Usage: AWS_REGION=us-east-1 REFRESH_TOKENS_TABLE=refresh_tokens python scripts/create_refresh_tokens_table.py
For DynamoDB Local also set DYNAMODB_ENDPOINT_URL=http://localhost:8000"""
from app.config import settings
from app.db.dynamodb import create_dynamodb_client, ensure_refresh_tokens_table


def main():
    client = create_dynamodb_client(settings)
    created = ensure_refresh_tokens_table(client, settings.refresh_tokens_table)
    if created:
        print(f"Created table {settings.refresh_tokens_table}")
    else:
        print(f"Table {settings.refresh_tokens_table} already exists")


if __name__ == "__main__":
    main()
