"""
Process-wide DynamoDB client for the refresh token store.
Created once in app lifespan and handed to stores through dependencies.
"""
from __future__ import annotations

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.config import Settings, settings

logger = logging.getLogger(__name__)

USER_ID_INDEX = "user_id-index"

_dynamodb_client = None


def create_dynamodb_client(cfg: Settings = settings):
    """boto3 DynamoDB client whose timeouts bound every store call."""
    return boto3.client(
        "dynamodb",
        region_name=cfg.aws_region,
        endpoint_url=cfg.dynamodb_endpoint_url or None,
        config=Config(
            connect_timeout=cfg.store_connect_timeout_seconds,
            read_timeout=cfg.store_read_timeout_seconds,
            retries={"max_attempts": cfg.store_max_attempts, "mode": "standard"},
        ),
    )


def get_dynamodb_client():
    """Return the shared client. Must be initialized via init_dynamodb() first."""
    if _dynamodb_client is None:
        raise RuntimeError("DynamoDB client not initialized; ensure app lifespan has run init_dynamodb().")
    return _dynamodb_client


def init_dynamodb(client=None):
    """Create (or install a given) shared client. Call from app lifespan startup."""
    global _dynamodb_client
    if client is not None:
        _dynamodb_client = client
    elif _dynamodb_client is None:
        _dynamodb_client = create_dynamodb_client()
    return _dynamodb_client


def close_dynamodb() -> None:
    global _dynamodb_client
    if _dynamodb_client is not None:
        _dynamodb_client.close()
        _dynamodb_client = None


def ensure_refresh_tokens_table(client, table_name: str) -> bool:
    """Create the refresh token table, its user_id index and TTL if missing. Returns True if created."""
    try:
        client.describe_table(TableName=table_name)
        return False
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
            raise
    client.create_table(
        TableName=table_name,
        AttributeDefinitions=[
            {"AttributeName": "token_hash", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
        ],
        KeySchema=[{"AttributeName": "token_hash", "KeyType": "HASH"}],
        GlobalSecondaryIndexes=[
            {
                "IndexName": USER_ID_INDEX,
                "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)
    client.update_time_to_live(
        TableName=table_name,
        TimeToLiveSpecification={"Enabled": True, "AttributeName": "ttl"},
    )
    logger.info("Created DynamoDB table %s", table_name)
    return True
