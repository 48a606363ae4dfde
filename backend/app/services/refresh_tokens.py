"""
Refresh token store on DynamoDB.

Records are keyed by the SHA-256 of the raw token; the raw token is never
written. A record is active only while revoked is false and expires_at is in
the future. The table's native TTL only reclaims storage, so both conditions
are checked on every read. State changes are conditional per-record updates;
bulk operations fan out those updates concurrently with no cross-record
transaction and report what happened to each record.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from app.core.auth import hash_refresh_token
from app.core.errors import StoreUnavailable
from app.db.dynamodb import USER_ID_INDEX
from app.models.refresh_token import BulkRevocation, RefreshTokenPatch, RefreshTokenRecord

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_TOKEN_TTL = timedelta(days=7)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

_NOT_REVOKED = {":not_revoked": {"BOOL": False}}


class _ConditionFailed(Exception):
    """Conditional write rejected: the record is missing or not in the expected state."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_attrs(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _from_attrs(attrs: dict[str, Any]) -> dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in attrs.items()}


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class RefreshTokenStore:
    def __init__(
        self,
        client,
        table_name: str,
        *,
        token_ttl: timedelta = DEFAULT_REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._table = table_name
        self._token_ttl = token_ttl
        self._clock = clock

    async def _call(self, operation: str, **kwargs) -> dict[str, Any]:
        """Run one boto3 call off the event loop; map failures to StoreUnavailable."""
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, TableName=self._table, **kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                raise _ConditionFailed() from e
            logger.error("DynamoDB %s on %s failed: %s", operation, self._table, code)
            raise StoreUnavailable() from e
        except BotoCoreError as e:
            logger.error("DynamoDB %s on %s failed: %s", operation, self._table, type(e).__name__)
            raise StoreUnavailable() from e

    async def create(self, user_id: int | str, raw_token: str) -> RefreshTokenRecord:
        now = self._clock()
        record = RefreshTokenRecord(
            id=str(uuid.uuid4()),
            token_hash=hash_refresh_token(raw_token),
            user_id=str(user_id),
            created_at=now,
            last_used_at=now,
            expires_at=now + self._token_ttl,
            revoked=False,
        )
        try:
            await self._call(
                "put_item",
                Item=_to_attrs(record.to_item()),
                ConditionExpression="attribute_not_exists(token_hash)",
            )
        except _ConditionFailed as e:
            # Same hash already stored: refuse to overwrite (it may be revoked)
            logger.error("Refresh token for user %s collides with a stored token", record.user_id)
            raise StoreUnavailable() from e
        return record

    async def find_active(self, raw_token: str) -> RefreshTokenRecord | None:
        """Active record for the token, or None if absent, revoked or expired (not distinguished)."""
        resp = await self._call(
            "get_item",
            Key={"token_hash": {"S": hash_refresh_token(raw_token)}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        if not item:
            return None
        record = RefreshTokenRecord.from_item(_from_attrs(item))
        return record if record.is_active(self._clock()) else None

    async def _apply_patch(
        self,
        token_hash: str,
        patch: RefreshTokenPatch,
        condition: str,
        condition_values: dict[str, Any] | None = None,
    ) -> None:
        values = patch.values()
        if not values:
            raise ValueError("Empty refresh token patch")
        names = {f"#{name}": name for name in values}
        expr_values = {f":{name}": _serializer.serialize(value) for name, value in values.items()}
        expr_values.update(condition_values or {})
        await self._call(
            "update_item",
            Key={"token_hash": {"S": token_hash}},
            UpdateExpression="SET " + ", ".join(f"#{name} = :{name}" for name in values),
            ConditionExpression=condition,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=expr_values,
        )

    async def touch_last_used(self, raw_token: str) -> None:
        """Best effort: failures are logged and never raised."""
        try:
            await self._apply_patch(
                hash_refresh_token(raw_token),
                RefreshTokenPatch(last_used_at=self._clock()),
                condition="attribute_exists(token_hash)",
            )
        except (_ConditionFailed, StoreUnavailable) as e:
            logger.warning("Refresh token last_used_at not updated: %s", type(e).__name__)

    async def _revoke_hash(self, token_hash: str) -> bool:
        """Flip revoked to true. True only for the caller whose write did the flip."""
        try:
            await self._apply_patch(
                token_hash,
                RefreshTokenPatch(revoked=True),
                condition="attribute_exists(token_hash) AND #revoked = :not_revoked",
                condition_values=_NOT_REVOKED,
            )
        except _ConditionFailed:
            return False
        return True

    async def revoke_one(self, raw_token: str) -> bool:
        """Revoke one token. Unknown or already revoked tokens return False."""
        return await self._revoke_hash(hash_refresh_token(raw_token))

    async def _unrevoked_for_user(self, user_id: int | str) -> list[RefreshTokenRecord]:
        kwargs: dict[str, Any] = {
            "IndexName": USER_ID_INDEX,
            "KeyConditionExpression": "#user_id = :user_id",
            "FilterExpression": "#revoked = :not_revoked",
            "ExpressionAttributeNames": {"#user_id": "user_id", "#revoked": "revoked"},
            "ExpressionAttributeValues": {":user_id": {"S": str(user_id)}, **_NOT_REVOKED},
        }
        records: list[RefreshTokenRecord] = []
        while True:
            resp = await self._call("query", **kwargs)
            records.extend(RefreshTokenRecord.from_item(_from_attrs(item)) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return records
            kwargs["ExclusiveStartKey"] = last_key

    async def _revoke_many(self, records: Iterable[RefreshTokenRecord], user_id: int | str) -> BulkRevocation:
        records = list(records)
        results = await asyncio.gather(
            *(self._revoke_hash(record.token_hash) for record in records),
            return_exceptions=True,
        )
        outcome = BulkRevocation()
        for result in results:
            if isinstance(result, Exception):
                outcome.failed += 1
                outcome.errors.append(result)
            elif result:
                outcome.revoked += 1
            else:
                outcome.skipped += 1
        if outcome.failed:
            logger.warning(
                "Partial revocation for user %s: %d revoked, %d skipped, %d failed",
                user_id,
                outcome.revoked,
                outcome.skipped,
                outcome.failed,
            )
        return outcome

    async def revoke_all_for_user(self, user_id: int | str) -> BulkRevocation:
        """Revoke every non-revoked record of the user. Safe to re-run."""
        records = await self._unrevoked_for_user(user_id)
        return await self._revoke_many(records, user_id)

    async def list_active_for_user(self, user_id: int | str) -> list[RefreshTokenRecord]:
        """Active records of the user, newest first."""
        now = self._clock()
        records = [r for r in await self._unrevoked_for_user(user_id) if r.is_active(now)]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def limit_active_for_user(self, user_id: int | str, max_active: int) -> BulkRevocation:
        """
        Make room for one new session: keep the newest max_active - 1 active records
        and revoke the rest. Does nothing while the user has fewer than max_active.
        """
        if max_active < 1:
            raise ValueError("max_active must be at least 1")
        records = await self.list_active_for_user(user_id)
        if len(records) < max_active:
            return BulkRevocation()
        return await self._revoke_many(records[max_active - 1 :], user_id)

    async def _delete_expired(self, token_hash: str, now_iso: str) -> bool:
        try:
            await self._call(
                "delete_item",
                Key={"token_hash": {"S": token_hash}},
                ConditionExpression="#expires_at < :now",
                ExpressionAttributeNames={"#expires_at": "expires_at"},
                ExpressionAttributeValues={":now": {"S": now_iso}},
            )
        except _ConditionFailed:
            return False
        return True

    async def sweep_expired(self, now: datetime | None = None) -> int:
        """Physically delete records whose expires_at is before now. Returns deleted count."""
        now_iso = _iso(now or self._clock())
        kwargs: dict[str, Any] = {
            "FilterExpression": "#expires_at < :now",
            "ProjectionExpression": "#token_hash",
            "ExpressionAttributeNames": {"#expires_at": "expires_at", "#token_hash": "token_hash"},
            "ExpressionAttributeValues": {":now": {"S": now_iso}},
        }
        deleted = 0
        failed = 0
        while True:
            resp = await self._call("scan", **kwargs)
            hashes = [item["token_hash"]["S"] for item in resp.get("Items", [])]
            results = await asyncio.gather(
                *(self._delete_expired(h, now_iso) for h in hashes),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, Exception):
                    failed += 1
                elif result:
                    deleted += 1
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        if failed:
            logger.warning("Expired refresh token sweep: %d deleted, %d failed", deleted, failed)
        else:
            logger.info("Expired refresh token sweep: %d deleted", deleted)
        return deleted
