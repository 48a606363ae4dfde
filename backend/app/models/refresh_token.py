"""Refresh token records as stored in the DynamoDB refresh token table."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class RefreshTokenRecord:
    id: str
    token_hash: str
    user_id: str
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime
    revoked: bool = False

    def is_active(self, now: datetime | None = None) -> bool:
        """Not revoked and not past expires_at. The table TTL is not relied on."""
        now = now or datetime.now(timezone.utc)
        return not self.revoked and self.expires_at > now

    def to_item(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token_hash": self.token_hash,
            "user_id": self.user_id,
            "created_at": _iso(self.created_at),
            "last_used_at": _iso(self.last_used_at),
            "expires_at": _iso(self.expires_at),
            # Epoch seconds for DynamoDB TTL (storage reclamation only)
            "ttl": int(self.expires_at.timestamp()),
            "revoked": self.revoked,
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> RefreshTokenRecord:
        return cls(
            id=str(item["id"]),
            token_hash=str(item["token_hash"]),
            user_id=str(item["user_id"]),
            created_at=_parse_iso(item["created_at"]),
            last_used_at=_parse_iso(item.get("last_used_at") or item["created_at"]),
            expires_at=_parse_iso(item["expires_at"]),
            revoked=bool(item.get("revoked", False)),
        )


@dataclass
class RefreshTokenPatch:
    """Partial update of a refresh token record.

    Only these fields can be written after creation; update expressions are
    built from the dataclass fields, never from caller-supplied names.
    """

    last_used_at: datetime | None = None
    revoked: bool | None = None

    def __post_init__(self) -> None:
        if self.revoked is False:
            raise ValueError("revoked can only be set to True")

    def values(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = _iso(value) if isinstance(value, datetime) else value
        return out


@dataclass
class BulkRevocation:
    """Outcome of revoking many records without a cross-record transaction."""

    revoked: int = 0
    skipped: int = 0  # already revoked by a concurrent writer
    failed: int = 0
    errors: list[Exception] = field(default_factory=list, repr=False)

    @property
    def attempted(self) -> int:
        return self.revoked + self.skipped + self.failed

    @property
    def complete(self) -> bool:
        return self.failed == 0
