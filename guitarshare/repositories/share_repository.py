# guitarshare/repositories/share_repository.py
# Repository for share records in Redis

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError as PydanticValidationError
from redis.exceptions import RedisError, WatchError

from guitarshare.constants import OWNER_SHARES_KEY, SHARE_INDEX_KEY, SHARE_KEY
from guitarshare.db.redis import get_redis
from guitarshare.middleware.error_handler import StorageError
from guitarshare.models.share import Share

# Optimistic-lock retries for update before giving up
UPDATE_MAX_ATTEMPTS = 5


def _share_key(owner_id: str, share_id: str) -> str:
    return SHARE_KEY.format(owner_id=owner_id, share_id=share_id)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Cannot encode {type(value).__name__}")


def _encode_fields(fields: dict[str, Any]) -> dict[str, str]:
    """One JSON document per hash field so each field is written on its own."""
    return {name: json.dumps(value, default=_json_default) for name, value in fields.items()}


def _decode_share(raw: dict[str, str]) -> Share | None:
    if not raw:
        return None
    try:
        return Share.model_validate({name: json.loads(value) for name, value in raw.items()})
    except (ValueError, PydanticValidationError) as e:
        raise StorageError("Corrupt share record", details={"reason": str(e)}) from e


class ShareRepository:
    """Share persistence.

    A share is a Redis hash ``share:<owner>:<share>``. ``update`` only writes
    the fields it is given, so analytics writes never touch owner-set fields.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client if self._client is not None else get_redis()

    async def get(self, owner_id: str, share_id: str) -> Share | None:
        try:
            raw = await self.client.hgetall(_share_key(owner_id, share_id))
        except RedisError as e:
            raise StorageError("Failed to load share") from e
        return _decode_share(raw)

    async def put(self, share: Share) -> None:
        key = _share_key(share.owner_id, share.share_id)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=_encode_fields(share.model_dump(mode="json")))
                pipe.set(SHARE_INDEX_KEY.format(share_id=share.share_id), share.owner_id)
                pipe.sadd(OWNER_SHARES_KEY.format(owner_id=share.owner_id), share.share_id)
                await pipe.execute()
        except RedisError as e:
            raise StorageError("Failed to save share") from e

    async def update(self, owner_id: str, share_id: str, fields: dict[str, Any]) -> Share | None:
        """Write the given fields and return the stored record, or None if it is gone.

        The write only happens while the record still exists: a late analytics
        or processing write must never bring back a deleted share.
        """
        key = _share_key(owner_id, share_id)
        encoded = _encode_fields(fields)
        try:
            for _ in range(UPDATE_MAX_ATTEMPTS):
                async with self.client.pipeline(transaction=True) as pipe:
                    await pipe.watch(key)
                    if not await pipe.exists(key):
                        return None
                    pipe.multi()
                    pipe.hset(key, mapping=encoded)
                    pipe.hgetall(key)
                    try:
                        _, raw = await pipe.execute()
                    except WatchError:
                        # Key changed since WATCH; re-check existence
                        continue
                return _decode_share(raw)
        except RedisError as e:
            raise StorageError("Failed to update share") from e
        raise StorageError("Share update kept conflicting", details={"share_id": share_id})

    async def delete(self, owner_id: str, share_id: str) -> None:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(_share_key(owner_id, share_id))
                pipe.delete(SHARE_INDEX_KEY.format(share_id=share_id))
                pipe.srem(OWNER_SHARES_KEY.format(owner_id=owner_id), share_id)
                await pipe.execute()
        except RedisError as e:
            raise StorageError("Failed to delete share") from e

    async def query_by_owner(self, owner_id: str) -> list[Share]:
        try:
            share_ids = await self.client.smembers(OWNER_SHARES_KEY.format(owner_id=owner_id))
            if not share_ids:
                return []
            async with self.client.pipeline(transaction=False) as pipe:
                for share_id in share_ids:
                    pipe.hgetall(_share_key(owner_id, share_id))
                rows = await pipe.execute()
        except RedisError as e:
            raise StorageError("Failed to list shares") from e
        # Index entries can outlive a record deleted by hand; skip those
        return [share for share in (_decode_share(raw) for raw in rows) if share is not None]

    async def query_by_public_id(self, share_id: str) -> list[Share]:
        """Secondary lookup by the public share id."""
        try:
            owner_id = await self.client.get(SHARE_INDEX_KEY.format(share_id=share_id))
        except RedisError as e:
            raise StorageError("Failed to look up share") from e
        if owner_id is None:
            return []
        share = await self.get(owner_id, share_id)
        return [share] if share is not None else []

    async def ping(self) -> bool:
        return bool(await self.client.ping())
