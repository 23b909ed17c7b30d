# guitarshare/repositories/guitar_repository.py
# Read-only access to guitar records written by the catalog service

from __future__ import annotations

import json
from typing import Any

from redis.exceptions import RedisError

from guitarshare.constants import GUITAR_KEY
from guitarshare.db.redis import get_redis
from guitarshare.middleware.error_handler import StorageError


class GuitarRepository:
    """Guitar record source. Never writes."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client if self._client is not None else get_redis()

    async def get(self, owner_id: str, guitar_id: str) -> dict[str, Any] | None:
        """Load a guitar by owner-scoped key. Returns None if not found."""
        try:
            raw = await self.client.get(GUITAR_KEY.format(owner_id=owner_id, guitar_id=guitar_id))
        except RedisError as e:
            raise StorageError("Failed to load guitar") from e
        if raw is None:
            return None
        try:
            guitar = json.loads(raw)
        except ValueError as e:
            raise StorageError("Corrupt guitar record", details={"reason": str(e)}) from e
        if not isinstance(guitar, dict):
            raise StorageError("Corrupt guitar record", details={"reason": "not an object"})
        # Ownership is part of the key, but records also carry it
        if guitar.get("userId", owner_id) != owner_id:
            return None
        return guitar
