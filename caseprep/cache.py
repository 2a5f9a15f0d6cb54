import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from .config import REDIS_URL

logger = logging.getLogger(__name__)


class Cache:
    """JSON cache over Redis. With no client every call is a miss."""

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "caseprep"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get_json(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = await self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any, ttl: int) -> None:
        if self.client is None:
            return
        try:
            await self.client.setex(self._key(key), ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        if self.client is None:
            return
        try:
            await self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")


cache = Cache(redis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None)


def get_cache() -> Cache:
    return cache
