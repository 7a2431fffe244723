"""
Local Persistent Storage

Per-origin key/value storage for anonymous session state, backed by Redis.

Keys used by the storefront:
- cart          JSON list of cart lines
- coupon        JSON coupon record
- htk-currency  selected display currency code
- htk-language  selected language code

Storage failures never block shopping: reads return None and writes are
dropped, both with an error log (fail open).
"""

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

import config

logger = logging.getLogger(__name__)


class LocalStorage:

    def __init__(self, redis: Redis, namespace: str | None = None):
        """
        Args:
            redis: Redis client
            namespace: Storage origin; keys of different namespaces never collide
        """
        self.redis = redis
        self.namespace = namespace or config.LOCAL_STORAGE_NAMESPACE

    def _key(self, key: str) -> str:
        # Redis key: storefront:{namespace}:{key}
        return f"storefront:{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        try:
            value = await self.redis.get(self._key(key))
        except RedisError as e:
            logger.error(f"Local storage read failed for '{key}': {e}")
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(self._key(key), value)
        except RedisError as e:
            logger.error(f"Local storage write failed for '{key}': {e}")

    async def remove(self, key: str) -> None:
        try:
            await self.redis.delete(self._key(key))
        except RedisError as e:
            logger.error(f"Local storage delete failed for '{key}': {e}")

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Read and decode a JSON value; malformed data is logged and ignored."""
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed local storage value for '{key}': {e}")
            return default

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value))
