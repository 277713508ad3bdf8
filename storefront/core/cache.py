"""
Draft cache backed by Redis
Keeps checkout drafts (address, cart, recent promo attempts) between visits
"""

import redis.asyncio as redis
from typing import Optional, Any, Dict, Tuple, Union
import json
import time
from datetime import timedelta
import logging

from .config import settings

logger = logging.getLogger(__name__)

Expiry = Optional[Union[int, timedelta]]

def _seconds(expire: Expiry) -> Optional[int]:
    if isinstance(expire, timedelta):
        return int(expire.total_seconds())
    return expire

class RedisCache:
    """
    JSON draft store on Redis

    Until connect() reaches a server, drafts live in process memory with the
    same expiry semantics. Values are stored serialized either way, so
    callers always get a fresh copy back.
    """

    def __init__(self, namespace: str = "storefront"):
        self.namespace = namespace
        self.redis_client: Optional[redis.Redis] = None
        self._memory: Dict[str, Tuple[str, Optional[float]]] = {}

    @property
    def is_connected(self) -> bool:
        return self.redis_client is not None

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def connect(self):
        """Connect to Redis; on failure drafts stay in memory"""
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=settings.REDIS_DECODE_RESPONSES,
            max_connections=settings.REDIS_MAX_CONNECTIONS
        )
        try:
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis unavailable at {settings.REDIS_URL}, keeping drafts in memory: {e}")
            await client.close()
            return
        self.redis_client = client
        logger.info("Redis draft store connected")

    async def disconnect(self):
        if self.redis_client is not None:
            await self.redis_client.close()
            self.redis_client = None
            logger.info("Redis draft store closed")

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._memory.get(key)
        if entry is None:
            return None
        payload, deadline = entry
        if deadline is not None and time.monotonic() >= deadline:
            del self._memory[key]
            return None
        return payload

    async def get(self, key: str) -> Optional[Any]:
        """Load a draft; missing, expired or unreadable drafts are None"""
        key = self._key(key)
        try:
            if self.redis_client is not None:
                payload = await self.redis_client.get(key)
            else:
                payload = self._memory_get(key)
            return json.loads(payload) if payload else None
        except Exception as e:
            logger.error(f"Draft read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, expire: Expiry = None) -> bool:
        """Store a JSON-serializable draft, optionally expiring"""
        key = self._key(key)
        seconds = _seconds(expire)
        try:
            payload = json.dumps(value, default=str)
            if self.redis_client is not None:
                return bool(await self.redis_client.set(key, payload, ex=seconds))
            deadline = time.monotonic() + seconds if seconds else None
            self._memory[key] = (payload, deadline)
            return True
        except Exception as e:
            logger.error(f"Draft write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        key = self._key(key)
        try:
            if self.redis_client is not None:
                return bool(await self.redis_client.delete(key))
            return self._memory.pop(key, None) is not None
        except Exception as e:
            logger.error(f"Draft delete failed for {key}: {e}")
            return False

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

# Global cache instance
cache = RedisCache()
