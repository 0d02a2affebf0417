"""
Search Result Cache

Optional Redis cache for product searches and aggregations. Keys are
derived from a SHA-256 digest of the canonical JSON query; values are JSON
with a TTL. Redis failures are logged and treated as a miss, so the cache
never fails a request.
"""
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

SEARCH_PREFIX = "search"
AGGREGATION_PREFIX = "aggs"


def cache_key(prefix: str, index: str, query: Any) -> str:
    canonical = json.dumps(query, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}:{index}:{digest}"


class SearchCache:
    def __init__(
        self,
        redis_client: "redis.Redis",
        search_ttl_seconds: int = 300,
        aggregation_ttl_seconds: int = 1800,
    ):
        self.redis_client = redis_client
        self.search_ttl_seconds = search_ttl_seconds
        self.aggregation_ttl_seconds = aggregation_ttl_seconds

    @classmethod
    def from_url(
        cls,
        redis_url: str,
        search_ttl_seconds: int = 300,
        aggregation_ttl_seconds: int = 1800,
    ) -> "SearchCache":
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5
        )
        return cls(client, search_ttl_seconds, aggregation_ttl_seconds)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache read failed: key={key}, error={e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: key={key}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self.redis_client.set(key, json.dumps(value, default=str), ex=ttl_seconds)
        except redis.RedisError as e:
            logger.error(f"Cache write failed: key={key}, error={e}")

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        should_cache: Callable[[Any], bool] = lambda value: value is not None,
    ) -> Any:
        """Return the cached value for `key`, or fetch, store and return a fresh one."""
        cached = await self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: key={key}")
            return cached

        value = await fetch()
        if should_cache(value):
            await self.set(key, value, ttl_seconds)
        return value

    async def close(self) -> None:
        await self.redis_client.aclose()
