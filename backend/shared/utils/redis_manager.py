"""
Redis connection manager for GamePulse.
Provides the async connection pool, expiring key/value helpers, and the
get-or-compute memoization used by the catalog and aggregation layers.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as aioredis
from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.errors import CacheUnavailable
from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# ── Key namespaces ──────────────────────────────────────────────────────
ALIAS_KEY = "alias:name:{alias}"
IGDB_SEARCH_KEY = "igdb:search:{query}"
IGDB_NAMES_KEY = "igdb:names:{query}"
SUMMARY_KEY = "streaming:summary:{game}:{catalog_id}"
SEARCH_KEY = "streaming:search:{game}:{platform}:{limit}:{language}"
TOP_GAMES_KEY = "streaming:top-games:{limit}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages the async Redis connection pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        # Verify
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Key/value ───────────────────────────────────────────────────────
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise CacheUnavailable("get", str(exc)) from exc

    async def set_with_expiry(self, key: str, value: str, ttl_s: int) -> None:
        """Store a value with a TTL. Last write wins."""
        try:
            await self.client.set(key, value, ex=ttl_s)
        except RedisError as exc:
            raise CacheUnavailable("set", str(exc)) from exc

    async def get_or_compute(
        self,
        key: str,
        ttl_s: int,
        compute: Callable[[], Awaitable[T]],
        adapter: TypeAdapter[T],
    ) -> T:
        """
        Return the cached value for key, or compute, store and return it.

        A None result is returned to the caller but never stored, so a miss is
        retried on the next call. A cached payload that no longer validates is
        treated as a miss and overwritten. A ttl of zero or less disables
        memoization.
        """
        if ttl_s <= 0:
            return await compute()

        cached = await self.get(key)
        if cached is not None:
            try:
                return adapter.validate_json(cached)
            except ValidationError as exc:
                logger.warning("cache_payload_invalid", key=key, errors=exc.error_count())

        value = await compute()
        if value is not None:
            await self.set_with_expiry(key, adapter.dump_json(value).decode("utf-8"), ttl_s)
        return value

    # ── Alias mapping ───────────────────────────────────────────────────
    async def get_alias(self, alias: str) -> Optional[str]:
        return await self.get(_fmt(ALIAS_KEY, alias=alias.lower()))

    async def set_alias(self, alias: str, canonical: str, ttl_s: int) -> None:
        await self.set_with_expiry(_fmt(ALIAS_KEY, alias=alias.lower()), canonical, ttl_s)
