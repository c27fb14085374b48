"""
Shared fixtures: settings without env/.env influence, an in-memory stand-in
for the durable cache, and scriptable platform clients.
"""
from __future__ import annotations

from typing import Callable, Optional

import httpx
import pytest

from shared.config import Settings
from shared.errors import AuthenticationFailure, CacheUnavailable
from shared.models.domain import GameCategory, LiveStream, StreamerInfo
from shared.models.enums import Platform
from shared.utils.http_client import ResilientGateway
from shared.utils.redis_manager import RedisManager

from ingest.providers.auth import CredentialManager
from ingest.providers.base import BasePlatformClient


def make_settings(**overrides) -> Settings:
    defaults = dict(
        twitch_client_id="twitch-id",
        twitch_client_secret="twitch-secret",
        enrichment_enabled=False,
        metrics_enabled=False,
    )
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


class InMemoryCache(RedisManager):
    """RedisManager backed by a dict. TTLs are recorded, not enforced."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        super().__init__(settings)
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.reads = 0

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    async def get(self, key: str) -> Optional[str]:
        self.reads += 1
        return self.store.get(key)

    async def set_with_expiry(self, key: str, value: str, ttl_s: int) -> None:
        self.store[key] = value
        self.ttls[key] = ttl_s


class UnreachableCache(RedisManager):
    """Every durable-cache call fails as if Redis were down."""

    async def get(self, key: str) -> Optional[str]:
        raise CacheUnavailable("get", "connection refused")

    async def set_with_expiry(self, key: str, value: str, ttl_s: int) -> None:
        raise CacheUnavailable("set", "connection refused")


@pytest.fixture
def cache(settings: Settings) -> InMemoryCache:
    return InMemoryCache(settings)


def make_stream(
    platform: Platform,
    stream_id: str,
    viewers: int,
    game_name: str,
    game_id: Optional[str] = "g1",
    streamer_id: Optional[str] = None,
) -> LiveStream:
    streamer_id = streamer_id or f"{platform.value}-streamer-{stream_id}"
    return LiveStream(
        id=stream_id,
        platform=platform,
        streamer=StreamerInfo(
            id=streamer_id,
            platform=platform,
            display_name=streamer_id,
            login_name=streamer_id,
        ),
        title=f"stream {stream_id}",
        game_name=game_name,
        game_id=game_id,
        viewer_count=viewers,
    )


class FakePlatformClient(BasePlatformClient):
    """
    Platform client with canned categories and streams.

    categories maps a lookup name to the category the platform knows it by;
    streams maps a category id to its live streams. Setting error makes every
    platform call raise it.
    """

    def __init__(
        self,
        platform: Platform,
        settings: Settings,
        categories: Optional[dict[str, GameCategory]] = None,
        streams: Optional[dict[str, list[LiveStream]]] = None,
        popular: Optional[list[LiveStream]] = None,
        followers: Optional[dict[str, int]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        super().__init__(gateway=None, credentials=CredentialManager({}, settings), settings=settings)
        self.platform = platform
        self.categories = categories or {}
        self.streams = streams or {}
        self.popular = popular or []
        self.followers = followers or {}
        self.error = error
        self.calls: list[str] = []

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    async def _find_category(self, name: str) -> Optional[GameCategory]:
        self._check(f"category:{name}")
        return self.categories.get(name)

    async def list_live_streams(
        self, category_id: str, limit: int, language: Optional[str] = None
    ) -> list[LiveStream]:
        self._check(f"streams:{category_id}")
        streams = self.streams.get(category_id, [])
        if language:
            streams = [s for s in streams if s.language in (None, language)]
        return streams[:limit]

    async def list_popular_streams(self, limit: int) -> list[LiveStream]:
        self._check("popular")
        return self.popular[:limit]

    async def _fetch_follower_count(self, streamer_id: str) -> int:
        self._check(f"followers:{streamer_id}")
        return self.followers[streamer_id]


def category(platform: Platform, category_id: str, name: str) -> GameCategory:
    return GameCategory(platform=platform, category_id=category_id, name=name)


async def started_gateway(
    settings: Settings, handler: Callable[[httpx.Request], httpx.Response]
) -> ResilientGateway:
    gateway = ResilientGateway(settings, transport=httpx.MockTransport(handler))
    await gateway.start()
    return gateway


class StaticCredentials(CredentialManager):
    """Credential manager that always holds a valid token for the given platforms."""

    def __init__(self, *platforms: Platform) -> None:
        super().__init__({}, make_settings())
        self.platforms = set(platforms)
        self.invalidated: list[Platform] = []
        self.token_requests = 0

    def has_source(self, platform: Platform) -> bool:
        return platform in self.platforms

    def client_id(self, platform: Platform) -> str:
        return f"{platform.value}-client"

    async def get_token(self, platform: Platform) -> str:
        self.token_requests += 1
        if platform not in self.platforms:
            raise AuthenticationFailure(platform.value, "no token source registered")
        return f"{platform.value}-token"

    def invalidate(self, platform: Platform) -> None:
        self.invalidated.append(platform)
