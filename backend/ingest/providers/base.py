"""
Abstract base class for all streaming platform clients.
Defines the contract every platform connector implements.
"""
from __future__ import annotations

import abc
import re
from typing import Any, Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import AuthenticationFailure, GamePulseError, PlatformAPIError
from shared.models.domain import GameCategory, LiveStream, StreamerInfo
from shared.models.enums import Platform
from shared.utils.http_client import ResilientGateway
from shared.utils.logging import get_logger

from ingest.normalization.aliases import PLATFORM_SEARCH_ALIASES
from ingest.providers.auth import CredentialManager

logger = get_logger(__name__)

_PUNCTUATION = re.compile(r"[:\-™®©]")
_WHITESPACE = re.compile(r"\s+")


def name_variants(name: str, platform_alias: Optional[str] = None) -> list[str]:
    """
    Category names to try, in priority order.

    The statically known platform display name comes first, then the raw
    name, the text before the first colon, and a punctuation-stripped form.
    Duplicates are dropped keeping the first occurrence.
    """
    candidates: list[str] = []
    if platform_alias:
        candidates.append(platform_alias)
    candidates.append(name)
    if ":" in name:
        candidates.append(name.split(":", 1)[0].strip())
    candidates.append(_WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", name)).strip())

    seen: set[str] = set()
    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            variants.append(candidate)
    return variants


class BasePlatformClient(abc.ABC):
    """
    Abstract base class for streaming platform clients.

    Subclasses implement the raw platform calls. The base class provides the
    name-variant category lookup, best-effort follower counts, the combined
    search operation and the shared JSON request helper.

    "Not found" is never an error: lookups return None and listings return
    an empty list. Transport, timeout, authentication and API errors
    propagate so the caller can decide to degrade the platform.
    """

    platform: Platform

    def __init__(
        self,
        gateway: ResilientGateway,
        credentials: CredentialManager,
        settings: Settings | None = None,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._settings = settings or get_settings()

    def name_variants(self, name: str) -> list[str]:
        alias = PLATFORM_SEARCH_ALIASES.get(self.platform, {}).get(name)
        return name_variants(name, alias)

    async def look_up_game_category(self, name: str) -> Optional[GameCategory]:
        """
        Return the first category the platform recognizes among the name variants.

        A failing variant is logged and the next one is tried, except for
        AuthenticationFailure, which is fatal for this cycle.
        """
        for variant in self.name_variants(name):
            try:
                category = await self._find_category(variant)
            except AuthenticationFailure:
                raise
            except GamePulseError as exc:
                logger.warning(
                    "category_lookup_failed",
                    platform=self.platform.value,
                    variant=variant,
                    error=str(exc),
                )
                continue
            if category is not None:
                logger.debug(
                    "category_found",
                    platform=self.platform.value,
                    query=name,
                    variant=variant,
                    category_id=category.category_id,
                )
                return category
        return None

    async def get_follower_count(self, streamer_id: str) -> int:
        """Best-effort follower total; any failure yields 0."""
        try:
            return max(await self._fetch_follower_count(streamer_id), 0)
        except Exception as exc:
            logger.debug(
                "follower_count_failed",
                platform=self.platform.value,
                streamer_id=streamer_id,
                error=str(exc),
            )
            return 0

    async def list_top_streamers(self, category_id: str, limit: int) -> list[StreamerInfo]:
        """Streamers of the category's live broadcasts, by viewer count descending."""
        streams = await self.list_live_streams(category_id, self._settings.summary_page_size)
        return rank_streamers(streams, limit)

    async def search_streams(
        self, name: str, limit: int, language: Optional[str] = None
    ) -> list[LiveStream]:
        """Live streams for a game name; empty when the platform does not know the game."""
        category = await self.look_up_game_category(name)
        if category is None:
            return []
        return await self.list_live_streams(category.category_id, limit, language)

    # ── Abstract methods (each platform implements these) ───────────────
    @abc.abstractmethod
    async def _find_category(self, name: str) -> Optional[GameCategory]:
        """Exact catalog lookup for a single name."""
        ...

    @abc.abstractmethod
    async def list_live_streams(
        self, category_id: str, limit: int, language: Optional[str] = None
    ) -> list[LiveStream]:
        ...

    @abc.abstractmethod
    async def list_popular_streams(self, limit: int) -> list[LiveStream]:
        """Platform-wide live streams, most watched first."""
        ...

    @abc.abstractmethod
    async def _fetch_follower_count(self, streamer_id: str) -> int:
        ...

    # ── Helpers ─────────────────────────────────────────────────────────
    async def _get_json(
        self,
        url: str,
        *,
        params: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        GET a JSON document through the gateway.

        Raises:
            PlatformAPIError: Non-2xx status or a body that is not JSON.
        """
        resp: httpx.Response = await self._gateway.request(
            "GET", url, platform=self.platform.value, params=params, headers=headers
        )
        if not resp.is_success:
            if resp.status_code == 401:
                # Token revoked or expired early; the next cycle refreshes
                self._credentials.invalidate(self.platform)
            raise PlatformAPIError(self.platform.value, resp.status_code, resp.reason_phrase)
        try:
            return resp.json()
        except ValueError as exc:
            raise PlatformAPIError(self.platform.value, resp.status_code, "invalid JSON") from exc


def rank_streamers(streams: list[LiveStream], limit: int) -> list[StreamerInfo]:
    """Distinct streamers ordered by their stream's viewer count, descending."""
    ranked = sorted(streams, key=lambda s: (-s.viewer_count, s.streamer.id))
    seen: set[tuple[Platform, str]] = set()
    streamers: list[StreamerInfo] = []
    for stream in ranked:
        if stream.streamer.identity in seen:
            continue
        seen.add(stream.streamer.identity)
        streamers.append(stream.streamer)
        if len(streamers) >= limit:
            break
    return streamers
