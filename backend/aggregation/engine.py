"""
Cross-platform aggregation.

Fans out to every platform client concurrently, resolves raw platform game
names to canonical names, and merges the per-platform results. A platform
that fails is reported as zero for the pass; only an unreachable durable
cache surfaces to the caller.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import TypeAdapter

from shared.config import Settings, get_settings
from shared.errors import CacheUnavailable
from shared.models.domain import (
    GameStreamingSummary,
    LiveStream,
    PlatformBreakdown,
    PlatformTotals,
    StreamerInfo,
    TopGameEntry,
)
from shared.models.enums import AliasSource, Platform, PlatformFilter
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    AGGREGATION_LATENCY,
    AGGREGATION_PASSES,
    PLATFORM_FAILURES,
    atrack_latency,
)
from shared.utils.redis_manager import SEARCH_KEY, SUMMARY_KEY, TOP_GAMES_KEY, RedisManager

from ingest.normalization.resolver import GameResolver
from ingest.normalization.similarity import normalize
from ingest.providers.base import BasePlatformClient, rank_streamers

logger = get_logger(__name__)

R = TypeVar("R")

_summary_adapter = TypeAdapter(GameStreamingSummary)
_streams_adapter = TypeAdapter(list[LiveStream])
_top_games_adapter = TypeAdapter(list[TopGameEntry])


def rank_streams(streams: list[LiveStream]) -> list[LiveStream]:
    """Viewer count descending; ties broken by platform then stream id."""
    return sorted(streams, key=lambda s: (-s.viewer_count, s.platform.value, s.id))


def merge_top_game_entries(a: TopGameEntry, b: TopGameEntry) -> TopGameEntry:
    platforms = dict(a.platforms)
    for platform, totals in b.platforms.items():
        current = platforms.get(platform, PlatformTotals())
        platforms[platform] = PlatformTotals(
            viewers=current.viewers + totals.viewers,
            streams=current.streams + totals.streams,
        )
    return TopGameEntry(
        game_name=a.game_name,
        viewers=a.viewers + b.viewers,
        streams=a.streams + b.streams,
        platforms=platforms,
    )


class AggregationEngine:
    """Summaries, searches and rankings across all configured platforms."""

    def __init__(
        self,
        clients: dict[Platform, BasePlatformClient],
        resolver: GameResolver,
        cache: RedisManager,
        settings: Settings | None = None,
    ) -> None:
        self._clients = clients
        self._resolver = resolver
        self._cache = cache
        self._settings = settings or get_settings()

    @property
    def resolver(self) -> GameResolver:
        return self._resolver

    # ── Public operations ───────────────────────────────────────────────
    async def summarize(
        self, game_name: str, catalog_id: Optional[int] = None
    ) -> GameStreamingSummary:
        """
        Per-platform and total viewership for one game.

        Raises:
            CacheUnavailable: The durable cache is unreachable.
        """
        canonical = await self._resolver.resolve(game_name)
        if not canonical:
            return GameStreamingSummary.assemble(game_name.strip(), {}, catalog_id)

        key = SUMMARY_KEY.format(game=normalize(canonical), catalog_id=catalog_id or "")
        return await self._cache.get_or_compute(
            key,
            self._settings.summary_cache_ttl_s,
            lambda: self._summarize(canonical, catalog_id),
            _summary_adapter,
        )

    async def search_live(
        self,
        game_name: str,
        platform_filter: PlatformFilter | str = PlatformFilter.ALL,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> list[LiveStream]:
        """
        Live streams for one game, most watched first, at most limit entries.

        Raises:
            CacheUnavailable: The durable cache is unreachable.
        """
        platform_filter = PlatformFilter(platform_filter)
        limit = self._settings.search_default_limit if limit is None else limit
        canonical = await self._resolver.resolve(game_name)
        if not canonical or limit <= 0:
            return []

        key = SEARCH_KEY.format(
            game=normalize(canonical),
            platform=platform_filter.value,
            limit=limit,
            language=language or "",
        )
        return await self._cache.get_or_compute(
            key,
            self._settings.search_cache_ttl_s,
            lambda: self._search(canonical, platform_filter, limit, language),
            _streams_adapter,
        )

    async def top_games(self, limit: Optional[int] = None) -> list[TopGameEntry]:
        """
        Most watched games right now, merged across platforms by canonical name.

        Raises:
            CacheUnavailable: The durable cache is unreachable.
        """
        limit = self._settings.top_games_count if limit is None else limit
        if limit <= 0:
            return []
        return await self._cache.get_or_compute(
            TOP_GAMES_KEY.format(limit=limit),
            self._settings.top_games_cache_ttl_s,
            lambda: self._top_games(limit),
            _top_games_adapter,
        )

    # ── Fan-out ─────────────────────────────────────────────────────────
    async def _fan_out(
        self,
        operation: str,
        platforms: list[Platform],
        task: Callable[[Platform], Awaitable[R]],
        empty: Callable[[], R],
    ) -> dict[Platform, R]:
        """
        Run task for every platform concurrently and wait for all of them.

        A failed branch yields empty() for that platform. CacheUnavailable is
        re-raised after every branch has finished.
        """
        results = await asyncio.gather(*(task(p) for p in platforms), return_exceptions=True)
        collected: dict[Platform, R] = {}
        cache_error: Optional[CacheUnavailable] = None
        for platform, result in zip(platforms, results):
            if isinstance(result, CacheUnavailable):
                cache_error = result
            elif isinstance(result, Exception):
                PLATFORM_FAILURES.labels(platform=platform.value, error=type(result).__name__).inc()
                logger.warning(
                    "platform_degraded",
                    operation=operation,
                    platform=platform.value,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                collected[platform] = empty()
            elif isinstance(result, BaseException):
                raise result
            else:
                collected[platform] = result
        if cache_error is not None:
            raise cache_error
        return collected

    # ── Summary ─────────────────────────────────────────────────────────
    async def _summarize(self, canonical: str, catalog_id: Optional[int]) -> GameStreamingSummary:
        AGGREGATION_PASSES.labels(operation="summary").inc()
        async with atrack_latency(AGGREGATION_LATENCY, operation="summary"):
            breakdowns = await self._fan_out(
                "summary",
                list(self._clients),
                lambda p: self._platform_breakdown(p, canonical),
                PlatformBreakdown,
            )
        summary = GameStreamingSummary.assemble(canonical, breakdowns, catalog_id)
        logger.info(
            "summary_assembled",
            game=canonical,
            total_viewers=summary.total_viewers,
            total_streams=summary.total_streams,
        )
        return summary

    async def _platform_breakdown(self, platform: Platform, canonical: str) -> PlatformBreakdown:
        client = self._clients[platform]
        category = await client.look_up_game_category(canonical)
        if category is None:
            return PlatformBreakdown()

        streams = await client.list_live_streams(category.category_id, self._settings.summary_page_size)
        streams = [s if s.game_name else s.model_copy(update={"game_name": category.name}) for s in streams]
        streams = await self._attach_canonical(platform, streams, canonical)
        matching = [s for s in streams if s.canonical_game_name == canonical]

        top = rank_streamers(matching, self._settings.top_streamers_count)
        if self._settings.enrich_follower_counts:
            top = await self._with_follower_counts(client, top)

        return PlatformBreakdown(
            live_streams=len(matching),
            total_viewers=sum(s.viewer_count for s in matching),
            top_streamers=top,
        )

    async def _attach_canonical(
        self, platform: Platform, streams: list[LiveStream], canonical: str
    ) -> list[LiveStream]:
        """
        Fill canonical_game_name on streams found for canonical.

        A display name the resolver does not know is registered as this
        platform's alias of canonical, since the platform returned it for
        that title.
        """
        resolved: dict[str, str] = {}
        for raw in {s.game_name.strip() for s in streams}:
            if not raw:
                continue
            known = self._resolver.match(raw, platform)
            if known is None:
                await self._resolver.register_aliases(
                    canonical, [raw], source=AliasSource.PLATFORM, platform=platform
                )
                known = canonical
            resolved[raw] = known

        return [
            s.model_copy(update={"canonical_game_name": resolved.get(s.game_name.strip(), canonical)})
            for s in streams
        ]

    async def _with_follower_counts(
        self, client: BasePlatformClient, streamers: list[StreamerInfo]
    ) -> list[StreamerInfo]:
        counts = await asyncio.gather(*(client.get_follower_count(s.id) for s in streamers))
        return [
            s.model_copy(update={"follower_count": count}) if count > 0 else s
            for s, count in zip(streamers, counts)
        ]

    # ── Search ──────────────────────────────────────────────────────────
    async def _search(
        self,
        canonical: str,
        platform_filter: PlatformFilter,
        limit: int,
        language: Optional[str],
    ) -> list[LiveStream]:
        AGGREGATION_PASSES.labels(operation="search").inc()
        platforms = [p for p in self._clients if platform_filter.includes(p)]
        per_platform = max(limit // 2, 1) if len(platforms) > 1 else limit

        async def platform_streams(platform: Platform) -> list[LiveStream]:
            streams = await self._clients[platform].search_streams(canonical, per_platform, language)
            streams = await self._attach_canonical(platform, streams, canonical)
            return [s for s in streams if s.canonical_game_name == canonical]

        async with atrack_latency(AGGREGATION_LATENCY, operation="search"):
            per_platform_results = await self._fan_out("search", platforms, platform_streams, list)

        merged = [s for streams in per_platform_results.values() for s in streams]
        return rank_streams(merged)[:limit]

    # ── Top games ───────────────────────────────────────────────────────
    async def _top_games(self, limit: int) -> list[TopGameEntry]:
        AGGREGATION_PASSES.labels(operation="top_games").inc()
        page_size = self._settings.popular_streams_page_size

        async with atrack_latency(AGGREGATION_LATENCY, operation="top_games"):
            popular = await self._fan_out(
                "top_games",
                list(self._clients),
                lambda p: self._clients[p].list_popular_streams(page_size),
                list,
            )

        grouped = {platform: group_by_game(platform, streams) for platform, streams in popular.items()}
        merged = self._resolver.merge_by_canonical_name(
            grouped.get(Platform.TWITCH, []),
            grouped.get(Platform.CHZZK, []),
            merge_top_game_entries,
        )
        return sorted(merged.values(), key=lambda e: (-e.viewers, e.game_name))[:limit]


def group_by_game(platform: Platform, streams: list[LiveStream]) -> list[TopGameEntry]:
    """Per-category totals for one platform. Streams without a category are skipped."""
    totals: dict[str, dict[str, Any]] = {}
    for stream in streams:
        if not stream.game_id:
            continue
        entry = totals.setdefault(stream.game_id, {"name": stream.game_name or stream.game_id, "viewers": 0, "streams": 0})
        entry["viewers"] += stream.viewer_count
        entry["streams"] += 1
    return [
        TopGameEntry(
            game_name=data["name"],
            viewers=data["viewers"],
            streams=data["streams"],
            platforms={platform: PlatformTotals(viewers=data["viewers"], streams=data["streams"])},
        )
        for data in totals.values()
    ]
