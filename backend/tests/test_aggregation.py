"""Cross-platform summaries, searches and rankings."""
from __future__ import annotations

from typing import Optional

import pytest

from shared.config import Settings
from shared.errors import AuthenticationFailure, CacheUnavailable, TimeoutFailure
from shared.models.enums import Platform, PlatformFilter

from aggregation.engine import AggregationEngine, group_by_game, rank_streams
from conftest import (
    FakePlatformClient,
    InMemoryCache,
    UnreachableCache,
    category,
    make_settings,
    make_stream,
)
from ingest.normalization.resolver import GameResolver

GTA = "Grand Theft Auto V"


def gta_twitch(settings: Settings, **kwargs) -> FakePlatformClient:
    return FakePlatformClient(
        Platform.TWITCH,
        settings,
        categories={GTA: category(Platform.TWITCH, "32982", GTA)},
        streams={
            "32982": [
                make_stream(Platform.TWITCH, "t1", 200, GTA, game_id="32982"),
                make_stream(Platform.TWITCH, "t2", 200, GTA, game_id="32982"),
                make_stream(Platform.TWITCH, "t3", 100, GTA, game_id="32982"),
            ]
        },
        **kwargs,
    )


def gta_chzzk(settings: Settings, **kwargs) -> FakePlatformClient:
    return FakePlatformClient(
        Platform.CHZZK,
        settings,
        categories={GTA: category(Platform.CHZZK, "GTA5", "GTA V")},
        streams={
            "GTA5": [
                make_stream(Platform.CHZZK, "c1", 180, "GTA V", game_id="GTA5"),
                make_stream(Platform.CHZZK, "c2", 120, "GTA V", game_id="GTA5"),
            ]
        },
        **kwargs,
    )


def build_engine(
    twitch: FakePlatformClient,
    chzzk: FakePlatformClient,
    cache,
    settings: Settings,
) -> AggregationEngine:
    resolver = GameResolver(cache, None, settings)
    return AggregationEngine({Platform.TWITCH: twitch, Platform.CHZZK: chzzk}, resolver, cache, settings)


class AliasWritesFail(InMemoryCache):
    """Memoization works but durable alias writes fail."""

    async def set_with_expiry(self, key: str, value: str, ttl_s: int) -> None:
        if key.startswith("alias:"):
            raise CacheUnavailable("set", "connection reset")
        await super().set_with_expiry(key, value, ttl_s)


# ── Summary ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_summary_totals_across_platforms(cache: InMemoryCache, settings: Settings) -> None:
    engine = build_engine(gta_twitch(settings), gta_chzzk(settings), cache, settings)

    summary = await engine.summarize("GTA5", catalog_id=1020)

    assert summary.game_name == GTA
    assert summary.catalog_id == 1020
    twitch = summary.platforms[Platform.TWITCH]
    chzzk = summary.platforms[Platform.CHZZK]
    assert (twitch.live_streams, twitch.total_viewers) == (3, 500)
    assert (chzzk.live_streams, chzzk.total_viewers) == (2, 300)
    assert (summary.total_streams, summary.total_viewers) == (5, 800)
    assert [s.id for s in chzzk.top_streamers] == ["chzzk-streamer-c1", "chzzk-streamer-c2"]


@pytest.mark.asyncio
async def test_summary_is_memoized(cache: InMemoryCache, settings: Settings) -> None:
    twitch, chzzk = gta_twitch(settings), gta_chzzk(settings)
    engine = build_engine(twitch, chzzk, cache, settings)

    first = await engine.summarize("GTA V")
    calls = len(twitch.calls) + len(chzzk.calls)
    second = await engine.summarize(GTA)

    assert first == second
    assert len(twitch.calls) + len(chzzk.calls) == calls
    assert cache.ttls["streaming:summary:grand theft auto v:"] == settings.summary_cache_ttl_s


@pytest.mark.asyncio
async def test_timed_out_platform_reports_zero(cache: InMemoryCache, settings: Settings) -> None:
    chzzk = gta_chzzk(settings, error=TimeoutFailure("https://api.chzzk.naver.com", 5.0))
    engine = build_engine(gta_twitch(settings), chzzk, cache, settings)

    summary = await engine.summarize(GTA)

    assert summary.platforms[Platform.CHZZK].live_streams == 0
    assert summary.platforms[Platform.CHZZK].total_viewers == 0
    assert summary.platforms[Platform.CHZZK].top_streamers == []
    assert (summary.total_streams, summary.total_viewers) == (3, 500)


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [AuthenticationFailure("twitch", "status 401"), RuntimeError("boom")])
async def test_failing_platform_is_degraded(cache: InMemoryCache, settings: Settings, error: Exception) -> None:
    engine = build_engine(gta_twitch(settings, error=error), gta_chzzk(settings), cache, settings)

    summary = await engine.summarize(GTA)

    assert summary.platforms[Platform.TWITCH].live_streams == 0
    assert summary.total_viewers == 300


@pytest.mark.asyncio
async def test_empty_name_gives_empty_summary(cache: InMemoryCache, settings: Settings) -> None:
    twitch = gta_twitch(settings)
    engine = build_engine(twitch, gta_chzzk(settings), cache, settings)

    summary = await engine.summarize("   ")

    assert summary.game_name == ""
    assert summary.total_viewers == 0
    assert set(summary.platforms) == set(Platform)
    assert twitch.calls == []


@pytest.mark.asyncio
async def test_streams_of_other_games_are_excluded(cache: InMemoryCache, settings: Settings) -> None:
    twitch = gta_twitch(settings)
    twitch.streams["32982"].append(make_stream(Platform.TWITCH, "t4", 999, "Minecraft", game_id="32982"))
    engine = build_engine(twitch, gta_chzzk(settings), cache, settings)

    summary = await engine.summarize(GTA)

    assert summary.platforms[Platform.TWITCH].total_viewers == 500


@pytest.mark.asyncio
async def test_unknown_platform_name_becomes_alias(cache: InMemoryCache, settings: Settings) -> None:
    chzzk = gta_chzzk(settings)
    chzzk.streams["GTA5"].append(make_stream(Platform.CHZZK, "c3", 50, "GTA 온라인", game_id="GTA5"))
    engine = build_engine(gta_twitch(settings), chzzk, cache, settings)

    summary = await engine.summarize(GTA)

    assert summary.platforms[Platform.CHZZK].total_viewers == 350
    assert engine.resolver.match("GTA 온라인", Platform.CHZZK) == GTA
    assert cache.store["alias:name:gta 온라인"] == GTA


@pytest.mark.asyncio
async def test_follower_counts_are_attached_when_enabled(cache: InMemoryCache) -> None:
    settings = make_settings(enrich_follower_counts=True)
    twitch = gta_twitch(settings, followers={"twitch-streamer-t1": 10_000})
    engine = build_engine(twitch, gta_chzzk(settings), cache, settings)

    summary = await engine.summarize(GTA)

    counts = {s.id: s.follower_count for s in summary.platforms[Platform.TWITCH].top_streamers}
    assert counts == {"twitch-streamer-t1": 10_000, "twitch-streamer-t2": 0, "twitch-streamer-t3": 0}


@pytest.mark.asyncio
async def test_unreachable_cache_surfaces(settings: Settings) -> None:
    cache = UnreachableCache(settings)
    engine = build_engine(gta_twitch(settings), gta_chzzk(settings), cache, settings)
    with pytest.raises(CacheUnavailable):
        await engine.summarize(GTA)


@pytest.mark.asyncio
async def test_cache_failure_inside_a_platform_branch_surfaces(settings: Settings) -> None:
    chzzk = gta_chzzk(settings)
    chzzk.streams["GTA5"].append(make_stream(Platform.CHZZK, "c3", 50, "GTA 온라인", game_id="GTA5"))
    twitch = gta_twitch(settings)
    engine = build_engine(twitch, chzzk, AliasWritesFail(settings), settings)

    with pytest.raises(CacheUnavailable):
        await engine.summarize(GTA)
    # The other branch still ran to completion
    assert any(call.startswith("streams:") for call in twitch.calls)


# ── Search ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_search_ranks_by_viewers(cache: InMemoryCache, settings: Settings) -> None:
    twitch = FakePlatformClient(
        Platform.TWITCH,
        settings,
        categories={GTA: category(Platform.TWITCH, "32982", GTA)},
        streams={
            "32982": [
                make_stream(Platform.TWITCH, "a", 50, GTA),
                make_stream(Platform.TWITCH, "b", 200, GTA),
                make_stream(Platform.TWITCH, "c", 10, GTA),
            ]
        },
    )
    engine = build_engine(twitch, gta_chzzk(settings), cache, settings)

    streams = await engine.search_live("GTA5", PlatformFilter.TWITCH, limit=10)

    assert [s.viewer_count for s in streams] == [200, 50, 10]
    assert all(s.canonical_game_name == GTA for s in streams)


@pytest.mark.asyncio
async def test_search_splits_limit_across_platforms(cache: InMemoryCache, settings: Settings) -> None:
    engine = build_engine(gta_twitch(settings), gta_chzzk(settings), cache, settings)

    streams = await engine.search_live(GTA, "all", limit=4)

    assert len(streams) == 4
    assert [s.viewer_count for s in streams] == [200, 200, 180, 120]
    assert {s.platform for s in streams} == {Platform.TWITCH, Platform.CHZZK}


@pytest.mark.asyncio
async def test_search_with_degraded_platform(cache: InMemoryCache, settings: Settings) -> None:
    chzzk = gta_chzzk(settings, error=RuntimeError("boom"))
    engine = build_engine(gta_twitch(settings), chzzk, cache, settings)

    streams = await engine.search_live(GTA, limit=10)

    assert [s.platform for s in streams] == [Platform.TWITCH] * 3


@pytest.mark.asyncio
async def test_search_empty_name_or_limit(cache: InMemoryCache, settings: Settings) -> None:
    engine = build_engine(gta_twitch(settings), gta_chzzk(settings), cache, settings)
    assert await engine.search_live("") == []
    assert await engine.search_live(GTA, limit=0) == []


def test_rank_streams_tie_break() -> None:
    streams = [
        make_stream(Platform.TWITCH, "b", 100, GTA),
        make_stream(Platform.CHZZK, "z", 100, GTA),
        make_stream(Platform.TWITCH, "a", 100, GTA),
        make_stream(Platform.TWITCH, "c", 300, GTA),
    ]
    assert [(s.platform, s.id) for s in rank_streams(streams)] == [
        (Platform.TWITCH, "c"),
        (Platform.CHZZK, "z"),
        (Platform.TWITCH, "a"),
        (Platform.TWITCH, "b"),
    ]


# ── Top games ───────────────────────────────────────────────────────────
def popular_client(platform: Platform, settings: Settings, rows, error: Optional[Exception] = None):
    streams = [
        make_stream(platform, f"{platform.value}-{i}", viewers, name, game_id=game_id)
        for i, (name, game_id, viewers) in enumerate(rows)
    ]
    return FakePlatformClient(platform, settings, popular=streams, error=error)


def test_group_by_game_skips_streams_without_category() -> None:
    streams = [
        make_stream(Platform.CHZZK, "1", 10, "배틀그라운드", game_id="PUBG"),
        make_stream(Platform.CHZZK, "2", 5, "배틀그라운드", game_id="PUBG"),
        make_stream(Platform.CHZZK, "3", 99, "", game_id=None),
    ]
    [entry] = group_by_game(Platform.CHZZK, streams)
    assert (entry.game_name, entry.viewers, entry.streams) == ("배틀그라운드", 15, 2)


@pytest.mark.asyncio
async def test_top_games_merge_platforms(cache: InMemoryCache, settings: Settings) -> None:
    twitch = popular_client(
        Platform.TWITCH,
        settings,
        [
            ("PUBG: BATTLEGROUNDS", "493057", 100),
            ("PUBG: BATTLEGROUNDS", "493057", 50),
            ("League of Legends", "21779", 300),
        ],
    )
    chzzk = popular_client(
        Platform.CHZZK,
        settings,
        [("배틀그라운드", "PUBG", 500), ("", None, 1_000)],
    )
    engine = build_engine(twitch, chzzk, cache, settings)

    games = await engine.top_games(limit=10)

    assert [g.game_name for g in games] == ["PUBG: BATTLEGROUNDS", "League of Legends"]
    pubg = games[0]
    assert (pubg.viewers, pubg.streams) == (650, 3)
    assert pubg.platforms[Platform.TWITCH].viewers == 150
    assert pubg.platforms[Platform.CHZZK].streams == 1


@pytest.mark.asyncio
async def test_top_games_with_degraded_platform(cache: InMemoryCache, settings: Settings) -> None:
    twitch = popular_client(Platform.TWITCH, settings, [("League of Legends", "21779", 300)])
    chzzk = popular_client(Platform.CHZZK, settings, [], error=TimeoutFailure("https://chzzk", 5.0))
    engine = build_engine(twitch, chzzk, cache, settings)

    games = await engine.top_games(limit=1)

    assert [(g.game_name, g.viewers) for g in games] == [("League of Legends", 300)]
