"""Twitch and Chzzk connectors against canned platform responses."""
from __future__ import annotations

from typing import Any, Callable
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import ValidationError

from shared.errors import AuthenticationFailure, PlatformAPIError
from shared.models.enums import Platform

from conftest import (
    FakePlatformClient,
    StaticCredentials,
    category,
    make_settings,
    make_stream,
    started_gateway,
)
from ingest.providers.base import name_variants, rank_streamers
from ingest.providers.chzzk import ChzzkClient, extract_live_list
from ingest.providers.schemas import ChzzkLive, TwitchStream, parse_live_streams
from ingest.providers.twitch import TwitchClient


def chzzk_ok(content: Any) -> httpx.Response:
    return httpx.Response(200, json={"code": 200, "message": None, "content": content})


def chzzk_live(live_id: int, viewers: int, category_id: str = "GTA5", value: str = "GTA V") -> dict[str, Any]:
    return {
        "liveId": live_id,
        "liveTitle": f"live {live_id}",
        "concurrentUserCount": viewers,
        "openDate": "2026-10-19 20:00:00",
        "liveCategory": category_id,
        "liveCategoryValue": value,
        "channel": {"channelId": f"ch{live_id}", "channelName": f"Channel {live_id}"},
    }


async def twitch_client(handler: Callable[[httpx.Request], httpx.Response]):
    settings = make_settings()
    gateway = await started_gateway(settings, handler)
    credentials = StaticCredentials(Platform.TWITCH)
    return TwitchClient(gateway, credentials, settings), gateway, credentials


async def chzzk_client(handler: Callable[[httpx.Request], httpx.Response], *authenticated: Platform):
    settings = make_settings()
    gateway = await started_gateway(settings, handler)
    return ChzzkClient(gateway, StaticCredentials(*authenticated), settings), gateway


# ── Name variants ───────────────────────────────────────────────────────
def test_name_variants_order_and_dedup() -> None:
    assert name_variants("Call of Duty: Warzone") == [
        "Call of Duty: Warzone",
        "Call of Duty",
        "Call of Duty Warzone",
    ]
    assert name_variants("Fortnite") == ["Fortnite"]
    assert name_variants("Counter-Strike 2", "Counter-Strike") == [
        "Counter-Strike",
        "Counter-Strike 2",
        "Counter Strike 2",
    ]


@pytest.mark.asyncio
async def test_category_lookup_tries_platform_alias_first(settings) -> None:
    client = FakePlatformClient(
        Platform.CHZZK,
        settings,
        categories={"배틀그라운드": category(Platform.CHZZK, "PUBG", "배틀그라운드")},
    )
    found = await client.look_up_game_category("PUBG: BATTLEGROUNDS")
    assert found is not None and found.category_id == "PUBG"
    assert client.calls == ["category:배틀그라운드"]


@pytest.mark.asyncio
async def test_category_lookup_not_found_is_none(settings) -> None:
    client = FakePlatformClient(Platform.TWITCH, settings)
    assert await client.look_up_game_category("Nothing: Here") is None
    assert client.calls == ["category:Nothing: Here", "category:Nothing", "category:Nothing Here"]


@pytest.mark.asyncio
async def test_category_lookup_stops_on_authentication_failure(settings) -> None:
    client = FakePlatformClient(
        Platform.TWITCH, settings, error=AuthenticationFailure("twitch", "status 401")
    )
    with pytest.raises(AuthenticationFailure):
        await client.look_up_game_category("Call of Duty: Warzone")
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_follower_count_failure_is_zero(settings) -> None:
    client = FakePlatformClient(Platform.TWITCH, settings, followers={"a": 42})
    assert await client.get_follower_count("a") == 42
    assert await client.get_follower_count("missing") == 0


def test_rank_streamers_distinct_by_viewers() -> None:
    streams = [
        make_stream(Platform.TWITCH, "1", 50, "X", streamer_id="a"),
        make_stream(Platform.TWITCH, "2", 200, "X", streamer_id="b"),
        make_stream(Platform.TWITCH, "3", 10, "X", streamer_id="a"),
        make_stream(Platform.TWITCH, "4", 100, "X", streamer_id="c"),
    ]
    assert [s.id for s in rank_streamers(streams, 10)] == ["b", "c", "a"]
    assert [s.id for s in rank_streamers(streams, 2)] == ["b", "c"]


# ── Twitch ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_twitch_live_streams_with_profiles() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/streams"):
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "id": "s1",
                            "user_id": "u1",
                            "user_login": "streamer1",
                            "user_name": "Streamer1",
                            "game_id": "32982",
                            "game_name": "Grand Theft Auto V",
                            "title": "RP",
                            "viewer_count": 300,
                            "started_at": "2026-10-19T10:00:00Z",
                            "language": "en",
                            "thumbnail_url": "https://img/{width}x{height}.jpg",
                            "tags": ["English"],
                        }
                    ],
                    "pagination": {},
                },
            )
        if request.url.path.endswith("/users"):
            return httpx.Response(
                200,
                json={"data": [{"id": "u1", "login": "streamer1", "display_name": "Streamer1", "profile_image_url": "https://img/p.png"}]},
            )
        return httpx.Response(404)

    client, gateway, _ = await twitch_client(handler)
    try:
        streams = await client.list_live_streams("32982", 250, language="en")
    finally:
        await gateway.close()

    assert len(streams) == 1
    stream = streams[0]
    assert stream.platform == Platform.TWITCH
    assert stream.viewer_count == 300
    assert stream.game_id == "32982"
    assert stream.thumbnail_url == "https://img/440x248.jpg"
    assert stream.streamer.profile_image == "https://img/p.png"

    streams_request = seen[0]
    assert streams_request.url.params["first"] == "100"
    assert streams_request.url.params["language"] == "en"
    assert streams_request.headers["authorization"] == "Bearer twitch-token"
    assert streams_request.headers["client-id"] == "twitch-client"


@pytest.mark.asyncio
async def test_twitch_unknown_game_is_none() -> None:
    client, gateway, _ = await twitch_client(lambda r: httpx.Response(200, json={"data": []}))
    try:
        assert await client.look_up_game_category("No Such Game") is None
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_twitch_401_invalidates_token() -> None:
    client, gateway, credentials = await twitch_client(lambda r: httpx.Response(401))
    try:
        with pytest.raises(PlatformAPIError):
            await client.list_popular_streams(20)
    finally:
        await gateway.close()
    assert credentials.invalidated == [Platform.TWITCH]


@pytest.mark.asyncio
async def test_twitch_follower_total() -> None:
    client, gateway, _ = await twitch_client(
        lambda r: httpx.Response(200, json={"total": 1234, "data": []})
    )
    try:
        assert await client.get_follower_count("u1") == 1234
    finally:
        await gateway.close()


# ── Chzzk ───────────────────────────────────────────────────────────────
def test_extract_live_list_shapes() -> None:
    assert extract_live_list([{"a": 1}]) == [{"a": 1}]
    assert extract_live_list({"data": [1, 2]}) == [1, 2]
    assert extract_live_list({"data": [], "popularLives": [3]}) == [3]
    assert extract_live_list({"topRecommendationLiveList": [], "esportsLiveList": [4]}) == [4]
    assert extract_live_list(None) == []


def test_live_records_dispatch_on_platform_tag() -> None:
    chzzk = parse_live_streams(Platform.CHZZK, [chzzk_live(7, 300)])
    twitch = parse_live_streams(
        Platform.TWITCH,
        [{"id": "s1", "user_id": "u1", "user_login": "one", "user_name": "One", "viewer_count": 5}],
    )

    assert isinstance(chzzk[0], ChzzkLive)
    assert chzzk[0].to_live_stream().platform == Platform.CHZZK
    assert chzzk[0].live_id == "7"
    assert isinstance(twitch[0], TwitchStream)
    assert twitch[0].to_live_stream().viewer_count == 5


def test_live_records_of_the_wrong_shape_fail_validation() -> None:
    with pytest.raises(ValidationError):
        parse_live_streams(Platform.CHZZK, [{"liveId": 1}])
    with pytest.raises(ValidationError):
        parse_live_streams(Platform.TWITCH, ["not a record"])


@pytest.mark.asyncio
async def test_chzzk_category_and_streams_unauthenticated() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/service/v1/categories/search":
            return chzzk_ok({"data": [{"categoryId": "GTA5", "categoryValue": "GTA V", "categoryType": "GAME"}]})
        if request.url.path == "/service/v1/lives":
            return chzzk_ok({"data": [chzzk_live(1, 120), chzzk_live(2, 180)]})
        return httpx.Response(404)

    client, gateway = await chzzk_client(handler)
    try:
        found = await client.look_up_game_category("GTA V")
        streams = await client.list_live_streams(found.category_id, 20)
    finally:
        await gateway.close()

    assert found.category_id == "GTA5"
    assert found.name == "GTA V"
    assert [s.viewer_count for s in streams] == [120, 180]
    assert all(s.language == "ko" and s.game_name == "GTA V" for s in streams)
    assert streams[0].id == "1"
    assert streams[0].started_at is not None and streams[0].started_at.utcoffset().total_seconds() == 9 * 3600
    assert "authorization" not in seen[0].headers
    assert "user-agent" in seen[0].headers


@pytest.mark.asyncio
async def test_chzzk_non_korean_language_is_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client, gateway = await chzzk_client(handler)
    try:
        assert await client.list_live_streams("GTA5", 20, language="en") == []
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_chzzk_attaches_token_when_configured() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return chzzk_ok({"data": []})

    client, gateway = await chzzk_client(handler, Platform.CHZZK)
    try:
        await client.list_live_streams("GTA5", 20)
    finally:
        await gateway.close()
    assert seen[0].headers["authorization"] == "Bearer chzzk-token"


@pytest.mark.asyncio
async def test_chzzk_error_envelope_is_api_error() -> None:
    client, gateway = await chzzk_client(
        lambda r: httpx.Response(200, json={"code": 500, "message": "internal", "content": None})
    )
    try:
        with pytest.raises(PlatformAPIError):
            await client.list_live_streams("GTA5", 20)
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_chzzk_popular_falls_back_between_endpoints() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/service/v1/lives":
            return httpx.Response(500)
        if request.url.path == "/service/v2/lives":
            return chzzk_ok(
                {
                    "popularLives": [
                        {**{k: v for k, v in chzzk_live(1, 0).items() if k != "concurrentUserCount"}, "viewerCount": 10},
                        chzzk_live(2, 500),
                        chzzk_live(3, 80),
                    ]
                }
            )
        raise AssertionError("home endpoint should not be reached")

    client, gateway = await chzzk_client(handler)
    try:
        streams = await client.list_popular_streams(2)
    finally:
        await gateway.close()
    assert [s.viewer_count for s in streams] == [500, 80]


@pytest.mark.asyncio
async def test_chzzk_popular_all_endpoints_failing_raises() -> None:
    client, gateway = await chzzk_client(lambda r: httpx.Response(503))
    try:
        with pytest.raises(PlatformAPIError):
            await client.list_popular_streams(10)
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_chzzk_popular_empty_answers_are_empty() -> None:
    client, gateway = await chzzk_client(lambda r: chzzk_ok({"data": []}))
    try:
        assert await client.list_popular_streams(10) == []
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_chzzk_follower_count() -> None:
    client, gateway = await chzzk_client(
        lambda r: chzzk_ok({"channelId": "ch1", "channelName": "Channel", "followerCount": 777})
    )
    try:
        assert await client.get_follower_count("ch1") == 777
    finally:
        await gateway.close()


@pytest.mark.asyncio
async def test_list_top_streamers_ranks_category_streams(settings) -> None:
    client = FakePlatformClient(Platform.TWITCH, settings)
    client.list_live_streams = AsyncMock(
        return_value=[
            make_stream(Platform.TWITCH, "1", 10, "X", streamer_id="low"),
            make_stream(Platform.TWITCH, "2", 90, "X", streamer_id="high"),
        ]
    )

    top = await client.list_top_streamers("cat", 1)

    assert [s.id for s in top] == ["high"]
    client.list_live_streams.assert_awaited_once_with("cat", settings.summary_page_size)
