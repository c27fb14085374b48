"""
Platform response shapes.

Each platform's live-broadcast record is a tagged variant of
PlatformLiveStream and is converted into the shared LiveStream at the client
boundary, so nothing downstream branches on platform identity.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from shared.models.domain import LiveStream, StreamerInfo
from shared.models.enums import Platform

KST = timezone(timedelta(hours=9))

TWITCH_THUMBNAIL_WIDTH = 440
TWITCH_THUMBNAIL_HEIGHT = 248


# ── Twitch (Helix) ──────────────────────────────────────────────────────
class TwitchModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TwitchGame(TwitchModel):
    id: str
    name: str
    box_art_url: str = ""
    igdb_id: Optional[str] = None


class TwitchUser(TwitchModel):
    id: str
    login: str
    display_name: str
    description: str = ""
    profile_image_url: Optional[str] = None


class TwitchStream(TwitchModel):
    platform: Literal["twitch"] = "twitch"
    id: str
    user_id: str
    user_login: str
    user_name: str
    game_id: str = ""
    game_name: str = ""
    title: str = ""
    viewer_count: int = 0
    started_at: Optional[datetime] = None
    language: Optional[str] = None
    thumbnail_url: str = ""
    tags: Optional[list[str]] = None

    def to_streamer(self, user: Optional[TwitchUser] = None, follower_count: int = 0) -> StreamerInfo:
        return StreamerInfo(
            id=self.user_id,
            platform=Platform.TWITCH,
            display_name=self.user_name,
            login_name=self.user_login,
            profile_image=user.profile_image_url if user else None,
            description=user.description if user else None,
            follower_count=follower_count,
            is_live=True,
            language=self.language,
        )

    def to_live_stream(self, user: Optional[TwitchUser] = None, follower_count: int = 0) -> LiveStream:
        return LiveStream(
            id=self.id,
            platform=Platform.TWITCH,
            streamer=self.to_streamer(user, follower_count),
            title=self.title,
            game_name=self.game_name,
            game_id=self.game_id or None,
            viewer_count=max(self.viewer_count, 0),
            started_at=self.started_at,
            thumbnail_url=(
                self.thumbnail_url.replace("{width}", str(TWITCH_THUMBNAIL_WIDTH)).replace(
                    "{height}", str(TWITCH_THUMBNAIL_HEIGHT)
                )
                or None
            ),
            tags=self.tags or [],
            language=self.language,
        )


# ── Chzzk ───────────────────────────────────────────────────────────────
class ChzzkModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ChzzkChannel(ChzzkModel):
    channel_id: str
    channel_name: str = ""
    channel_image_url: Optional[str] = None
    verified_mark: bool = False
    follower_count: int = 0


class ChzzkCategory(ChzzkModel):
    category_id: str
    category_value: str = ""
    poster_image_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_category_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and "categoryValue" not in data and "categoryName" in data:
            data = {**data, "categoryValue": data["categoryName"]}
        return data


class ChzzkLive(ChzzkModel):
    platform: Literal["chzzk"] = "chzzk"
    live_id: str
    live_title: str = ""
    live_image_url: Optional[str] = None
    default_thumbnail_image_url: Optional[str] = None
    concurrent_user_count: int = 0
    open_date: Optional[str] = None
    adult: bool = False
    tags: Optional[list[str]] = None
    category_type: Optional[str] = None
    live_category: Optional[str] = None
    live_category_value: Optional[str] = None
    channel: ChzzkChannel

    @model_validator(mode="before")
    @classmethod
    def _accept_alternate_keys(cls, data: Any) -> Any:
        # Popular-lives endpoints do not agree on field names
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data.setdefault("liveCategory", data.get("categoryId") or data.get("gameId"))
        data.setdefault(
            "liveCategoryValue", data.get("categoryValue") or data.get("gameName")
        )
        if "concurrentUserCount" not in data:
            data["concurrentUserCount"] = data.get("viewerCount") or data.get("viewers") or 0
        if data.get("liveId") is None:
            for key in ("liveNo", "id"):
                if data.get(key) is not None:
                    data["liveId"] = str(data[key])
                    break
        if isinstance(data.get("liveId"), int):
            data["liveId"] = str(data["liveId"])
        return data

    @property
    def game_name(self) -> str:
        return self.live_category_value or self.live_category or ""

    def started_at(self) -> Optional[datetime]:
        if not self.open_date:
            return None
        try:
            parsed = datetime.fromisoformat(self.open_date)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=KST)

    def to_streamer(self) -> StreamerInfo:
        return StreamerInfo(
            id=self.channel.channel_id,
            platform=Platform.CHZZK,
            display_name=self.channel.channel_name,
            login_name=self.channel.channel_id,
            profile_image=self.channel.channel_image_url,
            follower_count=self.channel.follower_count or 0,
            is_live=True,
            language="ko",
        )

    def to_live_stream(self) -> LiveStream:
        return LiveStream(
            id=self.live_id,
            platform=Platform.CHZZK,
            streamer=self.to_streamer(),
            title=self.live_title,
            game_name=self.game_name,
            game_id=self.live_category,
            viewer_count=max(self.concurrent_user_count, 0),
            started_at=self.started_at(),
            thumbnail_url=self.live_image_url or self.default_thumbnail_image_url,
            tags=self.tags or [],
            language="ko",
        )


PlatformLiveStream = Annotated[Union[TwitchStream, ChzzkLive], Field(discriminator="platform")]

_live_streams_adapter = TypeAdapter(list[PlatformLiveStream])


def parse_live_streams(platform: Platform, raw: list[Any]) -> list[Union[TwitchStream, ChzzkLive]]:
    """
    Validate raw live-broadcast records from one platform.

    Records are tagged with the platform before validation so the union
    dispatches each to its variant.

    Raises:
        ValidationError: A record does not fit the platform's shape.
    """
    if isinstance(raw, list):
        raw = [{**item, "platform": platform.value} if isinstance(item, dict) else item for item in raw]
    return _live_streams_adapter.validate_python(raw)
