"""
Chzzk provider connector.
Fetches live data from the Chzzk service API and converts it to shared stream models.

Responses are wrapped in a {"code", "message", "content"} envelope; anything
but code 200 is an API error. Every Chzzk broadcast is reported as Korean.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from shared.errors import GamePulseError, PlatformAPIError
from shared.models.domain import GameCategory, LiveStream
from shared.models.enums import Platform
from shared.utils.logging import get_logger

from ingest.providers.base import BasePlatformClient
from ingest.providers.schemas import ChzzkCategory, ChzzkChannel, ChzzkLive, parse_live_streams

logger = get_logger(__name__)

_categories_adapter = TypeAdapter(list[ChzzkCategory])

_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# Popular-lives endpoints in the order they are tried
_POPULAR_ENDPOINTS: tuple[tuple[str, dict[str, str]], ...] = (
    ("/service/v1/lives", {"sortType": "POPULAR"}),
    ("/service/v2/lives", {"sortType": "POPULAR"}),
    ("/service/v1/home/lives", {}),
)

# Keys that may hold the live list, checked in order
_LIVE_LIST_KEYS = (
    "data",
    "lives",
    "recommendedLives",
    "popularLives",
    "liveList",
    "topRecommendationLiveList",
    "streamingLiveList",
)
_HOME_LIST_KEYS = ("topRecommendationLiveList", "streamingLiveList", "esportsLiveList")


def extract_live_list(content: Any) -> list[Any]:
    """Pull the raw live records out of whichever response shape an endpoint used."""
    if isinstance(content, list):
        return content
    if not isinstance(content, dict):
        return []
    for key in _LIVE_LIST_KEYS:
        value = content.get(key)
        if isinstance(value, list) and value:
            return value
    combined: list[Any] = []
    for key in _HOME_LIST_KEYS:
        value = content.get(key)
        if isinstance(value, list):
            combined.extend(value)
    return combined


class ChzzkClient(BasePlatformClient):
    """
    Chzzk service API connector.

    The public service endpoints need no token. When Chzzk client credentials
    are configured, the open API bearer token is attached to every call.
    """

    platform = Platform.CHZZK

    @property
    def _base(self) -> str:
        return self._settings.chzzk_api_base.rstrip("/")

    async def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": _USER_AGENT}
        if self._credentials.has_source(self.platform):
            token = await self._credentials.get_token(self.platform)
            headers["Authorization"] = f"Bearer {token}"
            headers["Client-Id"] = self._credentials.client_id(self.platform)
        return headers

    async def _content(self, endpoint: str, params: Any = None) -> Any:
        body = await self._get_json(
            f"{self._base}{endpoint}", params=params, headers=await self._headers()
        )
        if not isinstance(body, dict) or body.get("code") != 200:
            message = body.get("message") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            raise PlatformAPIError(self.platform.value, code, message or "unexpected response envelope")
        return body.get("content")

    def _parse_lives(self, raw: list[Any]) -> list[ChzzkLive]:
        try:
            return parse_live_streams(self.platform, raw)
        except ValidationError as exc:
            raise PlatformAPIError(self.platform.value, 200, f"unexpected payload: {exc.error_count()} errors") from exc

    # ── Catalog ─────────────────────────────────────────────────────────
    async def _find_category(self, name: str) -> Optional[GameCategory]:
        content = await self._content(
            "/service/v1/categories/search", {"keyword": name, "categoryType": "GAME"}
        )
        raw = content.get("data") if isinstance(content, dict) else None
        try:
            categories = _categories_adapter.validate_python(raw or [])
        except ValidationError as exc:
            raise PlatformAPIError(self.platform.value, 200, "unexpected category payload") from exc
        if not categories:
            return None
        category = categories[0]
        return GameCategory(
            platform=self.platform,
            category_id=category.category_id,
            name=category.category_value or category.category_id,
            image_url=category.poster_image_url,
        )

    # ── Streams ─────────────────────────────────────────────────────────
    async def list_live_streams(
        self, category_id: str, limit: int, language: Optional[str] = None
    ) -> list[LiveStream]:
        if language and language != "ko":
            return []
        content = await self._content(
            "/service/v1/lives", {"categoryId": category_id, "size": str(max(limit, 1))}
        )
        raw = content.get("data") if isinstance(content, dict) else None
        lives = self._parse_lives(raw or [])
        return [live.to_live_stream() for live in lives]

    async def list_popular_streams(self, limit: int) -> list[LiveStream]:
        """
        Most watched lives across the platform.

        Endpoints are tried in order until one yields records. Failures of
        individual endpoints are logged and skipped; only when every endpoint
        fails does the last error propagate.
        """
        last_error: Optional[GamePulseError] = None
        answered = False
        for endpoint, extra in _POPULAR_ENDPOINTS:
            params = {"size": str(max(limit, 1)), **extra}
            try:
                content = await self._content(endpoint, params)
                lives = self._parse_lives(extract_live_list(content))
            except GamePulseError as exc:
                logger.warning("chzzk_popular_endpoint_failed", endpoint=endpoint, error=str(exc))
                last_error = exc
                continue
            answered = True
            if lives:
                logger.debug("chzzk_popular_lives", endpoint=endpoint, count=len(lives))
                ranked = sorted(lives, key=lambda l: -l.concurrent_user_count)
                return [live.to_live_stream() for live in ranked[:limit]]

        if not answered and last_error is not None:
            raise last_error
        return []

    # ── Followers ───────────────────────────────────────────────────────
    async def _fetch_follower_count(self, streamer_id: str) -> int:
        content = await self._content(f"/service/v1/channels/{streamer_id}")
        if not content:
            return 0
        return ChzzkChannel.model_validate(content).follower_count
