"""
Twitch provider connector.
Fetches live data from the Helix API and converts it to shared stream models.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from shared.errors import GamePulseError, PlatformAPIError
from shared.models.domain import GameCategory, LiveStream
from shared.models.enums import Platform
from shared.utils.logging import get_logger

from ingest.providers.base import BasePlatformClient
from ingest.providers.schemas import TwitchGame, TwitchStream, TwitchUser, parse_live_streams

logger = get_logger(__name__)

# Helix caps page size and repeated id parameters at 100
_MAX_PAGE = 100

_users_adapter = TypeAdapter(list[TwitchUser])
_games_adapter = TypeAdapter(list[TwitchGame])


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class TwitchClient(BasePlatformClient):
    """Twitch Helix API connector. Every call carries an app access token."""

    platform = Platform.TWITCH

    @property
    def _base(self) -> str:
        return self._settings.twitch_api_base.rstrip("/")

    async def _headers(self) -> dict[str, str]:
        token = await self._credentials.get_token(self.platform)
        return {
            "Authorization": f"Bearer {token}",
            "Client-Id": self._credentials.client_id(self.platform),
        }

    async def _helix(self, endpoint: str, params: Any) -> Any:
        body = await self._get_json(
            f"{self._base}{endpoint}", params=params, headers=await self._headers()
        )
        if not isinstance(body, dict):
            raise PlatformAPIError(self.platform.value, 200, "unexpected response shape")
        return body

    def _parse(self, adapter: TypeAdapter, body: dict[str, Any]) -> list[Any]:
        try:
            return adapter.validate_python(body.get("data") or [])
        except ValidationError as exc:
            raise PlatformAPIError(self.platform.value, 200, f"unexpected payload: {exc.error_count()} errors") from exc

    # ── Catalog ─────────────────────────────────────────────────────────
    async def _find_category(self, name: str) -> Optional[GameCategory]:
        body = await self._helix("/games", {"name": name})
        games: list[TwitchGame] = self._parse(_games_adapter, body)
        if not games:
            return None
        game = games[0]
        return GameCategory(
            platform=self.platform,
            category_id=game.id,
            name=game.name,
            image_url=game.box_art_url or None,
        )

    # ── Streams ─────────────────────────────────────────────────────────
    async def list_live_streams(
        self, category_id: str, limit: int, language: Optional[str] = None
    ) -> list[LiveStream]:
        params: dict[str, str] = {"game_id": category_id, "first": str(min(max(limit, 1), _MAX_PAGE))}
        if language:
            params["language"] = language
        return await self._list_streams(params)

    async def list_popular_streams(self, limit: int) -> list[LiveStream]:
        return await self._list_streams({"first": str(min(max(limit, 1), _MAX_PAGE))})

    async def _list_streams(self, params: dict[str, str]) -> list[LiveStream]:
        body = await self._helix("/streams", params)
        try:
            streams: list[TwitchStream] = parse_live_streams(self.platform, body.get("data") or [])
        except ValidationError as exc:
            raise PlatformAPIError(self.platform.value, 200, f"unexpected payload: {exc.error_count()} errors") from exc
        if not streams:
            return []
        users = await self._users_by_id([s.user_id for s in streams])
        return [s.to_live_stream(users.get(s.user_id)) for s in streams]

    async def _users_by_id(self, user_ids: list[str]) -> dict[str, TwitchUser]:
        """Profile lookup for stream owners; failures leave profiles empty."""
        users: dict[str, TwitchUser] = {}
        for chunk in _chunks(list(dict.fromkeys(user_ids)), _MAX_PAGE):
            try:
                body = await self._helix("/users", [("id", uid) for uid in chunk])
                for user in self._parse(_users_adapter, body):
                    users[user.id] = user
            except GamePulseError as exc:
                logger.warning("twitch_users_failed", count=len(chunk), error=str(exc))
        return users

    # ── Followers ───────────────────────────────────────────────────────
    async def _fetch_follower_count(self, streamer_id: str) -> int:
        body = await self._helix(
            "/channels/followers", {"broadcaster_id": streamer_id, "first": "1"}
        )
        return int(body.get("total") or 0)
