"""
IGDB enrichment catalog.

Looks a free-text title up in IGDB and returns its canonical name together
with every alternate name IGDB knows (localized titles, abbreviations).
IGDB authenticates with the Twitch app token.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter

from shared.config import Settings, get_settings
from shared.errors import CacheUnavailable, EnrichmentUnavailable, GamePulseError
from shared.models.domain import CatalogMatch
from shared.models.enums import Platform
from shared.utils.http_client import ResilientGateway
from shared.utils.logging import get_logger
from shared.utils.metrics import ENRICHMENT_LOOKUPS
from shared.utils.redis_manager import IGDB_NAMES_KEY, IGDB_SEARCH_KEY, RedisManager

from ingest.providers.auth import CredentialManager

logger = get_logger(__name__)

# IGDB external_games.category values
EXTERNAL_STEAM = 1
EXTERNAL_TWITCH = 14

PREFETCH_BATCH_SIZE = 5
PREFETCH_PAUSE_S = 0.25

_SEARCH_FIELDS = (
    "id, name, slug, alternative_names.name, alternative_names.comment, "
    "first_release_date, external_games.category, external_games.uid"
)


class IGDBModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class IGDBAlternativeName(IGDBModel):
    id: Optional[int] = None
    name: str = ""
    comment: Optional[str] = None


class IGDBExternalGame(IGDBModel):
    id: Optional[int] = None
    category: Optional[int] = None
    uid: Optional[str] = None


class IGDBGame(IGDBModel):
    id: int
    name: str
    slug: Optional[str] = None
    alternative_names: list[IGDBAlternativeName] = []
    external_games: list[IGDBExternalGame] = []
    first_release_date: Optional[int] = None

    def to_match(self) -> CatalogMatch:
        names = [self.name]
        for alt in self.alternative_names:
            if alt.name and alt.name not in names:
                names.append(alt.name)

        steam_app_id: Optional[str] = None
        twitch_game_id: Optional[str] = None
        for ext in self.external_games:
            if ext.category == EXTERNAL_STEAM:
                steam_app_id = ext.uid
            elif ext.category == EXTERNAL_TWITCH:
                twitch_game_id = ext.uid

        return CatalogMatch(
            canonical_name=self.name,
            all_names=names,
            catalog_id=self.id,
            steam_app_id=steam_app_id,
            twitch_game_id=twitch_game_id,
        )


_games_adapter = TypeAdapter(list[IGDBGame])
_match_adapter = TypeAdapter(Optional[CatalogMatch])


def search_query(name: str) -> str:
    """Apicalypse body for a title search."""
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'search "{escaped}"; fields {_SEARCH_FIELDS}; limit 10;'


class IGDBCatalog:
    """Best-effort external catalog lookups, memoized in the durable cache."""

    def __init__(
        self,
        gateway: ResilientGateway,
        credentials: CredentialManager,
        cache: RedisManager,
        settings: Settings | None = None,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._cache = cache
        self._settings = settings or get_settings()

    @property
    def available(self) -> bool:
        return self._settings.enrichment_enabled and self._credentials.has_source(Platform.TWITCH)

    async def lookup(self, name: str) -> CatalogMatch:
        """
        Canonical name and alternate names for the closest IGDB title.

        Raises:
            EnrichmentUnavailable: Not configured, the request failed, or nothing matched.
            CacheUnavailable: The durable cache is unreachable.
        """
        query = name.strip()
        if not query:
            raise EnrichmentUnavailable(name, "empty query")
        if not self.available:
            ENRICHMENT_LOOKUPS.labels(outcome="disabled").inc()
            raise EnrichmentUnavailable(name, "enrichment not configured")

        try:
            match = await self._cache.get_or_compute(
                IGDB_NAMES_KEY.format(query=query.lower()),
                self._settings.igdb_names_ttl_s,
                lambda: self._names(query),
                _match_adapter,
            )
        except CacheUnavailable:
            raise
        except EnrichmentUnavailable:
            ENRICHMENT_LOOKUPS.labels(outcome="error").inc()
            raise

        if match is None:
            ENRICHMENT_LOOKUPS.labels(outcome="miss").inc()
            raise EnrichmentUnavailable(name, "no catalog match")

        ENRICHMENT_LOOKUPS.labels(outcome="hit").inc()
        return match

    async def search(self, name: str) -> list[IGDBGame]:
        """Raw IGDB search results, memoized for the search TTL."""
        return await self._cache.get_or_compute(
            IGDB_SEARCH_KEY.format(query=name.lower()),
            self._settings.igdb_search_ttl_s,
            lambda: self._fetch_games(name),
            _games_adapter,
        )

    async def prefetch(self, names: list[str]) -> int:
        """
        Warm the name cache for a list of titles.

        Titles are looked up in small concurrent batches with a short pause
        between batches. Returns how many titles resolved.
        """
        resolved = 0
        logger.info("igdb_prefetch_started", count=len(names))
        for start in range(0, len(names), PREFETCH_BATCH_SIZE):
            batch = names[start : start + PREFETCH_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.lookup(n) for n in batch), return_exceptions=True
            )
            for title, result in zip(batch, results):
                if isinstance(result, CacheUnavailable):
                    raise result
                if isinstance(result, CatalogMatch):
                    resolved += 1
                else:
                    logger.debug("igdb_prefetch_miss", title=title, error=str(result))
            if start + PREFETCH_BATCH_SIZE < len(names):
                await asyncio.sleep(PREFETCH_PAUSE_S)
        logger.info("igdb_prefetch_complete", count=len(names), resolved=resolved)
        return resolved

    async def _names(self, name: str) -> Optional[CatalogMatch]:
        games = await self.search(name)
        if not games:
            return None
        # First result is IGDB's most relevant match
        return games[0].to_match()

    async def _fetch_games(self, name: str) -> list[IGDBGame]:
        try:
            token = await self._credentials.get_token(Platform.TWITCH)
            resp = await self._gateway.request(
                "POST",
                f"{self._settings.igdb_api_base.rstrip('/')}/games",
                platform="igdb",
                headers={
                    "Client-ID": self._credentials.client_id(Platform.TWITCH),
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "text/plain",
                },
                content=search_query(name),
            )
        except GamePulseError as exc:
            raise EnrichmentUnavailable(name, str(exc)) from exc

        if not resp.is_success:
            logger.warning("igdb_search_failed", query=name, status=resp.status_code)
            raise EnrichmentUnavailable(name, f"status {resp.status_code}")
        try:
            games = _games_adapter.validate_json(resp.content)
        except ValueError as exc:
            raise EnrichmentUnavailable(name, "malformed response") from exc

        logger.debug("igdb_search_complete", query=name, results=len(games))
        return games
