"""
Game identity resolution.
Maps free-text game names from any platform to one canonical name.

Resolution order, each step tried only when the previous one found nothing:
  1. platform display-name table (when a platform hint is given)
  2. general alias table
  3. aliases discovered at runtime (in memory)
  4. durable alias cache (read-through into memory)
  5. substring containment against the general table
  6. external catalog enrichment
  7. the trimmed input, unchanged
"""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, NamedTuple, Optional, Protocol, TypeVar

from pydantic import BaseModel

from shared.config import Settings, get_settings
from shared.errors import EnrichmentUnavailable
from shared.models.domain import CanonicalGameMapping, CatalogMatch
from shared.models.enums import AliasSource, Platform, ResolutionTier
from shared.utils.logging import get_logger
from shared.utils.metrics import RESOLUTIONS
from shared.utils.redis_manager import RedisManager

from ingest.normalization.aliases import GAME_ALIASES, GameAliasEntry
from ingest.normalization.similarity import name_similarity, normalize

logger = get_logger(__name__)


class CatalogLookup(Protocol):
    async def lookup(self, name: str) -> CatalogMatch: ...


# Items merged by canonical name carry a `game_name` field
T = TypeVar("T", bound=BaseModel)


class BestMatch(NamedTuple):
    match: str
    similarity: float


class AliasIndex:
    """
    Case-insensitive alias maps.

    Every canonical name is a key of the general map pointing at itself, and
    no later write may repoint a canonical key at another title. That keeps
    canonical names fixed points of resolution.
    """

    def __init__(self, entries: Iterable[GameAliasEntry] = GAME_ALIASES) -> None:
        self._general: dict[str, str] = {}
        self._platform: dict[Platform, dict[str, str]] = {p: {} for p in Platform}
        self._dynamic: dict[str, str] = {}
        self._canonical_keys: dict[str, str] = {}
        self._groups: dict[str, dict[AliasSource, list[str]]] = {}

        entries = list(entries)
        # Aliases first, canonicals last: on conflicts the last entry wins,
        # but a canonical name always maps to itself
        for entry in entries:
            self._write_static(entry)
        for entry in entries:
            self._pin_canonical(entry.canonical)

    # ── Writes ──────────────────────────────────────────────────────────
    def _claimable(self, key: str, canonical: str) -> bool:
        owner = self._canonical_keys.get(key)
        return owner is None or owner == canonical

    def _group(self, canonical: str, source: AliasSource) -> list[str]:
        return self._groups.setdefault(canonical, {}).setdefault(source, [])

    def _remember(self, canonical: str, source: AliasSource, alias: str) -> None:
        group = self._group(canonical, source)
        if alias not in group:
            group.append(alias)

    def _write_static(self, entry: GameAliasEntry) -> None:
        self._groups.setdefault(entry.canonical, {})
        for alias in entry.aliases:
            key = normalize(alias)
            if self._claimable(key, entry.canonical):
                self._general[key] = entry.canonical
                self._remember(entry.canonical, AliasSource.STATIC, alias)
        for platform in Platform:
            for display in entry.platform_names(platform):
                key = normalize(display)
                self._platform[platform][key] = entry.canonical
                self._remember(entry.canonical, AliasSource.PLATFORM, display)

    def _pin_canonical(self, canonical: str) -> None:
        key = normalize(canonical)
        self._canonical_keys[key] = canonical
        self._general[key] = canonical
        self._groups.setdefault(canonical, {})

    def add_entry(self, entry: GameAliasEntry) -> None:
        self._write_static(entry)
        self._pin_canonical(entry.canonical)

    def add_discovered(
        self,
        alias: str,
        canonical: str,
        source: AliasSource = AliasSource.EXTERNAL,
        platform: Optional[Platform] = None,
    ) -> bool:
        """Map alias to canonical. Returns False when alias is another title's canonical name."""
        key = normalize(alias)
        if not key or not self._claimable(key, canonical):
            return False
        if source == AliasSource.PLATFORM and platform is not None:
            self._platform[platform][key] = canonical
        else:
            self._dynamic[key] = canonical
        self._remember(canonical, source, alias)
        return True

    def pin_discovered_canonical(self, canonical: str) -> None:
        key = normalize(canonical)
        if key in self._general or key in self._canonical_keys:
            return
        self._canonical_keys[key] = canonical
        self._dynamic[key] = canonical
        self._groups.setdefault(canonical, {})

    # ── Reads ───────────────────────────────────────────────────────────
    def platform_lookup(self, key: str, platform: Optional[Platform]) -> Optional[str]:
        if platform is None:
            return None
        return self._platform[platform].get(key)

    def general_lookup(self, key: str) -> Optional[str]:
        return self._general.get(key)

    def dynamic_lookup(self, key: str) -> Optional[str]:
        return self._dynamic.get(key)

    def substring_lookup(self, key: str, min_length: int = 1) -> Optional[str]:
        """First general alias where one string contains the other."""
        for alias, canonical in self._general.items():
            if alias in key and len(alias) >= min_length:
                return canonical
            if key in alias and len(key) >= min_length:
                return canonical
        return None

    def mappings(self) -> list[CanonicalGameMapping]:
        return [
            CanonicalGameMapping(
                canonical=canonical,
                aliases={source: list(names) for source, names in groups.items()},
            )
            for canonical, groups in self._groups.items()
        ]

    def __len__(self) -> int:
        return len(self._general) + len(self._dynamic) + sum(len(m) for m in self._platform.values())


class GameResolver:
    """
    Resolves game names to canonical names. Resolution never fails: the worst
    case is the trimmed input coming back unchanged.
    """

    def __init__(
        self,
        cache: Optional[RedisManager] = None,
        catalog: Optional[CatalogLookup] = None,
        settings: Settings | None = None,
        index: Optional[AliasIndex] = None,
    ) -> None:
        self._cache = cache
        self._catalog = catalog
        self._settings = settings or get_settings()
        self._index = index if index is not None else AliasIndex()

    @property
    def index(self) -> AliasIndex:
        return self._index

    # ── Memory-only resolution ──────────────────────────────────────────
    def _exact(self, key: str, platform: Optional[Platform]) -> Optional[tuple[str, ResolutionTier]]:
        canonical = self._index.platform_lookup(key, platform)
        if canonical:
            return canonical, ResolutionTier.PLATFORM_ALIAS
        canonical = self._index.general_lookup(key)
        if canonical:
            return canonical, ResolutionTier.GENERAL_ALIAS
        canonical = self._index.dynamic_lookup(key)
        if canonical:
            return canonical, ResolutionTier.DISCOVERED
        return None

    def match(self, name: str, platform: Optional[Platform] = None) -> Optional[str]:
        """Canonical name from the in-memory tables, or None when nothing matches."""
        key = normalize(name)
        if not key:
            return None
        hit = self._exact(key, platform)
        if hit:
            return hit[0]
        return self._index.substring_lookup(key, self._settings.resolver_min_substring_length)

    def standardize(self, name: str, platform: Optional[Platform] = None) -> str:
        """Resolve from the in-memory tables only (no cache or catalog I/O)."""
        return self.match(name, platform) or name.strip()

    # ── Full resolution ─────────────────────────────────────────────────
    async def resolve(self, name: str, platform: Optional[Platform] = None) -> str:
        """
        Resolve a name through every tier, including the durable cache and
        the external catalog.

        Raises:
            CacheUnavailable: The durable cache is unreachable.
        """
        trimmed = name.strip()
        key = normalize(trimmed)
        if not key:
            return ""

        hit = self._exact(key, platform)
        if hit:
            canonical, tier = hit
            RESOLUTIONS.labels(tier=tier.value).inc()
            return canonical

        if self._cache is not None:
            durable = await self._cache.get_alias(key)
            if durable:
                self._index.pin_discovered_canonical(durable)
                self._index.add_discovered(trimmed, durable)
                RESOLUTIONS.labels(tier=ResolutionTier.DURABLE_CACHE.value).inc()
                return durable

        substring = self._index.substring_lookup(key, self._settings.resolver_min_substring_length)
        if substring:
            RESOLUTIONS.labels(tier=ResolutionTier.SUBSTRING.value).inc()
            return substring

        if self._catalog is not None:
            canonical = await self._enrich(trimmed)
            if canonical:
                RESOLUTIONS.labels(tier=ResolutionTier.ENRICHMENT.value).inc()
                return canonical

        RESOLUTIONS.labels(tier=ResolutionTier.UNCHANGED.value).inc()
        return trimmed

    async def _enrich(self, name: str) -> Optional[str]:
        try:
            match = await self._catalog.lookup(name)
        except EnrichmentUnavailable as exc:
            logger.debug("enrichment_unavailable", name=name, reason=exc.reason)
            return None

        # Fold into a known title only on an exact alias hit; containment would
        # turn "Rocket League" into "League of Legends"
        hit = self._exact(normalize(match.canonical_name), None)
        canonical = hit[0] if hit else match.canonical_name.strip()
        await self.register_aliases(
            canonical,
            [match.canonical_name, *match.all_names, name],
            source=AliasSource.EXTERNAL,
        )
        return canonical

    # ── Registration ────────────────────────────────────────────────────
    async def register_aliases(
        self,
        canonical: str,
        names: Iterable[str],
        source: AliasSource = AliasSource.EXTERNAL,
        platform: Optional[Platform] = None,
    ) -> list[str]:
        """
        Map every name to canonical in memory and in the durable cache.

        Returns the aliases that were accepted. Writes are last-write-wins per
        alias key.

        Raises:
            CacheUnavailable: The durable cache is unreachable.
        """
        self._index.pin_discovered_canonical(canonical)
        accepted: list[str] = []
        seen: set[str] = set()
        for alias in [canonical, *names]:
            key = normalize(alias)
            if not key or key in seen:
                continue
            seen.add(key)
            if self._index.add_discovered(alias.strip(), canonical, source, platform):
                accepted.append(alias.strip())

        if self._cache is not None and accepted:
            ttl = self._settings.alias_cache_ttl_s
            await asyncio.gather(*(self._cache.set_alias(a, canonical, ttl) for a in accepted))

        logger.info(
            "alias_discovered",
            canonical=canonical,
            source=source.value,
            platform=platform.value if platform else None,
            count=len(accepted),
        )
        return accepted

    def add_mapping(
        self,
        canonical: str,
        aliases: Iterable[str],
        twitch_names: Iterable[str] = (),
        chzzk_names: Iterable[str] = (),
    ) -> None:
        """Add a static-style entry at runtime (memory only)."""
        self._index.add_entry(
            GameAliasEntry(
                canonical,
                aliases=tuple(aliases),
                twitch_names=tuple(twitch_names),
                chzzk_names=tuple(chzzk_names),
            )
        )

    def mappings(self) -> list[CanonicalGameMapping]:
        return self._index.mappings()

    # ── Comparison ──────────────────────────────────────────────────────
    def is_same_game(self, a: str, b: str) -> bool:
        return normalize(self.standardize(a)) == normalize(self.standardize(b))

    def similarity(self, a: str, b: str) -> float:
        """1.0 for names that standardize to the same title, otherwise edit-distance similarity."""
        if normalize(a) == normalize(b) or self.is_same_game(a, b):
            return 1.0
        return name_similarity(a, b)

    def find_best_match(
        self, name: str, candidates: Iterable[str], threshold: Optional[float] = None
    ) -> Optional[BestMatch]:
        """
        Most similar candidate at or above threshold.

        A candidate that standardizes to the same title wins immediately.
        """
        threshold = self._settings.resolver_similarity_threshold if threshold is None else threshold
        target = normalize(self.standardize(name))
        best: Optional[BestMatch] = None
        for candidate in candidates:
            if normalize(self.standardize(candidate)) == target:
                return BestMatch(candidate, 1.0)
            score = name_similarity(name, candidate)
            if best is None or score > best.similarity:
                best = BestMatch(candidate, score)
        if best is not None and best.similarity >= threshold:
            return best
        return None

    def merge_by_canonical_name(
        self,
        twitch_items: Iterable[T],
        chzzk_items: Iterable[T],
        merge: Callable[[T, T], T],
    ) -> dict[str, T]:
        """
        Key items from both platforms by canonical game name.

        Each item is renamed to its canonical name; items from the two
        platforms that land on the same name are combined with merge.
        """
        merged: dict[str, T] = {}
        for platform, items in ((Platform.TWITCH, twitch_items), (Platform.CHZZK, chzzk_items)):
            for item in items:
                canonical = self.standardize(item.game_name, platform) or item.game_name
                renamed = item.model_copy(update={"game_name": canonical})
                existing = merged.get(canonical)
                merged[canonical] = merge(existing, renamed) if existing is not None else renamed
        return merged
