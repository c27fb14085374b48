"""
Pydantic v2 domain models shared across all GamePulse services.
These are the canonical wire/internal representations; platform-specific
response shapes live with the platform clients.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import AliasSource, Platform


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Streamers and streams ───────────────────────────────────────────────
class StreamerInfo(DomainModel):
    """A broadcaster on one platform. Identity is (platform, id)."""
    id: str
    platform: Platform
    display_name: str
    login_name: str
    profile_image: Optional[str] = None
    description: Optional[str] = None
    follower_count: int = 0
    is_live: bool = True
    language: Optional[str] = None

    @property
    def identity(self) -> tuple[Platform, str]:
        return self.platform, self.id


class LiveStream(DomainModel):
    """Point-in-time snapshot of one broadcast, valid for a single aggregation pass."""
    id: str
    platform: Platform
    streamer: StreamerInfo
    title: str = ""
    game_name: str = ""
    canonical_game_name: Optional[str] = None
    game_id: Optional[str] = None
    viewer_count: int = Field(default=0, ge=0)
    started_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    language: Optional[str] = None


class GameCategory(DomainModel):
    """A game as a platform's catalog knows it."""
    platform: Platform
    category_id: str
    name: str
    image_url: Optional[str] = None


# ── Identity ────────────────────────────────────────────────────────────
class CanonicalGameMapping(DomainModel):
    """A canonical name with its known aliases partitioned by source."""
    canonical: str
    aliases: dict[AliasSource, list[str]] = Field(default_factory=dict)

    @property
    def all_aliases(self) -> set[str]:
        names = {self.canonical}
        for group in self.aliases.values():
            names.update(group)
        return names


class CatalogMatch(DomainModel):
    """Alternate names for one title as reported by the external game catalog."""
    canonical_name: str
    all_names: list[str] = Field(default_factory=list)
    catalog_id: Optional[int] = None
    steam_app_id: Optional[str] = None
    twitch_game_id: Optional[str] = None


# ── Summaries ───────────────────────────────────────────────────────────
class PlatformBreakdown(DomainModel):
    model_config = ConfigDict(frozen=True)

    live_streams: int = 0
    total_viewers: int = 0
    top_streamers: list[StreamerInfo] = Field(default_factory=list)


class GameStreamingSummary(DomainModel):
    """Cross-platform viewership for one canonical game. Recomputed, never mutated."""
    model_config = ConfigDict(frozen=True)

    game_name: str
    catalog_id: Optional[int] = None
    platforms: dict[Platform, PlatformBreakdown] = Field(default_factory=dict)
    total_viewers: int = 0
    total_streams: int = 0

    @classmethod
    def assemble(
        cls,
        game_name: str,
        breakdowns: dict[Platform, PlatformBreakdown],
        catalog_id: Optional[int] = None,
    ) -> "GameStreamingSummary":
        platforms = {p: breakdowns.get(p, PlatformBreakdown()) for p in Platform}
        return cls(
            game_name=game_name,
            catalog_id=catalog_id,
            platforms=platforms,
            total_viewers=sum(b.total_viewers for b in platforms.values()),
            total_streams=sum(b.live_streams for b in platforms.values()),
        )


class PlatformTotals(DomainModel):
    viewers: int = 0
    streams: int = 0


class TopGameEntry(DomainModel):
    """One row of the cross-platform popular games ranking."""
    game_name: str
    viewers: int = 0
    streams: int = 0
    platforms: dict[Platform, PlatformTotals] = Field(default_factory=dict)
