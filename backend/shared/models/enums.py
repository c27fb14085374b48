"""Domain enumerations for the GamePulse platform."""
from __future__ import annotations

from enum import Enum


class Platform(str, Enum):
    TWITCH = "twitch"
    CHZZK = "chzzk"


class AliasSource(str, Enum):
    """Where a known alias came from."""
    STATIC = "static"
    PLATFORM = "platform"
    EXTERNAL = "external"


class ResolutionTier(str, Enum):
    """Which lookup step produced a canonical name."""
    PLATFORM_ALIAS = "platform_alias"
    GENERAL_ALIAS = "general_alias"
    DISCOVERED = "discovered"
    DURABLE_CACHE = "durable_cache"
    SUBSTRING = "substring"
    ENRICHMENT = "enrichment"
    UNCHANGED = "unchanged"


class PlatformFilter(str, Enum):
    ALL = "all"
    TWITCH = "twitch"
    CHZZK = "chzzk"

    def includes(self, platform: Platform) -> bool:
        return self == PlatformFilter.ALL or self.value == platform.value
