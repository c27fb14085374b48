"""
Central configuration for all GamePulse services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="GP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log entry")

    # ── Redis ────────────────────────────────────────────────
    redis_url: RedisDsn = Field(default="redis://redis:6379/0")
    redis_max_connections: int = 50

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Gateway ──────────────────────────────────────────────
    request_timeout_s: float = Field(default=5.0, description="Deadline for steady-state platform calls")
    auth_timeout_s: float = Field(default=10.0, description="Deadline for token exchange calls")
    http_max_connections: int = 50

    # ── Credentials ──────────────────────────────────────────
    token_refresh_margin_s: int = Field(
        default=60, description="Refresh a cached token once it is this close to expiry"
    )

    # ── Twitch ───────────────────────────────────────────────
    twitch_client_id: str = ""
    twitch_client_secret: str = ""
    twitch_api_base: str = "https://api.twitch.tv/helix"
    twitch_token_url: str = "https://id.twitch.tv/oauth2/token"

    # ── Chzzk ────────────────────────────────────────────────
    chzzk_client_id: str = ""
    chzzk_client_secret: str = ""
    chzzk_api_base: str = "https://api.chzzk.naver.com"
    chzzk_token_url: str = "https://openapi.chzzk.naver.com/auth/v1/token"

    # ── IGDB ─────────────────────────────────────────────────
    igdb_api_base: str = "https://api.igdb.com/v4"
    enrichment_enabled: bool = True

    # ── Aggregation ──────────────────────────────────────────
    summary_page_size: int = 100
    search_default_limit: int = 20
    top_streamers_count: int = 10
    top_games_count: int = 20
    popular_streams_page_size: int = 100
    enrich_follower_counts: bool = False

    # ── Resolver ─────────────────────────────────────────────
    resolver_similarity_threshold: float = 0.6
    resolver_min_substring_length: int = Field(
        default=1,
        description="Shortest alias eligible for substring containment matching",
    )

    # ── Cache TTLs (seconds) ─────────────────────────────────
    alias_cache_ttl_s: int = 86400 * 7
    igdb_search_ttl_s: int = 86400
    igdb_names_ttl_s: int = 86400 * 7
    summary_cache_ttl_s: int = 60
    search_cache_ttl_s: int = 60
    top_games_cache_ttl_s: int = 120

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def redis_url_str(self) -> str:
        return str(self.redis_url)

    @property
    def twitch_configured(self) -> bool:
        return bool(self.twitch_client_id and self.twitch_client_secret)

    @property
    def chzzk_configured(self) -> bool:
        return bool(self.chzzk_client_id and self.chzzk_client_secret)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
