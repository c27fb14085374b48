"""
Dependency injection for the API service.
Provides the Redis manager and the aggregation engine to route handlers.
"""
from __future__ import annotations

from shared.utils.redis_manager import RedisManager

from aggregation.engine import AggregationEngine
from ingest.normalization.resolver import GameResolver

# Module-level singletons, initialized at startup
_redis: RedisManager | None = None
_engine: AggregationEngine | None = None


def init_dependencies(redis: RedisManager, engine: AggregationEngine) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _redis, _engine
    _redis = redis
    _engine = engine


def get_redis() -> RedisManager:
    """FastAPI dependency: returns the shared RedisManager."""
    if _redis is None:
        raise RuntimeError("RedisManager not initialized; call init_dependencies first")
    return _redis


def get_engine() -> AggregationEngine:
    """FastAPI dependency: returns the shared AggregationEngine."""
    if _engine is None:
        raise RuntimeError("AggregationEngine not initialized; call init_dependencies first")
    return _engine


def get_resolver() -> GameResolver:
    """FastAPI dependency: returns the resolver the engine uses."""
    return get_engine().resolver
