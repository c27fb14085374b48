"""
FastAPI application factory for the GamePulse API service.

Creates the app with:
- Streaming REST routes
- Middleware stack
- Health check endpoints
- Lifespan management (startup/shutdown)
- Background warm-up of the enrichment catalog cache
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Union

from fastapi import FastAPI
from redis.exceptions import RedisError

from shared.config import get_settings
from shared.errors import GamePulseError
from shared.utils.http_client import ResilientGateway
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.redis_manager import RedisManager

from aggregation.engine import AggregationEngine
from api.dependencies import get_redis, init_dependencies
from api.middleware import setup_middleware
from api.routes.streaming import router as streaming_router
from ingest.catalog.igdb import IGDBCatalog
from ingest.normalization.aliases import POPULAR_TITLES
from ingest.normalization.resolver import GameResolver
from ingest.providers.auth import build_credential_manager
from ingest.providers.registry import build_platform_clients

logger = get_logger(__name__)

_CONNECT_RETRY_ATTEMPTS = 10
_CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


async def _warm_catalog(catalog: IGDBCatalog) -> None:
    """Prefetch alternate names for popular titles so first lookups are cache hits."""
    try:
        await catalog.prefetch(list(POPULAR_TITLES))
    except GamePulseError as exc:
        logger.warning("catalog_warmup_failed", error=str(exc))


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without Redis or platform access."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Connects Redis, starts the outbound gateway and wires the engine on
    startup; closes both on shutdown.
    """
    settings = get_settings()
    setup_logging("gamepulse-api", settings=settings)
    start_metrics_server()

    redis = RedisManager(settings)
    await _connect_with_retry(redis.connect, "Redis")

    gateway = ResilientGateway(settings)
    await gateway.start()

    credentials = build_credential_manager(gateway, settings)
    clients = build_platform_clients(settings, gateway, credentials)
    catalog = IGDBCatalog(gateway, credentials, redis, settings)
    resolver = GameResolver(redis, catalog, settings)
    engine = AggregationEngine(clients, resolver, redis, settings)

    init_dependencies(redis, engine)

    warmup_task: Optional[asyncio.Task] = None
    if catalog.available:
        warmup_task = asyncio.create_task(_warm_catalog(catalog))

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        platforms=[p.value for p in clients],
        enrichment=catalog.available,
    )

    yield

    if warmup_task is not None:
        warmup_task.cancel()
        try:
            await warmup_task
        except asyncio.CancelledError:
            pass

    await gateway.close()
    await redis.disconnect()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without Redis."""
    app = FastAPI(
        title="GamePulse API",
        description="Cross-platform live streaming viewership per game",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(streaming_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Union[str, bool]]:
        """Readiness probe: checks the durable cache."""
        redis_ok = False
        try:
            await get_redis().client.ping()
            redis_ok = True
        except (RedisError, RuntimeError) as exc:
            logger.warning("readiness_redis_failed", error=str(exc))

        return {
            "status": "ok" if redis_ok else "degraded",
            "redis": redis_ok,
        }

    return app


app = create_app()
