"""
Streaming REST endpoints.

GET /v1/streaming/games/{game_name} - Cross-platform summary for one game.
GET /v1/streaming/search            - Live streams for a game, most watched first.
GET /v1/streaming/resolve           - Canonical name for a free-text game name.
GET /v1/streaming/top-games         - Most watched games across platforms.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.models.enums import Platform, PlatformFilter

from aggregation.engine import AggregationEngine
from api.dependencies import get_engine, get_resolver
from ingest.normalization.resolver import GameResolver

router = APIRouter(prefix="/v1/streaming", tags=["streaming"])


@router.get("/games/{game_name}")
async def game_summary(
    game_name: str,
    catalog_id: Optional[int] = Query(None, description="External catalog identifier to echo back"),
    include_streams: bool = Query(False),
    platform: PlatformFilter = Query(PlatformFilter.ALL),
    limit: int = Query(20, ge=1, le=100),
    engine: AggregationEngine = Depends(get_engine),
) -> dict[str, Any]:
    """
    Streaming summary for one game.

    Platforms that could not be reached report zero streams and zero viewers.
    With include_streams the live streams are returned alongside.
    """
    summary = await engine.summarize(game_name, catalog_id)
    streams = None
    if include_streams:
        streams = await engine.search_live(game_name, platform, limit)
    return {
        "summary": summary.model_dump(mode="json"),
        "streams": [s.model_dump(mode="json") for s in streams] if streams is not None else None,
    }


@router.get("/search")
async def search_streams(
    game: Optional[str] = Query(None),
    platform: PlatformFilter = Query(PlatformFilter.ALL),
    limit: int = Query(20, ge=1, le=100),
    language: Optional[str] = Query(None),
    engine: AggregationEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Live streams for a game across the selected platforms."""
    if not game or not game.strip():
        raise HTTPException(status_code=400, detail="game is required")
    streams = await engine.search_live(game, platform, limit, language)
    return {"streams": [s.model_dump(mode="json") for s in streams]}


@router.get("/resolve")
async def resolve_name(
    name: str = Query(..., min_length=1),
    platform: Optional[Platform] = Query(None),
    resolver: GameResolver = Depends(get_resolver),
) -> dict[str, str]:
    """Canonical game name for a free-text name; unknown names come back trimmed."""
    canonical = await resolver.resolve(name, platform)
    return {"input": name, "canonical": canonical}


@router.get("/top-games")
async def top_games(
    limit: int = Query(20, ge=1, le=100),
    engine: AggregationEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Most watched games right now, merged across platforms by canonical name."""
    games = await engine.top_games(limit)
    return {"games": [g.model_dump(mode="json") for g in games]}
