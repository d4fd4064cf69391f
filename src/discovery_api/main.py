#!/usr/bin/env python3
"""
FastAPI main application for the story discovery engine.
Provides REST API endpoints for search, nearby, trending and discovery.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from discovery.errors import ContentStoreUnavailable
from discovery.orchestrator import DiscoveryEngine, build_engine
from discovery.schema import (
    Cluster, ContentItem, DiscoveryPreferences, EngineStatus, GeoPoint, SearchOptions,
    SearchResponse, SearchResult, SortBy, Timeframe
)

logger = logging.getLogger(__name__)


class SearchRequest(SearchOptions):
    """API request model for search queries."""
    query: str = Field(default="", max_length=500)


class DiscoverRequest(BaseModel):
    """Discovery feed request."""
    model_config = ConfigDict(extra='forbid')

    user_id: Optional[str] = None
    preferences: DiscoveryPreferences = Field(default_factory=DiscoveryPreferences)
    limit: int = Field(ge=1, le=100, default=20)


class ClusterRequest(BaseModel):
    """Points to group for map display."""
    model_config = ConfigDict(extra='forbid')

    points: List[GeoPoint]
    radius_km: Optional[float] = None


class RebuildResponse(BaseModel):
    rebuilt: bool
    status: EngineStatus


def get_engine(request: Request) -> DiscoveryEngine:
    return request.app.state.engine


def service_error(action: str, error: Exception) -> HTTPException:
    """Map an engine failure onto an HTTP error."""
    if isinstance(error, ContentStoreUnavailable):
        logger.error(f"{action} failed, content store unavailable: {error}")
        return HTTPException(status_code=503, detail=f"{action} failed: content store unavailable")
    logger.exception(f"{action} failed")
    return HTTPException(status_code=500, detail=f"{action} failed: {error}")


def create_app(engine: Optional[DiscoveryEngine] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        engine: Engine to serve; built from configuration when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Story Discovery Engine",
        description="Text, nearby, trending and discovery search over travel stories",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine or build_engine()

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Story Discovery Engine",
            "version": "1.0.0",
            "description": "Text, nearby, trending and discovery search over travel stories",
            "endpoints": {
                "search": "/search",
                "nearby": "/nearby",
                "nearby_clusters": "/nearby/clusters",
                "trending": "/trending",
                "discover": "/discover",
                "suggestions": "/suggestions",
                "clusters": "/clusters",
                "popular_tags": "/tags/popular",
                "history": "/history",
                "rebuild_index": "/index/rebuild",
                "health": "/health",
                "docs": "/docs"
            }
        }

    @app.get("/health")
    async def health_check(engine: DiscoveryEngine = Depends(get_engine)):
        """Health check endpoint."""
        status = engine.status()
        return {
            "status": "degraded" if status.degraded else "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "engine": status.model_dump(mode='json')
        }

    @app.post("/search", response_model=SearchResponse)
    async def search_stories(request: SearchRequest, engine: DiscoveryEngine = Depends(get_engine)):
        """
        Search stories.

        **Query Flow:**
        1. Blank query -> newest stories (browse)
        2. Prefix, token-index and tag strategies run concurrently
        3. Fuse scores (prefix 3, token 2, tag 1)
        4. Filter, sort and paginate
        """
        options = SearchOptions.model_validate(request.model_dump(exclude={"query"}))
        try:
            return await engine.search(request.query, options)
        except Exception as e:
            raise service_error("Search", e) from e

    @app.get("/search", response_model=SearchResponse)
    async def search_stories_get(
        q: str = Query("", description="Search query"),
        sort_by: SortBy = Query(SortBy.RELEVANCE, description="Result ordering"),
        limit: int = Query(20, ge=1, le=100, description="Number of results"),
        offset: int = Query(0, ge=0, description="Results to skip"),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        """GET endpoint for simple search queries."""
        options = SearchOptions(sort_by=sort_by, limit=limit, offset=offset)
        try:
            return await engine.search(q, options)
        except Exception as e:
            raise service_error("Search", e) from e

    @app.get("/nearby", response_model=List[SearchResult])
    async def nearby_stories(
        lat: float = Query(..., ge=-90, le=90),
        lng: float = Query(..., ge=-180, le=180),
        radius_km: float = Query(10.0, description="Search radius in kilometers"),
        limit: Optional[int] = Query(None, ge=1, le=500),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        """Stories within radius_km of a point, nearest first."""
        try:
            return await engine.nearby(lat, lng, radius_km, limit)
        except Exception as e:
            raise service_error("Nearby search", e) from e

    @app.get("/nearby/clusters", response_model=List[Cluster])
    async def nearby_clusters(
        lat: float = Query(..., ge=-90, le=90),
        lng: float = Query(..., ge=-180, le=180),
        radius_km: float = Query(10.0),
        cluster_radius_km: Optional[float] = Query(None),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        """Clustered locations of nearby stories for map display."""
        try:
            return await engine.nearby_clusters(lat, lng, radius_km, cluster_radius_km)
        except Exception as e:
            raise service_error("Nearby clustering", e) from e

    @app.get("/trending", response_model=List[ContentItem])
    async def trending_stories(
        timeframe: Timeframe = Query(Timeframe.WEEK),
        limit: int = Query(20, ge=1, le=100),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        try:
            return await engine.trending(timeframe, limit)
        except Exception as e:
            raise service_error("Trending", e) from e

    @app.post("/discover", response_model=List[ContentItem])
    async def discover_stories(request: DiscoverRequest, engine: DiscoveryEngine = Depends(get_engine)):
        """Personalized discovery feed, excluding the requester's own stories."""
        try:
            return await engine.discover(request.user_id, request.preferences, request.limit)
        except Exception as e:
            raise service_error("Discovery", e) from e

    @app.get("/suggestions", response_model=List[str])
    async def search_suggestions(
        prefix: str = Query(..., description="Text typed so far"),
        limit: int = Query(5, ge=1, le=20),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        try:
            return await engine.suggestions(prefix, limit)
        except Exception as e:
            raise service_error("Suggestions", e) from e

    @app.post("/clusters", response_model=List[Cluster])
    async def cluster_points(request: ClusterRequest, engine: DiscoveryEngine = Depends(get_engine)):
        """Group points lying within radius_km of a cluster seed."""
        return engine.cluster_points(request.points, request.radius_km)

    @app.get("/tags/popular", response_model=List[str])
    async def popular_tags(
        limit: int = Query(20, ge=1, le=100),
        engine: DiscoveryEngine = Depends(get_engine)
    ):
        return await engine.popular_tags(limit)

    @app.get("/history")
    async def search_history(engine: DiscoveryEngine = Depends(get_engine)):
        return {"history": engine.history()}

    # Plain def so the history file write runs in the threadpool
    @app.delete("/history")
    def clear_search_history(engine: DiscoveryEngine = Depends(get_engine)):
        engine.clear_history()
        return {"cleared": True}

    @app.post("/index/rebuild", response_model=RebuildResponse)
    async def rebuild_index(engine: DiscoveryEngine = Depends(get_engine)):
        """Rebuild the in-memory search index from the content store."""
        rebuilt = await engine.rebuild_index()
        return RebuildResponse(rebuilt=rebuilt, status=engine.status())

    return app


def main():
    """Run the API server."""
    import argparse

    import uvicorn

    from discovery.config import load_config

    parser = argparse.ArgumentParser(description="Story discovery API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--config", help="Discovery config YAML")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    app = create_app(build_engine(load_config(args.config)))
    logger.info(f"Starting discovery API on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
