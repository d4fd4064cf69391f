#!/usr/bin/env python3
"""
Discovery orchestrator - coordinates story search, nearby search, trending and discovery.

Store calls are synchronous; they run on the default executor with a per-call
timeout so a slow store degrades a single strategy instead of the whole request.
"""

import asyncio
import functools
import logging
import random
import time
from typing import Dict, List, Optional

from .blend import FusionConfig, ResultBlender
from .cluster import ProximityClusterer
from .config import DiscoveryConfig, load_config
from .errors import (
    ContentStoreUnavailable, ErrorKind, InvalidQuery, StrategyResult, TransientFetchError
)
from .geohash import query_bounds
from .history import SearchHistory
from .inverted_index import InvertedIndex
from .opensearch_store import OpenSearchContentStore
from .proximity import haversine_many_km
from .schema import (
    Cluster, ContentItem, DiscoveryPreferences, EngineStatus, GeoPoint, SearchOptions,
    SearchResponse, SearchResult, SortBy, Timeframe
)
from .store import HIGH_SENTINEL, ContentStore, InMemoryContentStore
from .strategies import default_strategies
from .trending import TrendingRanker

logger = logging.getLogger(__name__)

DEFAULT_POPULAR_TAGS = [
    'travel', 'adventure', 'backpacking', 'foodie', 'photography',
    'nature', 'culture', 'solo', 'budget', 'luxury', 'beach', 'mountains',
    'city', 'roadtrip', 'hiking', 'sunset', 'wanderlust', 'explore'
]

DISCOVER_FETCH_SIZE = 100
DISCOVER_MAX_TAGS = 10
POPULAR_TAGS_SAMPLE = 200
SUGGESTIONS_PER_SOURCE = 3
MIN_SUGGESTION_PREFIX = 2


class DiscoveryEngine:
    """
    Story discovery service.

    Owns the inverted index and search history for one store; create one
    engine per store (tests create one per case).
    """

    def __init__(
        self,
        store: ContentStore,
        config: Optional[DiscoveryConfig] = None,
        search_history: Optional[SearchHistory] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the discovery engine.

        Args:
            store: Read-only story store
            config: Engine configuration (defaults when omitted)
            search_history: History backend; built from config when omitted
            rng: Random source for discovery shuffling; seed it for repeatable feeds
        """
        self.store = store
        self.config = config or DiscoveryConfig()
        self.index = InvertedIndex(page_size=self.config.index_page_size)
        self.search_history = search_history or SearchHistory(
            self.config.history_path, self.config.history_max_entries
        )
        self.ranker = TrendingRanker()
        self.blender = ResultBlender(
            FusionConfig(weights=dict(self.config.strategy_weights)), self.ranker
        )
        self.clusterer = ProximityClusterer()
        self.strategies = default_strategies(store, self.index, self.config.strategy_limit)
        self.rng = rng or random.Random()

    async def _run(self, func, *args):
        """Run a blocking store call on the executor, bounded by fetch_timeout_s."""
        loop = asyncio.get_running_loop()
        timeout = self.config.fetch_timeout_s
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(func, *args)),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            name = getattr(func, '__qualname__', repr(func))
            raise TransientFetchError(f"{name} timed out after {timeout}s") from e

    async def _run_strategy(self, strategy, query: str) -> StrategyResult:
        try:
            return await self._run(strategy.search, query)
        except TransientFetchError as e:
            return StrategyResult.failed(strategy.name, ErrorKind.TRANSIENT_FETCH, str(e))

    # ==================== INDEX ====================

    async def rebuild_index(self) -> bool:
        """Rebuild the inverted index; the previous snapshot stays live on failure."""
        try:
            return await self._run(self.index.rebuild, self.store)
        except TransientFetchError as e:
            logger.error(f"Index rebuild timed out: {e}")
            self.index.degraded = True
            self.index.last_error = str(e)
            return False

    async def _ensure_index(self) -> None:
        if not self.index.is_ready and self.config.auto_build_index:
            logger.info("Search index not built yet, building on first query")
            await self.rebuild_index()

    # ==================== SEARCH ====================

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> SearchResponse:
        """
        Search stories by text.

        Blank queries browse the newest stories instead.

        Args:
            query: Free-text query
            options: Filters, ordering and pagination

        Returns:
            One page of results with total count and degradation info

        Raises:
            ContentStoreUnavailable: if the store cannot be reached
        """
        start_time = time.time()
        options = options or SearchOptions()
        query = (query or "").strip()

        if not query:
            return await self._browse(options, start_time)

        await self._ensure_index()

        results = await asyncio.gather(
            *(self._run_strategy(strategy, query) for strategy in self.strategies)
        )

        failed = [r.name for r in results if not r.ok]
        for r in results:
            if not r.ok:
                logger.warning(f"Strategy {r.name} failed ({r.error.value}): {r.message}")
        degraded = len(failed) == len(results)

        ranked = self.blender.blend(results, options.filters, options.sort_by)
        page, has_more = self.blender.paginate(ranked, options.offset, options.limit)

        # Recording may write the history file
        await asyncio.get_running_loop().run_in_executor(None, self.search_history.record, query)

        search_time = int((time.time() - start_time) * 1000)
        logger.debug(f"Search {query!r} matched {len(ranked)} stories in {search_time}ms")

        return SearchResponse(
            items=page,
            total=len(ranked),
            has_more=has_more,
            search_time_ms=search_time,
            degraded=degraded,
            failed_strategies=failed
        )

    async def _browse(self, options: SearchOptions, start_time: float) -> SearchResponse:
        fetch_size = (options.limit + options.offset) * 2
        try:
            items = await self._run(self.store.latest_items, fetch_size)
        except TransientFetchError as e:
            logger.warning(f"Browse fetch failed: {e}")
            return SearchResponse(
                items=[], total=0, has_more=False,
                search_time_ms=int((time.time() - start_time) * 1000),
                degraded=True
            )

        results = [SearchResult(item=item) for item in items if not item.is_draft]
        results = self.blender.apply_filters(results, options.filters)

        sort_by = SortBy.NEWEST if options.sort_by == SortBy.RELEVANCE else options.sort_by
        ordered = self.blender.sort(results, sort_by)
        page, has_more = self.blender.paginate(ordered, options.offset, options.limit)

        return SearchResponse(
            items=page,
            total=len(ordered),
            has_more=has_more,
            search_time_ms=int((time.time() - start_time) * 1000)
        )

    async def semantic_search(self, query: str, limit: int = 20) -> List[SearchResult]:
        """Embedding search is not available; always returns no results."""
        logger.info(f"Semantic search requested for {query!r} (limit {limit}); not supported, returning no results")
        return []

    # ==================== GEOSPATIAL ====================

    async def _fetch_bound(self, start: str, end: str) -> List[ContentItem]:
        try:
            return await self._run(
                self.store.prefix_range, "geohash", start, end, self.config.geohash_fetch_limit
            )
        except TransientFetchError as e:
            logger.warning(f"Geohash range [{start}, {end}] failed, skipping: {e}")
            return []

    async def nearby(self, lat: float, lng: float, radius_km: float,
                     limit: Optional[int] = None) -> List[SearchResult]:
        """
        Find published stories within radius_km of a point, nearest first.

        Args:
            lat: Center latitude
            lng: Center longitude
            radius_km: Search radius in kilometers
            limit: Maximum results (all when None)

        Returns:
            Results carrying distance_km, ascending by distance
        """
        try:
            bounds = query_bounds(lat, lng, radius_km, self.config.geohash_precision)
        except InvalidQuery as e:
            logger.warning(f"Invalid nearby query: {e}")
            return []

        batches = await asyncio.gather(*(self._fetch_bound(start, end) for start, end in bounds))

        candidates: Dict[str, ContentItem] = {}
        for batch in batches:
            for item in batch:
                if item.is_draft or item.location is None:
                    continue
                candidates.setdefault(item.id, item)

        if not candidates:
            return []

        items = list(candidates.values())
        distances = haversine_many_km(
            lat, lng,
            [item.location.lat for item in items],
            [item.location.lng for item in items]
        )

        results = [
            SearchResult(item=item, distance_km=float(distance))
            for item, distance in zip(items, distances)
            if distance <= radius_km
        ]
        results.sort(key=lambda r: (r.distance_km, r.item.id))

        logger.debug(
            f"Nearby ({lat}, {lng}) r={radius_km}km: {len(bounds)} bounds, "
            f"{len(items)} candidates, {len(results)} within radius"
        )
        return results[:limit] if limit else results

    async def nearby_clusters(self, lat: float, lng: float, radius_km: float,
                              cluster_radius_km: Optional[float] = None) -> List[Cluster]:
        """Cluster the locations of nearby stories for a map viewport."""
        results = await self.nearby(lat, lng, radius_km)
        if cluster_radius_km is None:
            cluster_radius_km = self.config.default_cluster_radius_km
        try:
            return self.clusterer.cluster_items([r.item for r in results], cluster_radius_km)
        except InvalidQuery as e:
            logger.warning(f"Invalid cluster radius: {e}")
            return []

    def cluster_points(self, points: List[GeoPoint],
                       radius_km: Optional[float] = None) -> List[Cluster]:
        """Group points that lie within radius_km of a cluster seed."""
        if radius_km is None:
            radius_km = self.config.default_cluster_radius_km
        try:
            return self.clusterer.cluster_points(points, radius_km)
        except InvalidQuery as e:
            logger.warning(f"Invalid cluster radius: {e}")
            return []

    # ==================== TRENDING & DISCOVERY ====================

    async def trending(self, timeframe: Timeframe = Timeframe.WEEK, limit: int = 20) -> List[ContentItem]:
        """
        Highest-scoring recent stories.

        Falls back to the newest stories when scoring input cannot be fetched.
        """
        try:
            items = await self._run(self.store.latest_items, limit * 3)
            ranked = self.ranker.rank(items, timeframe.days, limit)
            return [item for item, _ in ranked]
        except TransientFetchError as e:
            logger.warning(f"Trending fetch failed, falling back to newest stories: {e}")

        try:
            items = await self._run(self.store.latest_items, limit)
        except TransientFetchError as e:
            logger.error(f"Trending fallback failed: {e}")
            return []
        return [item for item in items if not item.is_draft][:limit]

    async def discover(self, user_id: Optional[str],
                       preferences: Optional[DiscoveryPreferences] = None,
                       limit: int = 20) -> List[ContentItem]:
        """
        Personalized discovery feed.

        Builds a pool from the user's preferred tags (or the newest stories),
        drops the user's own stories, keeps the most engaging ones and
        shuffles them for variety.
        """
        tags = preferences.tags[:DISCOVER_MAX_TAGS] if preferences else []
        try:
            if tags:
                pool = await self._run(self.store.items_with_tags, tags, DISCOVER_FETCH_SIZE)
            else:
                pool = await self._run(self.store.latest_items, DISCOVER_FETCH_SIZE)
        except TransientFetchError as e:
            logger.warning(f"Discovery feed fetch failed: {e}")
            return []

        candidates = [
            item for item in pool
            if not item.is_draft and (user_id is None or item.author_id != user_id)
        ]
        candidates.sort(key=lambda item: (-(item.stats.likes + item.stats.comments * 2), item.id))

        feed = candidates[:self.config.discover_pool_size]
        self.rng.shuffle(feed)
        return feed[:limit]

    async def popular_tags(self, limit: int = 20) -> List[str]:
        """
        Tags ranked by frequency and engagement over recent stories.

        Returns a default travel tag list when the store cannot be read.
        """
        try:
            items = await self._run(self.store.latest_items, POPULAR_TAGS_SAMPLE)
        except (TransientFetchError, ContentStoreUnavailable) as e:
            logger.warning(f"Popular tags fetch failed, using defaults: {e}")
            return DEFAULT_POPULAR_TAGS[:limit]

        counts: Dict[str, int] = {}
        engagement: Dict[str, int] = {}
        for item in items:
            if item.is_draft:
                continue
            item_engagement = item.stats.likes + item.stats.comments * 2 + item.stats.bookmarks * 3
            for tag in item.tags:
                clean = tag.lower().strip()
                if not clean:
                    continue
                counts[clean] = counts.get(clean, 0) + 1
                engagement[clean] = engagement.get(clean, 0) + item_engagement

        scores = {tag: count * 2 + engagement[tag] for tag, count in counts.items()}
        ranked = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))
        return [tag for tag, _ in ranked[:limit]]

    # ==================== SUGGESTIONS & HISTORY ====================

    async def _location_suggestions(self, prefix: str, limit: int) -> List[str]:
        start = prefix.lower()
        items = await self._run(
            self.store.prefix_range, "location_name", start, start + HIGH_SENTINEL, limit * 3
        )
        names: List[str] = []
        for item in items:
            if item.is_draft or item.location is None or not item.location.name:
                continue
            if item.location.name not in names:
                names.append(item.location.name)
        return names[:limit]

    async def suggestions(self, prefix: str, limit: int = 5) -> List[str]:
        """
        Autocomplete from history, popular tags and location names.

        Args:
            prefix: What the user has typed so far (at least two characters)
            limit: Maximum suggestions

        Returns:
            Distinct suggestions, history first, then '#tag' entries, then places
        """
        if not prefix or len(prefix) < MIN_SUGGESTION_PREFIX:
            return []

        fragment = prefix.lower()
        suggestions: List[str] = []

        def add(candidate: str) -> None:
            if candidate not in suggestions:
                suggestions.append(candidate)

        for query in self.search_history.matching(prefix, SUGGESTIONS_PER_SOURCE):
            add(query)

        tags = await self.popular_tags(10)
        for tag in [t for t in tags if fragment in t.lower()][:SUGGESTIONS_PER_SOURCE]:
            add(f"#{tag}")

        try:
            for name in await self._location_suggestions(prefix, SUGGESTIONS_PER_SOURCE):
                add(name)
        except (TransientFetchError, ContentStoreUnavailable) as e:
            logger.warning(f"Location suggestions failed, skipping: {e}")

        return suggestions[:limit]

    def history(self) -> List[str]:
        return self.search_history.entries()

    def clear_history(self) -> None:
        self.search_history.clear()

    def status(self) -> EngineStatus:
        snapshot = self.index.snapshot
        return EngineStatus(
            index_ready=snapshot is not None,
            degraded=self.index.degraded,
            indexed_items=len(snapshot.items) if snapshot else 0,
            indexed_tokens=snapshot.token_count if snapshot else 0,
            last_built_at=snapshot.built_at if snapshot else None,
            history_size=len(self.search_history)
        )


def build_store(config: DiscoveryConfig) -> ContentStore:
    """Create the content store selected by config.store.backend."""
    store_config = config.store
    if store_config.backend == "opensearch":
        return OpenSearchContentStore.from_config(store_config)
    if store_config.data_path:
        return InMemoryContentStore.from_jsonl(store_config.data_path)
    logger.warning("No data_path configured, starting with an empty in-memory store")
    return InMemoryContentStore()


def build_engine(config: Optional[DiscoveryConfig] = None, rng: Optional[random.Random] = None) -> DiscoveryEngine:
    """Wire store, index, history and engine from configuration."""
    config = config or load_config()
    return DiscoveryEngine(build_store(config), config, rng=rng)
