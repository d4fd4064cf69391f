#!/usr/bin/env python3
"""
Story discovery engine.
Provides text search, nearby search, proximity clustering and trending ranking over travel stories.
"""

from .schema import (
    ContentItem, Location, EngagementStats, GeoPoint, Cluster,
    SearchResult, SearchFilters, SearchOptions, SearchResponse,
    DateRange, DiscoveryPreferences, EngineStatus, SortBy, Timeframe
)
from .errors import (
    DiscoveryError, TransientFetchError, ContentStoreUnavailable,
    IndexNotReady, InvalidQuery, LocationMissing, ErrorKind, StrategyResult
)
from .config import DiscoveryConfig, StoreConfig, load_config
from .store import ContentStore, InMemoryContentStore
from .inverted_index import InvertedIndex
from .blend import ResultBlender
from .cluster import ProximityClusterer
from .trending import TrendingRanker
from .orchestrator import DiscoveryEngine, build_engine

__all__ = [
    # Schema classes
    'ContentItem', 'Location', 'EngagementStats', 'GeoPoint', 'Cluster',
    'SearchResult', 'SearchFilters', 'SearchOptions', 'SearchResponse',
    'DateRange', 'DiscoveryPreferences', 'EngineStatus', 'SortBy', 'Timeframe',

    # Errors
    'DiscoveryError', 'TransientFetchError', 'ContentStoreUnavailable',
    'IndexNotReady', 'InvalidQuery', 'LocationMissing', 'ErrorKind', 'StrategyResult',

    # Core components
    'DiscoveryConfig', 'StoreConfig', 'load_config',
    'ContentStore', 'InMemoryContentStore', 'InvertedIndex',
    'ResultBlender', 'ProximityClusterer', 'TrendingRanker',
    'DiscoveryEngine', 'build_engine',
]
