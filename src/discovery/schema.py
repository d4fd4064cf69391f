#!/usr/bin/env python3
"""
Schema definitions for the story discovery engine.
Pydantic models for stories, search options and every discovery response.
"""

from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .geohash import DEFAULT_PRECISION, encode


class SortBy(str, Enum):
    """Result ordering modes."""
    RELEVANCE = "relevance"
    NEWEST = "newest"
    OLDEST = "oldest"
    POPULAR = "popular"
    TRENDING = "trending"


class Timeframe(str, Enum):
    """Trending windows."""
    DAY = "1d"
    WEEK = "7d"
    MONTH = "30d"

    @property
    def days(self) -> int:
        return {"1d": 1, "7d": 7, "30d": 30}[self.value]


class GeoPoint(BaseModel):
    """A coordinate pair, optionally tied to the story it came from."""
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    item_id: Optional[str] = None


class Location(BaseModel):
    """Where a story happened."""
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    name: str = ""
    address: str = ""


class EngagementStats(BaseModel):
    """Interaction counters maintained by the content store."""
    likes: int = Field(ge=0, default=0)
    comments: int = Field(ge=0, default=0)
    bookmarks: int = Field(ge=0, default=0)
    views: int = Field(ge=0, default=0)


class ContentItem(BaseModel):
    """
    A published (or draft) story.

    geohash is derived from location: it is computed when missing and cleared
    when the story has no location.
    """
    id: str
    title: str = ""
    content: str = ""
    author_id: Optional[str] = None
    author_name: str = ""
    tags: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    geohash: Optional[str] = None
    stats: EngagementStats = Field(default_factory=EngagementStats)
    created_at: datetime
    is_draft: bool = False

    # Filterable attributes
    trip_type: Optional[str] = None
    mood: Optional[str] = None
    privacy: Optional[str] = None

    @field_validator('created_at')
    def ensure_timezone(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def derive_geohash(self):
        if self.location is None:
            self.geohash = None
        elif not self.geohash:
            self.geohash = encode(self.location.lat, self.location.lng, DEFAULT_PRECISION)
        return self


class SearchResult(BaseModel):
    """A story with the score it earned for a query."""
    item: ContentItem
    relevance_score: float = 0.0
    distance_km: Optional[float] = None
    matched_by: List[str] = Field(default_factory=list)


class DateRange(BaseModel):
    """Inclusive creation-date window."""
    model_config = ConfigDict(extra='forbid')

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator('start', 'end')
    def ensure_timezone(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def validate_order(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("date_range.start must not be after date_range.end")
        return self


class SearchFilters(BaseModel):
    """Post-fusion filter predicates. Every supported key is listed here."""
    model_config = ConfigDict(extra='forbid')

    date_range: Optional[DateRange] = None
    trip_type: Optional[str] = None
    mood: Optional[str] = None
    privacy: Optional[str] = None
    author_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    location: Optional[str] = None

    def is_empty(self) -> bool:
        return not any([
            self.date_range, self.trip_type, self.mood, self.privacy,
            self.author_id, self.tags, self.location
        ])


class SearchOptions(BaseModel):
    """Options accepted by search()."""
    model_config = ConfigDict(extra='forbid')

    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort_by: SortBy = SortBy.RELEVANCE
    limit: int = Field(ge=1, le=100, default=20)
    offset: int = Field(ge=0, default=0)


class SearchResponse(BaseModel):
    """Paginated search response."""
    items: List[SearchResult]
    total: int
    has_more: bool
    search_time_ms: int
    degraded: bool = False
    failed_strategies: List[str] = Field(default_factory=list)


class DiscoveryPreferences(BaseModel):
    """Personalization hints for the discovery feed."""
    model_config = ConfigDict(extra='forbid')

    tags: List[str] = Field(default_factory=list)


class Cluster(BaseModel):
    """Group of nearby points for map rendering."""
    center: GeoPoint
    points: List[GeoPoint]
    count: int


class EngineStatus(BaseModel):
    """Health summary of the discovery engine."""
    index_ready: bool
    degraded: bool
    indexed_items: int
    indexed_tokens: int
    last_built_at: Optional[datetime] = None
    history_size: int = 0
