"""
Shared fixtures for discovery engine tests.
"""

import math
import random
import time
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytest

from discovery.config import DiscoveryConfig
from discovery.errors import TransientFetchError
from discovery.history import SearchHistory
from discovery.orchestrator import DiscoveryEngine
from discovery.proximity import EARTH_RADIUS_KM
from discovery.schema import ContentItem, EngagementStats, Location
from discovery.store import ContentStore, InMemoryContentStore


def make_story(story_id: str, title: str = "", hours_ago: float = 1.0, likes: int = 0,
               comments: int = 0, bookmarks: int = 0, views: int = 0,
               tags: Optional[List[str]] = None, location: Optional[Location] = None,
               **kwargs) -> ContentItem:
    """Build a story created `hours_ago` hours before now."""
    return ContentItem(
        id=story_id,
        title=title,
        tags=tags or [],
        location=location,
        stats=EngagementStats(likes=likes, comments=comments, bookmarks=bookmarks, views=views),
        created_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
        **kwargs
    )


def sample_stories() -> List[ContentItem]:
    return [
        make_story(
            "s1", "Sunset over Santorini", hours_ago=2, likes=40, comments=5,
            content="Watching the sunset from Oia with a glass of local wine.",
            author_id="u1", author_name="Maria Lopez",
            tags=["greece", "sunset", "islands"],
            location=Location(lat=36.4618, lng=25.3753, name="Oia, Santorini", address="Oia 847 02, Greece"),
            trip_type="leisure", mood="relaxed", privacy="public"
        ),
        make_story(
            "s2", "Backpacking through Patagonia", hours_ago=24, likes=25, comments=3,
            content="Five days on the W trek with rain, wind and glaciers.",
            author_id="u2", author_name="Tom Reed",
            tags=["backpacking", "hiking"],
            location=Location(lat=-50.9423, lng=-73.4068, name="Torres del Paine"),
            trip_type="adventure", mood="excited", privacy="public"
        ),
        make_story(
            "s3", "Street food in Bangkok", hours_ago=72, likes=60, comments=12,
            content="Night markets, mango sticky rice and too much pad thai.",
            author_id="u3", author_name="Ana Silva",
            tags=["foodie", "backpacking"],
            location=Location(lat=13.7563, lng=100.5018, name="Bangkok"),
            trip_type="adventure", mood="happy", privacy="public"
        ),
        make_story(
            "s4", "Santorini sunrise draft", hours_ago=1, likes=100,
            content="Unfinished notes about the sunrise.",
            author_id="u1", author_name="Maria Lopez",
            tags=["greece", "sunset"],
            location=Location(lat=36.4620, lng=25.3760, name="Oia, Santorini"),
            is_draft=True
        ),
        make_story(
            "s5", "Fira evening walk", hours_ago=120, likes=5,
            content="Cliffside paths and caldera views after dinner.",
            author_id="u1", author_name="Maria Lopez",
            tags=["greece", "walk"],
            location=Location(lat=36.4167, lng=25.4318, name="Fira, Santorini"),
            trip_type="leisure", privacy="followers"
        ),
        make_story(
            "s6", "Notes from home", hours_ago=240, likes=2,
            content="Planning the next trip from my kitchen table.",
            author_id="u4", author_name="Sam Cole"
        ),
    ]


class FlakyStore(ContentStore):
    """Wraps a store and raises for selected methods or range fields."""

    def __init__(self, inner: ContentStore, failing: Iterable[str] = (),
                 failing_fields: Iterable[str] = (), error: Exception = None):
        self.inner = inner
        self.failing = set(failing)
        self.failing_fields = set(failing_fields)
        self.error = error or TransientFetchError("store timed out")
        self.calls: List[str] = []

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failing:
            raise self.error

    def get_all_items(self, page_size):
        self._check("get_all_items")
        return self.inner.get_all_items(page_size)

    def prefix_range(self, field, start, end, limit):
        self._check("prefix_range")
        if field in self.failing_fields:
            raise self.error
        return self.inner.prefix_range(field, start, end, limit)

    def items_with_tags(self, tags, limit):
        self._check("items_with_tags")
        return self.inner.items_with_tags(tags, limit)

    def latest_items(self, limit):
        self._check("latest_items")
        return self.inner.latest_items(limit)

    def get_item(self, item_id):
        self._check("get_item")
        return self.inner.get_item(item_id)


class SlowStore(InMemoryContentStore):
    """In-memory store whose latest_items sleeps past any short timeout."""

    delay = 0.5

    def latest_items(self, limit):
        time.sleep(self.delay)
        return super().latest_items(limit)


def destination_point(lat: float, lng: float, distance_km: float, bearing_deg: float):
    """Point reached by travelling distance_km from (lat, lng) on the given bearing."""
    phi1, lam1 = math.radians(lat), math.radians(lng)
    theta = math.radians(bearing_deg)
    delta = distance_km / EARTH_RADIUS_KM
    phi2 = math.asin(math.sin(phi1) * math.cos(delta) +
                     math.cos(phi1) * math.sin(delta) * math.cos(theta))
    lam2 = lam1 + math.atan2(math.sin(theta) * math.sin(delta) * math.cos(phi1),
                             math.cos(delta) - math.sin(phi1) * math.sin(phi2))
    return math.degrees(phi2), math.degrees(lam2)


def make_engine(store: ContentStore, **config) -> DiscoveryEngine:
    return DiscoveryEngine(
        store,
        DiscoveryConfig(**config),
        search_history=SearchHistory(),
        rng=random.Random(42)
    )


@pytest.fixture
def stories() -> List[ContentItem]:
    return sample_stories()


@pytest.fixture
def store(stories) -> InMemoryContentStore:
    return InMemoryContentStore(stories)


@pytest.fixture
def engine(store) -> DiscoveryEngine:
    return make_engine(store)
