#!/usr/bin/env python3
"""
Tests for trending scores.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_story
from discovery.schema import ContentItem, EngagementStats
from discovery.trending import DECAY_FLOOR, TrendingRanker

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def story_at(story_id, created_at=CREATED, likes=10, **kwargs):
    return ContentItem(
        id=story_id,
        created_at=created_at,
        stats=EngagementStats(likes=likes, **kwargs)
    )


class TestTrendingRanker:

    def test_engagement_weights(self):
        item = story_at("a", likes=10, comments=5, bookmarks=2, views=100)
        assert TrendingRanker.engagement(item) == pytest.approx(30 + 10 + 8 + 10)

    def test_time_decay(self):
        ranker = TrendingRanker()
        assert ranker.time_decay(0) == 1.0
        assert ranker.time_decay(84) == pytest.approx(0.5)
        assert ranker.time_decay(500) == DECAY_FLOOR

    def test_future_dated_item_counts_as_new(self):
        ranker = TrendingRanker()
        item = story_at("future")
        now = CREATED - timedelta(hours=5)
        assert ranker.score(item, now) == TrendingRanker.engagement(item)

    def test_score_strictly_decreases_inside_window(self):
        ranker = TrendingRanker()
        item = story_at("a")
        scores = [ranker.score(item, CREATED + timedelta(hours=h)) for h in range(0, 150, 24)]
        assert all(a > b for a, b in zip(scores, scores[1:]))

    def test_score_bounded_past_window(self):
        ranker = TrendingRanker()
        item = story_at("a")
        for hours in (200, 1000, 10000):
            score = ranker.score(item, CREATED + timedelta(hours=hours))
            assert score <= TrendingRanker.engagement(item) * DECAY_FLOOR

    def test_recent_beats_older_with_same_engagement(self):
        ranker = TrendingRanker()
        now = CREATED + timedelta(days=7)
        recent = story_at("recent", created_at=now - timedelta(hours=1))
        older = story_at("older", created_at=now - timedelta(days=6))
        ranked = ranker.rank([older, recent], days=7, limit=10, now=now)
        assert [item.id for item, _ in ranked] == ["recent", "older"]

    def test_rank_excludes_drafts_and_old_items(self):
        ranker = TrendingRanker()
        items = [
            make_story("fresh", hours_ago=1, likes=5),
            make_story("draft", hours_ago=1, likes=500, is_draft=True),
            make_story("ancient", hours_ago=24 * 10, likes=500),
        ]
        ranked = ranker.rank(items, days=7, limit=10)
        assert [item.id for item, _ in ranked] == ["fresh"]

    def test_rank_respects_limit(self):
        ranker = TrendingRanker()
        items = [make_story(str(i), hours_ago=i + 1, likes=10) for i in range(5)]
        ranked = ranker.rank(items, days=7, limit=3)
        assert [item.id for item, _ in ranked] == ["0", "1", "2"]
