#!/usr/bin/env python3
"""
Tests for fusion, filtering, ordering and pagination.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_story
from discovery.blend import FusionConfig, ResultBlender, matches_filters
from discovery.errors import ErrorKind, StrategyResult
from discovery.schema import DateRange, SearchFilters, SearchResult, SortBy


def strategy_result(name, items, score=1.0):
    result = StrategyResult(name=name)
    for item in items:
        result.hits[item.id] = score
        result.items[item.id] = item
    return result


@pytest.fixture
def blender():
    return ResultBlender(FusionConfig())


class TestFuse:

    def test_weighted_sum_across_strategies(self, blender):
        a = make_story("a", "Alpha")
        b = make_story("b", "Beta")
        fused = blender.fuse([
            strategy_result("prefix", [a, b]),
            strategy_result("token", [a], score=2.0),
        ])
        scores = {r.item.id: r.relevance_score for r in fused}
        assert scores == {"a": 3.0 + 4.0, "b": 3.0}

    def test_all_strategies_outscore_any_subset(self, blender):
        a = make_story("a")
        b = make_story("b")
        fused = blender.fuse([
            strategy_result("prefix", [a, b]),
            strategy_result("token", [a, b]),
            strategy_result("tag", [a]),
        ])
        scores = {r.item.id: r.relevance_score for r in fused}
        assert scores["a"] > scores["b"]

    def test_records_matching_strategies(self, blender):
        a = make_story("a")
        fused = blender.fuse([strategy_result("prefix", [a]), strategy_result("tag", [a])])
        assert fused[0].matched_by == ["prefix", "tag"]

    def test_drafts_never_fused(self, blender):
        draft = make_story("d", is_draft=True)
        assert blender.fuse([strategy_result("prefix", [draft])]) == []

    def test_failed_strategy_ignored(self, blender):
        a = make_story("a")
        failed = StrategyResult.failed("token", ErrorKind.INDEX_NOT_READY, "not built")
        fused = blender.fuse([strategy_result("tag", [a]), failed])
        assert [r.relevance_score for r in fused] == [1.0]

    def test_unknown_strategy_contributes_nothing(self, blender):
        a = make_story("a")
        fused = blender.fuse([strategy_result("semantic", [a])])
        assert fused[0].relevance_score == 0.0


class TestSort:

    def test_relevance_ties_broken_by_recency(self, blender):
        old = SearchResult(item=make_story("old", hours_ago=48), relevance_score=2.0)
        new = SearchResult(item=make_story("new", hours_ago=1), relevance_score=2.0)
        best = SearchResult(item=make_story("best", hours_ago=100), relevance_score=5.0)
        ordered = blender.sort([old, new, best], SortBy.RELEVANCE)
        assert [r.item.id for r in ordered] == ["best", "new", "old"]

    def test_newest_and_oldest(self, blender):
        results = [SearchResult(item=make_story(f"s{h}", hours_ago=h)) for h in (5, 1, 3)]
        assert [r.item.id for r in blender.sort(results, SortBy.NEWEST)] == ["s1", "s3", "s5"]
        assert [r.item.id for r in blender.sort(results, SortBy.OLDEST)] == ["s5", "s3", "s1"]

    def test_popular_by_likes(self, blender):
        results = [
            SearchResult(item=make_story("few", likes=1)),
            SearchResult(item=make_story("many", likes=50)),
        ]
        assert [r.item.id for r in blender.sort(results, SortBy.POPULAR)] == ["many", "few"]

    def test_trending_uses_decayed_engagement(self, blender):
        now = datetime.now(timezone.utc)
        results = [
            SearchResult(item=make_story("stale", hours_ago=150, likes=12)),
            SearchResult(item=make_story("fresh", hours_ago=1, likes=10)),
        ]
        ordered = blender.sort(results, SortBy.TRENDING, now=now)
        assert [r.item.id for r in ordered] == ["fresh", "stale"]

    def test_sort_is_stable_for_fixed_input(self, blender, stories):
        results = [SearchResult(item=s, relevance_score=1.0) for s in stories]
        first = [r.item.id for r in blender.sort(results, SortBy.RELEVANCE)]
        second = [r.item.id for r in blender.sort(list(reversed(results)), SortBy.RELEVANCE)]
        assert first == second


class TestFilters:

    def test_exact_attribute_filters(self, stories):
        s1, s2, s3 = stories[0], stories[1], stories[2]
        assert matches_filters(s2, SearchFilters(trip_type="adventure"))
        assert not matches_filters(s1, SearchFilters(trip_type="adventure"))
        assert matches_filters(s3, SearchFilters(mood="happy"))
        assert not matches_filters(s2, SearchFilters(mood="happy"))
        assert matches_filters(s1, SearchFilters(author_id="u1", privacy="public"))

    def test_tags_substring_any_of(self, stories):
        assert matches_filters(stories[1], SearchFilters(tags=["BACK"]))
        assert matches_filters(stories[0], SearchFilters(tags=["nothing", "sun"]))
        assert not matches_filters(stories[5], SearchFilters(tags=["sun"]))

    def test_location_substring(self, stories):
        assert matches_filters(stories[4], SearchFilters(location="santorini"))
        assert not matches_filters(stories[2], SearchFilters(location="santorini"))
        assert not matches_filters(stories[5], SearchFilters(location="santorini"))

    def test_date_range(self, stories):
        now = datetime.now(timezone.utc)
        last_two_days = SearchFilters(date_range=DateRange(start=now - timedelta(hours=48)))
        assert matches_filters(stories[0], last_two_days)
        assert not matches_filters(stories[2], last_two_days)

        before_yesterday = SearchFilters(date_range=DateRange(end=now - timedelta(hours=48)))
        assert matches_filters(stories[2], before_yesterday)
        assert not matches_filters(stories[0], before_yesterday)

    def test_empty_filters_keep_everything(self, blender, stories):
        results = [SearchResult(item=s) for s in stories]
        assert blender.apply_filters(results, SearchFilters()) == results
        assert blender.apply_filters(results, None) == results

    def test_unknown_filter_key_rejected(self):
        with pytest.raises(ValueError):
            SearchFilters(color="red")


class TestPaginate:

    def test_pages_and_has_more(self, blender):
        results = [SearchResult(item=make_story(str(i))) for i in range(5)]
        page, has_more = blender.paginate(results, offset=2, limit=2)
        assert [r.item.id for r in page] == ["2", "3"]
        assert has_more

        page, has_more = blender.paginate(results, offset=4, limit=2)
        assert [r.item.id for r in page] == ["4"]
        assert not has_more

    def test_offset_past_end(self, blender):
        results = [SearchResult(item=make_story("a"))]
        assert blender.paginate(results, offset=10, limit=5) == ([], False)


class TestBlend:

    def test_pipeline(self, blender, stories):
        s1, s2, s3 = stories[0], stories[1], stories[2]
        results = [
            strategy_result("prefix", [s2]),
            strategy_result("token", [s2, s3]),
            strategy_result("tag", [s1, s2, s3]),
        ]
        ranked = blender.blend(results, SearchFilters(trip_type="adventure"))
        assert [r.item.id for r in ranked] == ["s2", "s3"]
        assert ranked[0].relevance_score == 6.0
