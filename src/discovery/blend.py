#!/usr/bin/env python3
"""
Score fusion and result post-processing for story search.
Merges strategy output, applies filters, orders and paginates results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from .errors import StrategyResult
from .schema import ContentItem, SearchFilters, SearchResult, SortBy
from .trending import TrendingRanker


@dataclass
class FusionConfig:
    """Configuration for relevance fusion."""
    # Strongest strategy first
    weights: Dict[str, float] = field(
        default_factory=lambda: {"prefix": 3.0, "token": 2.0, "tag": 1.0}
    )


def matches_filters(item: ContentItem, filters: SearchFilters) -> bool:
    """
    Check an item against every set filter.

    trip_type, mood, privacy and author_id match exactly. tags and location
    are case-insensitive substring matches; any listed tag is enough.
    """
    if filters.date_range:
        if filters.date_range.start and item.created_at < filters.date_range.start:
            return False
        if filters.date_range.end and item.created_at > filters.date_range.end:
            return False

    if filters.trip_type and item.trip_type != filters.trip_type:
        return False
    if filters.mood and item.mood != filters.mood:
        return False
    if filters.privacy and item.privacy != filters.privacy:
        return False
    if filters.author_id and item.author_id != filters.author_id:
        return False

    if filters.tags:
        item_tags = [tag.lower() for tag in item.tags]
        wanted = [tag.lower() for tag in filters.tags]
        if not any(w in tag for w in wanted for tag in item_tags):
            return False

    if filters.location:
        name = item.location.name.lower() if item.location else ""
        if filters.location.lower() not in name:
            return False

    return True


class ResultBlender:
    """Handles fusion, filtering, ordering and pagination of search results."""

    def __init__(self, config: Optional[FusionConfig] = None,
                 ranker: Optional[TrendingRanker] = None):
        self.config = config or FusionConfig()
        self.ranker = ranker or TrendingRanker()

    def fuse(self, results: List[StrategyResult]) -> List[SearchResult]:
        """
        Merge strategy results into one scored list.

        relevance = sum over strategies of weight * strategy score. Drafts
        never make it into the fused set. Failed strategies contribute nothing.

        Args:
            results: Output of every strategy that ran

        Returns:
            Fused results in first-seen order
        """
        fused: Dict[str, SearchResult] = {}

        for result in results:
            if not result.ok:
                continue
            weight = self.config.weights.get(result.name, 0.0)

            for item_id, score in result.hits.items():
                item = result.items.get(item_id)
                if item is None or item.is_draft:
                    continue
                if item_id not in fused:
                    fused[item_id] = SearchResult(item=item)
                entry = fused[item_id]
                entry.relevance_score += weight * score
                if result.name not in entry.matched_by:
                    entry.matched_by.append(result.name)

        return list(fused.values())

    def apply_filters(self, results: List[SearchResult],
                      filters: Optional[SearchFilters]) -> List[SearchResult]:
        if filters is None or filters.is_empty():
            return results
        return [r for r in results if matches_filters(r.item, filters)]

    def sort(self, results: List[SearchResult], sort_by: SortBy,
             now: Optional[datetime] = None) -> List[SearchResult]:
        """
        Order results by the requested mode.

        Every mode breaks remaining ties by item id so output is stable for a
        fixed candidate set.
        """
        now = now or datetime.now(timezone.utc)
        key = self._sort_key(sort_by, now)
        return sorted(results, key=key)

    def _sort_key(self, sort_by: SortBy, now: datetime) -> Callable[[SearchResult], Tuple]:
        if sort_by == SortBy.RELEVANCE:
            return lambda r: (-r.relevance_score, -r.item.created_at.timestamp(), r.item.id)
        if sort_by == SortBy.NEWEST:
            return lambda r: (-r.item.created_at.timestamp(), r.item.id)
        if sort_by == SortBy.OLDEST:
            return lambda r: (r.item.created_at.timestamp(), r.item.id)
        if sort_by == SortBy.POPULAR:
            return lambda r: (-r.item.stats.likes, -r.item.created_at.timestamp(), r.item.id)
        if sort_by == SortBy.TRENDING:
            return lambda r: (-self.ranker.score(r.item, now), r.item.id)
        raise ValueError(f"Unsupported sort mode: {sort_by}")

    def paginate(self, results: List[SearchResult], offset: int,
                 limit: int) -> Tuple[List[SearchResult], bool]:
        """Return one page and whether more results follow it."""
        page = results[offset:offset + limit]
        return page, offset + limit < len(results)

    def blend(self, results: List[StrategyResult], filters: Optional[SearchFilters],
              sort_by: SortBy = SortBy.RELEVANCE) -> List[SearchResult]:
        """Run the full pipeline: fuse -> filter -> sort."""
        fused = self.fuse(results)
        filtered = self.apply_filters(fused, filters)
        return self.sort(filtered, sort_by)
