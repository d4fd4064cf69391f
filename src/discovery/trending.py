"""
Engagement scoring with linear time decay.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from .schema import ContentItem

LIKE_WEIGHT = 3.0
COMMENT_WEIGHT = 2.0
BOOKMARK_WEIGHT = 4.0
VIEW_WEIGHT = 0.1

# A week; past this the decay floor applies
DECAY_WINDOW_HOURS = 168.0
DECAY_FLOOR = 0.1


class TrendingRanker:
    """Scores stories by weighted engagement, decayed by age."""

    def __init__(self, window_hours: float = DECAY_WINDOW_HOURS, floor: float = DECAY_FLOOR):
        self.window_hours = window_hours
        self.floor = floor

    @staticmethod
    def engagement(item: ContentItem) -> float:
        stats = item.stats
        return (
            stats.likes * LIKE_WEIGHT +
            stats.comments * COMMENT_WEIGHT +
            stats.bookmarks * BOOKMARK_WEIGHT +
            stats.views * VIEW_WEIGHT
        )

    def time_decay(self, age_hours: float) -> float:
        age_hours = max(0.0, age_hours)
        return max(self.floor, 1.0 - age_hours / self.window_hours)

    def score(self, item: ContentItem, now: Optional[datetime] = None) -> float:
        """
        Trending score at `now`.

        Future-dated items count as zero hours old.
        """
        now = now or datetime.now(timezone.utc)
        age_hours = (now - item.created_at).total_seconds() / 3600
        return self.engagement(item) * self.time_decay(age_hours)

    def rank(self, items: Iterable[ContentItem], days: int, limit: int,
             now: Optional[datetime] = None) -> List[Tuple[ContentItem, float]]:
        """
        Score and order published stories created within the last `days`.

        Returns:
            (item, score) pairs, highest score first, at most `limit`
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days)

        scored = [
            (item, self.score(item, now))
            for item in items
            if not item.is_draft and item.created_at >= cutoff
        ]
        scored.sort(key=lambda pair: (-pair[1], -pair[0].created_at.timestamp(), pair[0].id))
        return scored[:limit]
