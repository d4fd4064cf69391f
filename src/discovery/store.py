#!/usr/bin/env python3
"""
Content store interface and in-memory implementation.

The discovery engine only reads from the store. Implementations raise
TransientFetchError for retryable failures and ContentStoreUnavailable when the
backing service is unreachable.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import jsonlines

from .schema import ContentItem

logger = logging.getLogger(__name__)

# Appended to a prefix to form an inclusive upper bound for range queries
HIGH_SENTINEL = "\uf8ff"

RANGE_FIELDS = ("title", "author_name", "location_name", "geohash")


class ContentStore(ABC):
    """Read-only view of the story collection."""

    @abstractmethod
    def get_all_items(self, page_size: int) -> List[ContentItem]:
        """Return up to page_size stories, newest first."""

    @abstractmethod
    def prefix_range(self, field: str, start: str, end: str, limit: int) -> List[ContentItem]:
        """
        Return stories whose field value lies in [start, end].

        title, author_name and location_name compare lowercased values.
        geohash compares raw values and never returns drafts.
        """

    @abstractmethod
    def items_with_tags(self, tags: List[str], limit: int) -> List[ContentItem]:
        """Return stories having any of the tags (case-insensitive)."""

    @abstractmethod
    def latest_items(self, limit: int) -> List[ContentItem]:
        """Return the newest stories."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[ContentItem]:
        """Return one story or None."""


def field_value(item: ContentItem, field: str) -> Optional[str]:
    """Value a range query on `field` compares against."""
    if field == "title":
        return item.title.lower()
    if field == "author_name":
        return item.author_name.lower()
    if field == "location_name":
        return item.location.name.lower() if item.location and item.location.name else None
    if field == "geohash":
        return item.geohash
    raise ValueError(f"Unsupported range field: {field}. Must be one of {RANGE_FIELDS}")


class InMemoryContentStore(ContentStore):
    """Story collection held in a dict; loadable from JSONL."""

    def __init__(self, items: Optional[Iterable[ContentItem]] = None):
        self._items: Dict[str, ContentItem] = {}
        for item in items or []:
            self._items[item.id] = item

    @classmethod
    def from_jsonl(cls, file_path: Union[str, Path]) -> "InMemoryContentStore":
        """Load normalized stories from a JSONL file."""
        items = []
        with jsonlines.open(file_path) as reader:
            for line_num, record in enumerate(reader, 1):
                try:
                    items.append(ContentItem(**record))
                except ValueError as e:
                    logger.warning(f"Skipping invalid story on line {line_num}: {e}")
        logger.info(f"Loaded {len(items)} stories from {file_path}")
        return cls(items)

    def add(self, item: ContentItem) -> None:
        self._items[item.id] = item

    def __len__(self) -> int:
        return len(self._items)

    def _newest_first(self) -> List[ContentItem]:
        return sorted(self._items.values(), key=lambda item: (item.created_at, item.id), reverse=True)

    def get_all_items(self, page_size: int) -> List[ContentItem]:
        return self._newest_first()[:page_size]

    def prefix_range(self, field: str, start: str, end: str, limit: int) -> List[ContentItem]:
        matches = []
        for item in self._items.values():
            if field == "geohash" and item.is_draft:
                continue
            value = field_value(item, field)
            if value is not None and start <= value <= end:
                matches.append((value, item.id, item))
        matches.sort(key=lambda m: (m[0], m[1]))
        return [item for _, _, item in matches[:limit]]

    def items_with_tags(self, tags: List[str], limit: int) -> List[ContentItem]:
        wanted = {tag.lower() for tag in tags}
        matches = [
            item for item in self._newest_first()
            if wanted.intersection(tag.lower() for tag in item.tags)
        ]
        return matches[:limit]

    def latest_items(self, limit: int) -> List[ContentItem]:
        return self._newest_first()[:limit]

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        return self._items.get(item_id)
