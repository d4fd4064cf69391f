#!/usr/bin/env python3
"""
Retrieval strategies for story search.

Each strategy is read-only and independent. Recoverable failures come back as
a StrategyResult carrying an ErrorKind instead of an exception, so one slow or
failing source never aborts the whole search. ContentStoreUnavailable is not
caught here.
"""

import logging
from typing import List

from .errors import ErrorKind, StrategyResult, TransientFetchError
from .inverted_index import InvertedIndex
from .store import HIGH_SENTINEL, ContentStore
from .tokenizer import query_tags, query_terms, tokenize

logger = logging.getLogger(__name__)


class PrefixFieldSearch:
    """Match title or author name prefixes against each query term."""

    name = "prefix"
    fields = ("title", "author_name")

    def __init__(self, store: ContentStore, limit: int = 20):
        self.store = store
        self.limit = limit

    def search(self, query: str) -> StrategyResult:
        terms = query_terms(query)
        if not terms:
            return StrategyResult(name=self.name)

        result = StrategyResult(name=self.name)
        attempts = 0
        failures = 0

        for term in terms:
            for field in self.fields:
                attempts += 1
                try:
                    items = self.store.prefix_range(field, term, term + HIGH_SENTINEL, self.limit)
                except TransientFetchError as e:
                    failures += 1
                    logger.debug(f"Prefix query on {field} for {term!r} failed: {e}")
                    continue
                for item in items:
                    result.hits[item.id] = 1.0
                    result.items[item.id] = item

        if failures == attempts:
            return StrategyResult.failed(
                self.name, ErrorKind.TRANSIENT_FETCH, f"all {attempts} prefix queries failed"
            )
        return result


class TokenIndexSearch:
    """Score stories by the number of distinct query tokens they contain."""

    name = "token"

    def __init__(self, index: InvertedIndex):
        self.index = index

    def search(self, query: str) -> StrategyResult:
        tokens = tokenize(query)
        # One snapshot for both the lookup and the id resolution
        snapshot = self.index.snapshot
        if snapshot is None:
            return StrategyResult.failed(
                self.name, ErrorKind.INDEX_NOT_READY, "Search index has not been built"
            )
        counts = self.index.lookup(tokens, snapshot)

        result = StrategyResult(name=self.name)
        for item_id, count in counts.items():
            item = snapshot.items.get(item_id)
            if item is None:
                continue
            result.hits[item_id] = float(count)
            result.items[item_id] = item
        return result


class TagSearch:
    """Match stories whose tags intersect the query terms."""

    name = "tag"

    def __init__(self, store: ContentStore, limit: int = 20):
        self.store = store
        self.limit = limit

    def search(self, query: str) -> StrategyResult:
        tags = query_tags(query)
        if not tags:
            return StrategyResult(name=self.name)

        try:
            items = self.store.items_with_tags(tags, self.limit * 2)
        except TransientFetchError as e:
            return StrategyResult.failed(self.name, ErrorKind.TRANSIENT_FETCH, str(e))

        items = sorted(items, key=lambda item: item.created_at, reverse=True)[:self.limit]
        result = StrategyResult(name=self.name)
        for item in items:
            result.hits[item.id] = 1.0
            result.items[item.id] = item
        return result


def default_strategies(store: ContentStore, index: InvertedIndex, limit: int = 20) -> List:
    """Strategies in order of strength."""
    return [
        PrefixFieldSearch(store, limit),
        TokenIndexSearch(index),
        TagSearch(store, limit),
    ]
