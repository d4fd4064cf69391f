#!/usr/bin/env python3
"""
In-memory inverted index over the story corpus.

Builds happen into a fresh immutable snapshot which is published by a single
reference assignment, so readers always see either the previous or the new
index in full. A lock serializes concurrent rebuilds only.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional

from .errors import ContentStoreUnavailable, IndexNotReady, TransientFetchError
from .schema import ContentItem
from .store import ContentStore
from .tokenizer import searchable_text, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSnapshot:
    """Published state of the index: postings plus the read-only corpus cache."""
    postings: Dict[str, FrozenSet[str]]
    items: Dict[str, ContentItem]
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def token_count(self) -> int:
        return len(self.postings)


def build_postings(corpus: Iterable[ContentItem]) -> Dict[str, FrozenSet[str]]:
    """Map every token of every story to the ids of the stories containing it."""
    postings: Dict[str, set] = {}
    for item in corpus:
        for token in tokenize(searchable_text(item)):
            postings.setdefault(token, set()).add(item.id)
    return {token: frozenset(ids) for token, ids in sorted(postings.items())}


class InvertedIndex:
    """Token index with copy-on-write rebuilds."""

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self._snapshot: Optional[IndexSnapshot] = None
        self._build_lock = threading.Lock()
        self.degraded = False
        self.last_error: Optional[str] = None

    @property
    def snapshot(self) -> Optional[IndexSnapshot]:
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    def build(self, corpus: List[ContentItem]) -> IndexSnapshot:
        """Build a snapshot from a corpus and publish it."""
        snapshot = IndexSnapshot(
            postings=build_postings(corpus),
            items={item.id: item for item in corpus}
        )
        with self._build_lock:
            self._snapshot = snapshot
            self.degraded = False
            self.last_error = None
        return snapshot

    def rebuild(self, store: ContentStore) -> bool:
        """
        Fetch the corpus and publish a fresh snapshot.

        On fetch failure the current snapshot stays in service and the index
        is flagged degraded.

        Returns:
            True if a new snapshot was published
        """
        start_time = time.time()
        try:
            corpus = store.get_all_items(self.page_size)
        except (TransientFetchError, ContentStoreUnavailable) as e:
            logger.error(f"Index rebuild failed, keeping previous snapshot: {e}")
            self.degraded = True
            self.last_error = str(e)
            return False

        snapshot = self.build(corpus)
        build_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Search index built with {snapshot.token_count} tokens "
            f"over {len(snapshot.items)} stories in {build_ms}ms"
        )
        return True

    def lookup(self, tokens: Iterable[str],
               snapshot: Optional[IndexSnapshot] = None) -> Dict[str, int]:
        """
        Count how many distinct query tokens each story matches.

        Pass the snapshot the caller will resolve ids against so both reads
        see the same generation; defaults to the current one.

        Raises:
            IndexNotReady: if no snapshot has been published
        """
        if snapshot is None:
            snapshot = self._snapshot
        if snapshot is None:
            raise IndexNotReady("Search index has not been built")

        counts: Dict[str, int] = {}
        for token in set(tokens):
            for item_id in snapshot.postings.get(token, ()):
                counts[item_id] = counts.get(item_id, 0) + 1
        return counts
