"""
Recent search history, most recent first.
Persisted to a JSON file when a path is configured.
"""

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class SearchHistory:
    """Bounded, deduplicated list of past queries."""

    def __init__(self, path: Optional[Union[str, Path]] = None, max_entries: int = 20):
        self.path = Path(path) if path else None
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: List[str] = self._load()

    def _load(self) -> List[str]:
        if self.path is None or not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read search history from {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Ignoring malformed search history in {self.path}")
            return []
        return [str(q) for q in data][:self.max_entries]

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self._entries, f, ensure_ascii=False)

    def record(self, query: str) -> None:
        """Move a query to the front; queries shorter than two characters are ignored."""
        query = (query or '').strip()
        if len(query) < MIN_QUERY_LENGTH:
            return
        with self._lock:
            entries = [q for q in self._entries if q != query]
            entries.insert(0, query)
            self._entries = entries[:self.max_entries]
            self._save()

    def entries(self) -> List[str]:
        return list(self._entries)

    def matching(self, fragment: str, limit: int) -> List[str]:
        """Entries containing fragment, case-insensitive."""
        fragment = fragment.lower()
        return [q for q in self._entries if fragment in q.lower()][:limit]

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            if self.path is not None and self.path.exists():
                self.path.unlink()

    def __len__(self) -> int:
        return len(self._entries)
