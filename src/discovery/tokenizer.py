"""
Text normalization for the inverted index.
"""

import re
from typing import List, Tuple

from .schema import ContentItem

_NON_WORD = re.compile(r'[^\w\s]')
MIN_TOKEN_LENGTH = 3


def tokenize(text: str) -> List[str]:
    """
    Split text into index terms.

    Lowercases, replaces punctuation with spaces, splits on whitespace and
    drops tokens shorter than three characters. Order and repeats are kept.
    """
    if not text:
        return []
    cleaned = _NON_WORD.sub(' ', text.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def searchable_text(item: ContentItem) -> str:
    """Concatenate every field a story is searchable by."""
    parts = [
        item.title or '',
        item.content or '',
        item.author_name or '',
        item.location.name if item.location else '',
        item.location.address if item.location else '',
        *item.tags
    ]
    return ' '.join(parts).lower()


def query_terms(query: str) -> List[str]:
    """Lowercased whitespace terms of a raw query, punctuation kept."""
    return [term for term in query.lower().split() if term]


def query_tags(query: str) -> List[str]:
    """Whitespace terms with leading '#' removed."""
    tags = []
    for term in query_terms(query):
        tag = term.lstrip('#')
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def highlight_spans(text: str, query: str) -> List[Tuple[int, int]]:
    """
    Find where query terms occur in text, ignoring case.

    Every whitespace term of the query (leading '#' removed) is matched as a
    literal substring. Overlapping or touching matches are merged.

    Returns:
        Sorted, non-overlapping (start, end) offsets into text
    """
    terms = query_tags(query or '')
    if not text or not terms:
        return []

    spans = []
    for term in terms:
        for match in re.finditer(re.escape(term), text, re.IGNORECASE):
            spans.append((match.start(), match.end()))

    merged: List[Tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return merged


def highlight(text: str, query: str, open_mark: str = '<mark>', close_mark: str = '</mark>') -> str:
    """Wrap every query term occurrence in text with the given marks."""
    text = text or ''
    pieces = []
    last = 0
    for start, end in highlight_spans(text, query):
        pieces.extend([text[last:start], open_mark, text[start:end], close_mark])
        last = end
    pieces.append(text[last:])
    return ''.join(pieces)
