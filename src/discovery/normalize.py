#!/usr/bin/env python3
"""
Story normalization pipeline.
Converts raw document-store exports (camelCase JSON) into normalized
ContentItem records ready for indexing, computing geohashes on the way.
"""

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import jsonlines
from tqdm import tqdm

from .config import load_config
from .geohash import DEFAULT_PRECISION, encode
from .schema import ContentItem, EngagementStats, Location

logger = logging.getLogger(__name__)


class StoryNormalizer:
    """Maps raw story documents onto ContentItem."""

    def __init__(self, geohash_precision: int = DEFAULT_PRECISION):
        self.geohash_precision = geohash_precision

    def parse_timestamp(self, value: Any) -> datetime:
        """
        Parse createdAt as ISO-8601 string, epoch milliseconds or a
        {seconds, nanoseconds} timestamp object.
        """
        if isinstance(value, dict) and 'seconds' in value:
            seconds = value['seconds'] + value.get('nanoseconds', 0) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, str) and value:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
        raise ValueError(f"Unsupported createdAt value: {value!r}")

    def parse_location(self, raw: Optional[Dict[str, Any]]) -> Optional[Location]:
        if not raw or raw.get('lat') is None or raw.get('lng') is None:
            return None
        return Location(
            lat=float(raw['lat']),
            lng=float(raw['lng']),
            name=raw.get('name') or '',
            address=raw.get('address') or ''
        )

    def normalize_story(self, raw: Dict[str, Any]) -> ContentItem:
        """Convert one raw story document to a ContentItem."""
        location = self.parse_location(raw.get('location'))
        geohash = None
        if location is not None:
            geohash = encode(location.lat, location.lng, self.geohash_precision)

        stats = raw.get('stats') or {}
        tags = raw.get('tags') if isinstance(raw.get('tags'), list) else []

        return ContentItem(
            id=str(raw['id']),
            title=raw.get('title') or '',
            content=raw.get('content') or '',
            author_id=raw.get('authorId'),
            author_name=raw.get('authorName') or '',
            tags=[str(tag) for tag in tags],
            location=location,
            geohash=geohash,
            stats=EngagementStats(
                likes=stats.get('likeCount', 0) or 0,
                comments=stats.get('commentsCount', 0) or 0,
                bookmarks=stats.get('bookmarksCount', 0) or 0,
                views=stats.get('viewsCount', 0) or 0
            ),
            created_at=self.parse_timestamp(raw.get('createdAt')),
            is_draft=bool(raw.get('isDraft', False)),
            trip_type=raw.get('tripType') or None,
            mood=raw.get('mood') or None,
            privacy=raw.get('privacy') or None
        )


def main():
    """CLI entry point for story normalization."""
    parser = argparse.ArgumentParser(description='Normalize raw stories for indexing')
    parser.add_argument('--input', required=True, help='Input JSONL file of raw stories')
    parser.add_argument('--output', required=True, help='Output directory')
    parser.add_argument('--precision', type=int, default=DEFAULT_PRECISION, help='Geohash precision')
    parser.add_argument('--batch-size', type=int, default=1000, help='Batch size for writing')
    parser.add_argument('--config', help='Engine config file; stored geohashes must be at least its geohash_precision long')

    args = parser.parse_args()

    config = load_config(args.config)
    if args.precision < config.geohash_precision:
        parser.error(f"--precision {args.precision} is shorter than the configured "
                     f"geohash_precision {config.geohash_precision}")

    logging.basicConfig(level=logging.INFO)

    normalizer = StoryNormalizer(args.precision)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / 'normalized_stories.jsonl'

    with jsonlines.open(args.input, 'r') as reader, \
         jsonlines.open(output_file, 'w') as writer:

        batch = []
        total_processed = 0
        skipped = 0

        for raw_story in tqdm(reader, desc="Normalizing stories"):
            try:
                story = normalizer.normalize_story(raw_story)
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping story {raw_story.get('id', 'unknown')}: {e}")
                skipped += 1
                continue

            batch.append(story.model_dump(mode='json'))
            if len(batch) >= args.batch_size:
                writer.write_all(batch)
                total_processed += len(batch)
                batch = []

        if batch:
            writer.write_all(batch)
            total_processed += len(batch)

    logger.info(f"Processed {total_processed} stories ({skipped} skipped) -> {output_file}")


if __name__ == '__main__':
    main()
