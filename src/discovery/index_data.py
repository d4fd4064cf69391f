#!/usr/bin/env python3
"""
Data indexing script for the story discovery engine.
Loads normalized stories and bulk indexes them into OpenSearch.
"""

import logging
import time
from pathlib import Path
from typing import List, Union

import jsonlines
from tqdm import tqdm

from .schema import ContentItem
from .setup_index import StoryIndexManager

logger = logging.getLogger(__name__)


def load_stories(file_path: Union[str, Path]) -> List[ContentItem]:
    """Load normalized stories from a JSONL file, skipping invalid lines."""
    stories = []

    with jsonlines.open(file_path) as reader:
        for line_num, record in enumerate(tqdm(reader, desc="Loading stories"), 1):
            try:
                stories.append(ContentItem(**record))
            except ValueError as e:
                logger.warning(f"Skipping invalid story on line {line_num}: {e}")

    logger.info(f"Loaded {len(stories)} stories from {file_path}")
    return stories


def main():
    """Main function to index stories into OpenSearch."""
    import argparse

    from .config import load_config

    parser = argparse.ArgumentParser(description="Index normalized stories")
    parser.add_argument("--input", default="data/normalized_stories.jsonl",
                        help="Input JSONL file of normalized stories")
    parser.add_argument("--config", help="Discovery config YAML")
    parser.add_argument("--index", help="Index name (defaults to the configured one)")
    parser.add_argument("--batch-size", type=int, default=500, help="Batch size for indexing")
    parser.add_argument("--recreate", action="store_true", help="Recreate index if exists")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    manager = StoryIndexManager(config=config.store)
    index_name = args.index or config.store.index_name

    logger.info(f"Indexing {args.input} into {config.store.host}:{config.store.port}/{index_name}")

    stories = load_stories(args.input)
    if not stories:
        logger.error("No stories to index")
        return

    if args.recreate or not manager.client.indices.exists(index=index_name):
        if not manager.create_index(index_name, force_recreate=args.recreate):
            logger.error("Failed to create index")
            return

    start_time = time.time()
    result = manager.bulk_index_documents(stories, index_name=index_name, batch_size=args.batch_size)
    index_time = time.time() - start_time

    logger.info(
        f"Indexing completed in {index_time:.2f}s: "
        f"{result['successful']}/{result['total']} successful, {result['failed']} failed"
    )
    for error in result['errors'][:3]:
        logger.warning(f"Index error: {error}")


if __name__ == "__main__":
    main()
