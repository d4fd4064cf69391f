"""
OpenSearch Index Setup for the Story Discovery Engine

Creates and manages the stories index. Text fields carry a keyword
sub-field with a lowercase normalizer so the content store can run
case-insensitive prefix range queries against them.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from opensearchpy import OpenSearch
from opensearchpy.exceptions import RequestError
from opensearchpy.helpers import bulk

from .config import StoreConfig
from .opensearch_store import create_client
from .schema import ContentItem

logger = logging.getLogger(__name__)

LOWERCASE_SORT_FIELD = {"sort": {"type": "keyword", "normalizer": "lowercase_normalizer"}}


class StoryIndexManager:
    """Manages stories index creation and bulk loading."""

    def __init__(self, client: Optional[OpenSearch] = None, config: Optional[StoreConfig] = None):
        """
        Initialize index manager.

        Args:
            client: Existing OpenSearch client
            config: Connection settings used when no client is given
        """
        self.config = config or StoreConfig()
        self.client = client or create_client(self.config)

    def get_index_mapping(self) -> Dict[str, Any]:
        """
        Get the stories index mapping.

        Returns:
            OpenSearch mapping mirroring ContentItem
        """
        return {
            "properties": {
                "id": {"type": "keyword"},
                "title": {"type": "text", "fields": LOWERCASE_SORT_FIELD},
                "content": {"type": "text"},
                "author_id": {"type": "keyword"},
                "author_name": {"type": "text", "fields": LOWERCASE_SORT_FIELD},
                "tags": {"type": "keyword", "normalizer": "lowercase_normalizer"},

                "location": {
                    "properties": {
                        "lat": {"type": "double"},
                        "lng": {"type": "double"},
                        "name": {"type": "text", "fields": LOWERCASE_SORT_FIELD},
                        "address": {"type": "text"}
                    }
                },
                "geohash": {"type": "keyword"},

                "stats": {
                    "properties": {
                        "likes": {"type": "integer"},
                        "comments": {"type": "integer"},
                        "bookmarks": {"type": "integer"},
                        "views": {"type": "integer"}
                    }
                },

                "created_at": {"type": "date"},
                "is_draft": {"type": "boolean"},
                "trip_type": {"type": "keyword"},
                "mood": {"type": "keyword"},
                "privacy": {"type": "keyword"}
            }
        }

    def get_index_settings(self, number_of_shards: int = 1, number_of_replicas: int = 0) -> Dict[str, Any]:
        return {
            "number_of_shards": number_of_shards,
            "number_of_replicas": number_of_replicas,
            "analysis": {
                "normalizer": {
                    "lowercase_normalizer": {
                        "type": "custom",
                        "filter": ["lowercase"]
                    }
                }
            }
        }

    def create_index(self, index_name: Optional[str] = None, force_recreate: bool = False) -> bool:
        """
        Create the stories index.

        Args:
            index_name: Name of the index to create (defaults to config.index_name)
            force_recreate: Whether to delete an existing index first

        Returns:
            True if the index was created
        """
        index_name = index_name or self.config.index_name

        try:
            if self.client.indices.exists(index=index_name):
                if force_recreate:
                    logger.info(f"Deleting existing index: {index_name}")
                    self.client.indices.delete(index=index_name)
                else:
                    logger.warning(f"Index {index_name} already exists")
                    return False

            index_body = {
                "settings": self.get_index_settings(),
                "mappings": self.get_index_mapping()
            }

            logger.info(f"Creating index: {index_name}")
            response = self.client.indices.create(index=index_name, body=index_body)
            logger.info(f"Index created successfully: {response}")
            return True

        except RequestError as e:
            logger.error(f"Failed to create index {index_name}: {e}")
            return False

    def delete_index(self, index_name: Optional[str] = None) -> bool:
        index_name = index_name or self.config.index_name

        try:
            if not self.client.indices.exists(index=index_name):
                logger.warning(f"Index {index_name} does not exist")
                return False

            response = self.client.indices.delete(index=index_name)
            logger.info(f"Index {index_name} deleted successfully: {response}")
            return True

        except RequestError as e:
            logger.error(f"Failed to delete index {index_name}: {e}")
            return False

    def get_index_info(self, index_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Get settings, mappings and stats of an index.

        Returns:
            Index information or None if the index does not exist
        """
        index_name = index_name or self.config.index_name
        if not self.client.indices.exists(index=index_name):
            return None

        settings = self.client.indices.get_settings(index=index_name)
        mappings = self.client.indices.get_mapping(index=index_name)
        stats = self.client.indices.stats(index=index_name)

        return {
            "name": index_name,
            "settings": settings[index_name]["settings"],
            "mappings": mappings[index_name]["mappings"],
            "stats": stats["indices"][index_name]
        }

    def bulk_index_documents(self,
                             documents: Iterable[Union[ContentItem, Dict[str, Any]]],
                             index_name: Optional[str] = None,
                             batch_size: int = 500) -> Dict[str, Any]:
        """
        Bulk index stories.

        Args:
            documents: ContentItem instances or already-dumped dicts
            index_name: Target index name (defaults to config.index_name)
            batch_size: Number of documents per bulk request

        Returns:
            Indexing statistics
        """
        index_name = index_name or self.config.index_name

        actions = []
        for doc in documents:
            source = doc.model_dump(mode='json') if isinstance(doc, ContentItem) else doc
            actions.append({
                "_index": index_name,
                "_id": source["id"],
                "_source": source
            })

        if not actions:
            return {"total": 0, "successful": 0, "failed": 0, "errors": []}

        successful, errors = bulk(
            self.client,
            actions,
            chunk_size=batch_size,
            request_timeout=60,
            raise_on_error=False
        )

        # Make documents searchable
        self.client.indices.refresh(index=index_name)

        logger.info(f"Bulk indexing completed: {successful}/{len(actions)} successful")
        return {
            "total": len(actions),
            "successful": successful,
            "failed": len(errors),
            "errors": errors[:10]
        }


def main():
    """Command-line interface for index management."""
    import argparse
    import sys

    from .config import load_config

    parser = argparse.ArgumentParser(description="Stories index management")
    parser.add_argument("--config", help="Discovery config YAML")
    parser.add_argument("--index", help="Index name (defaults to the configured one)")
    parser.add_argument("--action", choices=["create", "delete", "info"],
                        required=True, help="Action to perform")
    parser.add_argument("--force", action="store_true",
                        help="Force recreate index if it exists")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    manager = StoryIndexManager(config=config.store)

    if args.action == "create":
        success = manager.create_index(args.index, force_recreate=args.force)
        sys.exit(0 if success else 1)

    elif args.action == "delete":
        success = manager.delete_index(args.index)
        sys.exit(0 if success else 1)

    elif args.action == "info":
        info = manager.get_index_info(args.index)
        if info:
            print(f"Index: {info['name']}")
            print(f"Document count: {info['stats']['total']['docs']['count']}")
            print(f"Store size: {info['stats']['total']['store']['size_in_bytes']} bytes")
        else:
            print(f"Index {args.index or manager.config.index_name} not found")
            sys.exit(1)


if __name__ == "__main__":
    main()
