"""
OpenSearch-backed content store.

Range queries run against lowercase-normalized keyword sub-fields so prefix
matching is case-insensitive. Transport failures are mapped onto the
discovery error taxonomy: timeouts and 5xx answers are transient, refused
connections and a missing index mean the store is unavailable, and a rejected
request is a ValueError.
"""

import logging
from typing import Any, Dict, List, Optional

from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import (
    ConnectionError, ConnectionTimeout, NotFoundError, RequestError, TransportError
)

from .config import StoreConfig
from .errors import ContentStoreUnavailable, TransientFetchError
from .schema import ContentItem
from .store import RANGE_FIELDS, ContentStore

logger = logging.getLogger(__name__)

# Range field -> indexed field compared by prefix_range
SORT_FIELDS = {
    "title": "title.sort",
    "author_name": "author_name.sort",
    "location_name": "location.name.sort",
    "geohash": "geohash",
}

NEWEST_FIRST = [{"created_at": {"order": "desc"}}, {"id": {"order": "desc"}}]


def create_client(config: StoreConfig) -> OpenSearch:
    """Build an OpenSearch client from store settings."""
    auth = None
    if config.username and config.password:
        auth = (config.username, config.password)

    return OpenSearch(
        hosts=[{'host': config.host, 'port': config.port}],
        http_auth=auth,
        use_ssl=config.use_ssl,
        verify_certs=config.verify_certs,
        connection_class=RequestsHttpConnection,
        timeout=config.timeout
    )


class OpenSearchContentStore(ContentStore):
    """Reads stories from an OpenSearch index created by StoryIndexManager."""

    def __init__(self, client: OpenSearch, index_name: str = "stories", request_timeout: int = 30):
        self.client = client
        self.index_name = index_name
        self.request_timeout = request_timeout

    @classmethod
    def from_config(cls, config: StoreConfig) -> "OpenSearchContentStore":
        return cls(create_client(config), config.index_name, config.timeout)

    def _call(self, operation: str, func, **kwargs) -> Dict[str, Any]:
        """Invoke a client method, translating transport errors."""
        try:
            return func(index=self.index_name, request_timeout=self.request_timeout, **kwargs)
        except ConnectionTimeout as e:
            logger.warning(f"OpenSearch {operation} timed out: {e}")
            raise TransientFetchError(f"{operation} timed out: {e}") from e
        except ConnectionError as e:
            logger.error(f"OpenSearch connection error: {e}")
            raise ContentStoreUnavailable(f"Search service unavailable: {e}") from e
        except NotFoundError as e:
            logger.error(f"OpenSearch index {self.index_name} not found: {e}")
            raise ContentStoreUnavailable(f"Index {self.index_name} not found") from e
        except RequestError as e:
            logger.error(f"OpenSearch request error: {e}")
            raise ValueError(f"Invalid store query: {e}") from e
        except TransportError as e:
            if isinstance(e.status_code, int) and e.status_code >= 500:
                logger.warning(f"OpenSearch {operation} failed with {e.status_code}: {e}")
                raise TransientFetchError(f"{operation} failed with status {e.status_code}") from e
            raise

    def _search(self, body: Dict[str, Any]) -> List[ContentItem]:
        logger.debug(f"Executing store query: {body}")
        response = self._call("search", self.client.search, body=body)
        return [self._to_item(hit) for hit in response["hits"]["hits"]]

    @staticmethod
    def _to_item(hit: Dict[str, Any]) -> ContentItem:
        source = dict(hit["_source"])
        source.setdefault("id", hit["_id"])
        return ContentItem(**source)

    def get_all_items(self, page_size: int) -> List[ContentItem]:
        return self._search({
            "size": page_size,
            "query": {"match_all": {}},
            "sort": NEWEST_FIRST
        })

    def prefix_range(self, field: str, start: str, end: str, limit: int) -> List[ContentItem]:
        if field not in SORT_FIELDS:
            raise ValueError(f"Unsupported range field: {field}. Must be one of {RANGE_FIELDS}")
        indexed_field = SORT_FIELDS[field]

        query: Dict[str, Any] = {
            "bool": {
                "filter": [{"range": {indexed_field: {"gte": start, "lte": end}}}]
            }
        }
        if field == "geohash":
            query["bool"]["must_not"] = [{"term": {"is_draft": True}}]

        return self._search({
            "size": limit,
            "query": query,
            "sort": [{indexed_field: {"order": "asc"}}, {"id": {"order": "asc"}}]
        })

    def items_with_tags(self, tags: List[str], limit: int) -> List[ContentItem]:
        if not tags:
            return []
        return self._search({
            "size": limit,
            "query": {"terms": {"tags": [tag.lower() for tag in tags]}},
            "sort": NEWEST_FIRST
        })

    def latest_items(self, limit: int) -> List[ContentItem]:
        return self._search({
            "size": limit,
            "query": {"match_all": {}},
            "sort": NEWEST_FIRST
        })

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        try:
            response = self.client.get(
                index=self.index_name, id=item_id, request_timeout=self.request_timeout
            )
        except NotFoundError:
            return None
        except ConnectionTimeout as e:
            raise TransientFetchError(f"get {item_id} timed out: {e}") from e
        except ConnectionError as e:
            raise ContentStoreUnavailable(f"Search service unavailable: {e}") from e
        return self._to_item(response)
