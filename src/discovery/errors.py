"""
Error taxonomy for the discovery engine.

Store adapters raise these exceptions; retrieval strategies convert the
recoverable ones into StrategyResult values so the orchestrator can decide
between degrading and aborting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class DiscoveryError(Exception):
    """Base class for discovery engine errors."""


class TransientFetchError(DiscoveryError):
    """Content store timed out or answered with a retryable failure."""


class ContentStoreUnavailable(DiscoveryError):
    """Content store cannot be reached at all."""


class IndexNotReady(DiscoveryError):
    """No inverted index snapshot has been published yet."""


class InvalidQuery(DiscoveryError, ValueError):
    """Query parameters can never produce results (negative radius, empty bounds)."""


class LocationMissing(DiscoveryError):
    """Item has no location and cannot take part in geospatial operations."""


class ErrorKind(str, Enum):
    """Failure kinds a retrieval strategy can report."""
    TRANSIENT_FETCH = "transient_fetch"
    INDEX_NOT_READY = "index_not_ready"
    INVALID_QUERY = "invalid_query"


@dataclass
class StrategyResult:
    """
    Outcome of one retrieval strategy.

    hits maps item id to the strategy's raw score. items holds the matched
    content items keyed the same way. error is set when the strategy could not
    run; hits is then empty.
    """
    name: str
    hits: Dict[str, float] = field(default_factory=dict)
    items: Dict[str, object] = field(default_factory=dict)
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, name: str, error: ErrorKind, message: str = "") -> "StrategyResult":
        return cls(name=name, error=error, message=message)
