#!/usr/bin/env python3
"""
Configuration for the discovery engine.
Pydantic settings model loaded from YAML, with an environment override for the file path.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geohash import DEFAULT_PRECISION

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DISCOVERY_CONFIG"
STRATEGY_ORDER = ("prefix", "token", "tag")


class StoreConfig(BaseModel):
    """Content store connection settings."""
    model_config = ConfigDict(extra='forbid')

    backend: Literal["memory", "opensearch"] = "memory"
    data_path: Optional[Path] = None

    # OpenSearch connection
    host: str = "localhost"
    port: int = 9200
    index_name: str = "stories"
    use_ssl: bool = False
    verify_certs: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: int = 30


class DiscoveryConfig(BaseModel):
    """Tunable parameters of the discovery engine."""
    model_config = ConfigDict(extra='forbid')

    # Query ranges must not be longer than the stored geohashes
    geohash_precision: int = Field(ge=1, le=DEFAULT_PRECISION, default=DEFAULT_PRECISION)

    # Strongest strategy first
    strategy_weights: Dict[str, float] = Field(
        default_factory=lambda: {"prefix": 3.0, "token": 2.0, "tag": 1.0}
    )
    strategy_limit: int = Field(ge=1, le=500, default=20)
    fetch_timeout_s: float = Field(gt=0.0, default=10.0)
    index_page_size: int = Field(ge=1, default=1000)
    auto_build_index: bool = True

    geohash_fetch_limit: int = Field(ge=1, default=50)
    default_cluster_radius_km: float = Field(ge=0.0, default=0.1)
    discover_pool_size: int = Field(ge=1, default=50)

    history_max_entries: int = Field(ge=1, default=20)
    history_path: Optional[Path] = None

    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator('strategy_weights')
    def validate_strategy_weights(cls, v):
        allowed = set(STRATEGY_ORDER)
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"Unknown strategies in strategy_weights: {sorted(unknown)}")
        if set(v) != allowed:
            raise ValueError(f"strategy_weights must define all of {sorted(allowed)}")
        weights = [v[name] for name in STRATEGY_ORDER]
        if any(w <= 0 for w in weights):
            raise ValueError("Strategy weights must be positive")
        if any(a <= b for a, b in zip(weights, weights[1:])):
            raise ValueError(f"Strategy weights must be strictly decreasing, got {weights}")
        return v


def load_config(path: Optional[Union[str, Path]] = None) -> DiscoveryConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: YAML file; defaults to $DISCOVERY_CONFIG

    Returns:
        Validated configuration (defaults when no file is found)
    """
    path = path or os.getenv(CONFIG_ENV_VAR)
    if not path:
        return DiscoveryConfig()

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using defaults")
        return DiscoveryConfig()

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    logger.info(f"Loaded discovery config from {config_path}")
    return DiscoveryConfig(**raw)
