"""
Smart Price Feed - Multi-Exchange Price Aggregation Module

This module combines per-exchange price observations into one price per feed:
- FeedId: Feed identifier (category + name)
- FeedConfigRegistry: Configured (symbol, exchange) sources per feed
- AggregatorConfig: Static settings, optionally loaded from the environment
- InMemoryPriceStore / RollingVolumeStore: Reference latest-price and volume stores
- FeedAggregator: Staleness filter, USDT/USD conversion, outlier filter and
  volume/freshness weighting
"""

from .AggregationStages import AggregationResult, PriceSample
from .AggregatorConfig import AggregatorConfig
from .FeedAggregator import FeedAggregator
from .FeedConfig import FeedConfig, FeedConfigRegistry, FeedSourceConfig
from .FeedId import USDT_USD_FEED, FeedId
from .PriceStore import BasePriceStore, InMemoryPriceStore, PriceObservation
from .VolumeStore import BaseVolumeStore, RollingVolumeStore, VolumeWindow

__all__ = [
    "AggregationResult",
    "AggregatorConfig",
    "BasePriceStore",
    "BaseVolumeStore",
    "FeedAggregator",
    "FeedConfig",
    "FeedConfigRegistry",
    "FeedId",
    "FeedSourceConfig",
    "InMemoryPriceStore",
    "PriceObservation",
    "PriceSample",
    "RollingVolumeStore",
    "USDT_USD_FEED",
    "VolumeWindow",
]
