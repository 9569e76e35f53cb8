"""Feed source configuration and lookup.

The configuration list is owned by the caller and already parsed; this
module only gives it a shape and resolves a FeedId to its sources.

.. code-block:: python

    >>> registry = FeedConfigRegistry.from_list([
    ...     {
    ...         "feed": {"category": 1, "name": "BTC/USD"},
    ...         "sources": [
    ...             {"symbol": "BTC/USD", "exchange": "kraken"},
    ...             {"symbol": "BTC/USDT", "exchange": "binance"},
    ...         ],
    ...     },
    ... ])
    >>> len(registry.resolve(FeedId(1, "BTC/USD")).sources)
    2
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .FeedId import FeedId

USDT_SUFFIX = "USDT"


@dataclass(frozen=True)
class FeedSourceConfig:
    """One exchange market pair a feed may draw from.

    :ivar symbol: Market symbol as stored by the ingestion layer.
    :ivar exchange: Exchange identifier.
    """

    symbol: str
    exchange: str

    @property
    def is_usdt_quoted(self) -> bool:
        """Check if the pair is quoted in USDT and needs USD conversion."""
        return self.symbol.endswith(USDT_SUFFIX)


@dataclass(frozen=True)
class FeedConfig:
    """Sources configured for one feed.

    :ivar feed: The feed identifier.
    :ivar sources: Ordered source pairs.
    """

    feed: FeedId
    sources: tuple[FeedSourceConfig, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedConfig:
        """Build a FeedConfig from an already-parsed mapping.

        :param data: Mapping with "feed" ({category, name}) and "sources"
            ([{symbol, exchange}, ...]).
        :returns: New FeedConfig instance.
        :raises ValueError: If required keys are missing.
        """
        try:
            feed = data["feed"]
            sources = tuple(
                FeedSourceConfig(symbol=s["symbol"], exchange=s["exchange"])
                for s in data["sources"]
            )
            return cls(feed=FeedId(int(feed["category"]), feed["name"]), sources=sources)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid feed config {data!r}: {e}") from e


class FeedConfigRegistry:
    """Ordered list of feed configurations with lookup by FeedId."""

    def __init__(self, configs: Iterable[FeedConfig] = ()) -> None:
        self._configs: list[FeedConfig] = list(configs)

    def __len__(self) -> int:
        return len(self._configs)

    def resolve(self, feed_id: FeedId) -> FeedConfig | None:
        """Find the configuration for a feed.

        The first entry matching on category and name wins.

        :param feed_id: Feed to look up.
        :returns: The FeedConfig, or None if the feed is not configured.
        """
        for config in self._configs:
            if config.feed == feed_id:
                return config
        return None

    def feeds(self) -> list[FeedId]:
        """Get all configured feed identifiers in configuration order."""
        return [c.feed for c in self._configs]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]]) -> FeedConfigRegistry:
        """Build a registry from a list of parsed feed config mappings."""
        return cls(FeedConfig.from_dict(d) for d in data)
