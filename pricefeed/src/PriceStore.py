"""Latest-price store consumed by the aggregator.

The ingestion layer writes the most recent price per (symbol, exchange);
the aggregator only reads. Implement BasePriceStore to plug in a different
backing store.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PriceObservation:
    """Latest price reported by one exchange for one symbol.

    :ivar value: Reported price.
    :ivar time: Unix timestamp in milliseconds, or None if unknown.
    """

    value: float
    time: float | None = None


class BasePriceStore(ABC):
    """Read interface of the latest-price store."""

    @abstractmethod
    def latest_observation(self, symbol: str, exchange: str) -> PriceObservation | None:
        """Get the latest observation for a market pair.

        :param symbol: Market symbol (e.g., "BTC/USDT").
        :param exchange: Exchange identifier.
        :returns: The observation, or None if nothing was recorded.
        """
        pass


class InMemoryPriceStore(BasePriceStore):
    """Dict-backed store: symbol -> exchange -> PriceObservation."""

    def __init__(self) -> None:
        self._prices: dict[str, dict[str, PriceObservation]] = {}

    def update(
        self,
        symbol: str,
        exchange: str,
        value: float,
        time_ms: float | None = None,
    ) -> PriceObservation:
        """Record the latest price for a market pair.

        :param symbol: Market symbol.
        :param exchange: Exchange identifier.
        :param value: Reported price.
        :param time_ms: Observation time in milliseconds (default: now).
        :returns: The stored observation.
        """
        if time_ms is None:
            time_ms = time.time() * 1000
        observation = PriceObservation(value=value, time=time_ms)
        self._prices.setdefault(symbol, {})[exchange] = observation
        return observation

    def latest_observation(self, symbol: str, exchange: str) -> PriceObservation | None:
        return self._prices.get(symbol, {}).get(exchange)

    def clear(self) -> None:
        """Drop all recorded prices."""
        self._prices = {}
