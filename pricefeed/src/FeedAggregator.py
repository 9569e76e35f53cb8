"""FeedAggregator: One canonical price per feed from many exchange prices.

For a requested feed:
    1. Resolve the feed's configured (symbol, exchange) sources
    2. Read the latest observation per source, skipping missing or stale ones
    3. Convert USDT-quoted prices to USD by resolving the USDT/USD feed
       through the same entry point
    4. Optionally drop outliers (median deviation)
    5. Optionally weight by traded volume and freshness

Expected failures never raise: a missing feed, no fresh prices or a cyclic
conversion produce a warning and a None price.

.. code-block:: python

    aggregator = FeedAggregator(registry, price_store, volume_store)
    price = await aggregator.resolve_price(FeedId(1, "BTC/USD"))
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Callable, Sequence

from .AggregationStages import (
    AggregationResult,
    PriceSample,
    filter_outliers,
    median,
    simple_mean,
    weighted_average,
)
from .AggregatorConfig import AggregatorConfig
from .FeedId import USDT_USD_FEED, FeedId

if TYPE_CHECKING:
    from .FeedConfig import FeedConfigRegistry, FeedSourceConfig
    from .PriceStore import BasePriceStore
    from .VolumeStore import BaseVolumeStore

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class _ResolveContext:
    """Per-call state shared by a resolution and its nested conversions."""

    def __init__(self, now_ms: float) -> None:
        self.now_ms = now_ms
        self.resolving: set[FeedId] = set()
        self.conversions: dict[FeedId, float | None] = {}


class FeedAggregator:
    """Aggregates fresh per-exchange prices into a single feed price.

    Holds no mutable state of its own; the price and volume stores are
    read, never written. Calls for the same or different feeds may run
    concurrently.

    :ivar feed_configs: Lookup of configured sources per feed.
    :ivar price_store: Latest-price store.
    :ivar volume_store: Rolling traded-volume store.
    :ivar config: Aggregation settings.
    """

    def __init__(
        self,
        feed_configs: FeedConfigRegistry,
        price_store: BasePriceStore,
        volume_store: BaseVolumeStore,
        config: AggregatorConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param feed_configs: Feed configuration lookup.
        :param price_store: Store providing the latest observation per pair.
        :param volume_store: Store providing traded volume per pair.
        :param config: Aggregation settings (default: AggregatorConfig()).
        :param clock: Callable returning the current time in milliseconds.
        """
        self.feed_configs = feed_configs
        self.price_store = price_store
        self.volume_store = volume_store
        self.config = config or AggregatorConfig()
        self.clock = clock or _now_ms

        logger.info(
            f"FeedAggregator initialized with config: {json.dumps(self.config.as_dict())}"
        )

    async def resolve_price(self, feed_id: FeedId) -> float | None:
        """Get the aggregated price for a feed.

        :param feed_id: Feed to resolve.
        :returns: The price, or None if no price is available this round.
        """
        result = await self.resolve(feed_id)
        return result.price

    async def resolve(self, feed_id: FeedId) -> AggregationResult:
        """Aggregate a feed and report how the price was obtained.

        :param feed_id: Feed to resolve.
        :returns: AggregationResult with price and metadata, or None price
            with error info.
        """
        return await self._resolve(feed_id, _ResolveContext(self.clock()))

    async def _resolve(self, feed_id: FeedId, ctx: _ResolveContext) -> AggregationResult:
        if feed_id in ctx.resolving:
            logger.warning(
                "Conversion cycle detected while resolving feed "
                f"{json.dumps(feed_id.to_dict())}"
            )
            return AggregationResult(
                price=None, metadata={"error": "conversion_cycle", "feed": str(feed_id)}
            )

        config = self.feed_configs.resolve(feed_id)
        if config is None:
            logger.warning(f"No config found for feed {json.dumps(feed_id.to_dict())}")
            return AggregationResult(
                price=None, metadata={"error": "feed_not_found", "feed": str(feed_id)}
            )

        ctx.resolving.add(feed_id)
        try:
            samples = await self._collect_samples(config.sources, ctx)
        finally:
            ctx.resolving.discard(feed_id)

        if not samples:
            logger.warning(f"No fresh prices for feed {json.dumps(feed_id.to_dict())}")
            return AggregationResult(
                price=None, metadata={"error": "no_fresh_prices", "feed": str(feed_id)}
            )

        initial_median = median([s.value for s in samples])
        dropped: list[PriceSample] = []
        if self.config.enable_outlier_filter:
            samples, dropped = filter_outliers(
                samples, self.config.outlier_threshold_percent
            )

        if self.config.enable_volume_weighting:
            price, weighted = weighted_average(
                samples,
                lambda symbol, exchange: self.volume_store.volume_over_window(
                    symbol, exchange, self.config.volume_lookback_seconds, ctx.now_ms
                ),
                ctx.now_ms,
                self.config.max_price_age_ms,
                label=feed_id.name,
            )
        else:
            price, weighted = simple_mean(samples), False

        self._log_breakdown(feed_id, price, weighted, samples, dropped)

        return AggregationResult(
            price=price,
            metadata={
                "sources": [s.exchange for s in samples],
                "dropped": {s.exchange: s.value for s in dropped},
                "count": len(samples),
                "median": initial_median,
                "weighted": weighted,
            },
        )

    async def _collect_samples(
        self, sources: Sequence[FeedSourceConfig], ctx: _ResolveContext
    ) -> list[PriceSample]:
        """Build samples from fresh observations, converting USDT quotes to USD."""
        samples: list[PriceSample] = []

        for source in sources:
            info = self.price_store.latest_observation(source.symbol, source.exchange)
            if info is None:
                continue
            if info.time is not None and ctx.now_ms - info.time > self.config.max_price_age_ms:
                continue

            price = info.value
            if source.is_usdt_quoted:
                usdt_to_usd = await self._usdt_rate(ctx)
                if usdt_to_usd is None:
                    continue
                logger.debug(
                    f"[{source.exchange}] {source.symbol}: {price:.6f} x USDT/USD "
                    f"{usdt_to_usd:.6f}"
                )
                price *= usdt_to_usd

            samples.append(
                PriceSample(
                    value=price,
                    exchange=source.exchange,
                    symbol=source.symbol,
                    time=info.time,
                )
            )

        return samples

    async def _usdt_rate(self, ctx: _ResolveContext) -> float | None:
        """Resolve USDT/USD once per call and reuse it for every USDT source."""
        if USDT_USD_FEED not in ctx.conversions:
            result = await self._resolve(USDT_USD_FEED, ctx)
            ctx.conversions[USDT_USD_FEED] = result.price
        return ctx.conversions[USDT_USD_FEED]

    def _log_breakdown(
        self,
        feed_id: FeedId,
        price: float,
        weighted: bool,
        used: list[PriceSample],
        dropped: list[PriceSample],
    ) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        method = "weighted" if weighted else "mean"
        breakdown = ", ".join(f"{s.exchange}=${s.value:.6f}" for s in used)
        log_msg = f"{feed_id.name}: ${price:.6f} ({method} of [{breakdown}]"
        if dropped:
            dropped_strs = ", ".join(f"{s.exchange}=${s.value:.6f}" for s in dropped)
            log_msg += f", dropped: [{dropped_strs}]"
        log_msg += ")"
        logger.debug(log_msg)
