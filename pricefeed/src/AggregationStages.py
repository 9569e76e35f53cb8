"""AggregationStages: Pure transformation stages over price samples.

Pipeline, applied by FeedAggregator after the staleness pass:
    1. filter_outliers: drop samples deviating > threshold percent from the
       median; never empties the set (falls back to the unfiltered samples)
    2. weighted_average: volume x freshness weighted mean, or simple mean
       when weighting is disabled or all weights collapse to zero

.. code-block:: python

    >>> samples = [
    ...     PriceSample(100.0, "a"),
    ...     PriceSample(100.2, "b"),
    ...     PriceSample(150.0, "rogue"),
    ... ]
    >>> kept, dropped = filter_outliers(samples, 0.5)
    >>> [s.exchange for s in dropped]
    ['rogue']
    >>> simple_mean(kept)
    100.1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from statistics import median as _median
from typing import Callable, Sequence, TypedDict

logger = logging.getLogger(__name__)

# (symbol, exchange) -> traded volume over the lookback window, or None
VolumeLookup = Callable[[str, str], "float | None"]


@dataclass(frozen=True)
class PriceSample:
    """One fresh, USD-normalized price used in a single aggregation call.

    :ivar value: Price, already converted to the feed's quote currency.
    :ivar exchange: Exchange that reported the price.
    :ivar symbol: Market symbol the price was read from.
    :ivar time: Observation time in milliseconds, or None if unknown.
    """

    value: float
    exchange: str
    symbol: str = ""
    time: float | None = None


class AggregationError(TypedDict, total=False):
    """Why a feed produced no price this round.

    :ivar error: One of "feed_not_found", "no_fresh_prices", "conversion_cycle".
    :ivar feed: The feed in "category:name" form.
    """

    error: str
    feed: str


class AggregationMetadata(TypedDict, total=False):
    """How a feed price was put together.

    :ivar sources: Exchanges used in the final calculation.
    :ivar dropped: Exchanges dropped as outliers, with their prices.
    :ivar count: Number of samples used.
    :ivar median: Median of all fresh samples before outlier filtering.
    :ivar weighted: True if the volume/freshness weighted mean was used.
    """

    sources: list[str]
    dropped: dict[str, float]
    count: int
    median: float
    weighted: bool


@dataclass
class AggregationResult:
    """Outcome of one feed resolution.

    :ivar price: Feed price, or None when no price is available this round.
    :ivar metadata: Sample breakdown on success, error details otherwise.
    """

    price: float | None
    metadata: AggregationMetadata | AggregationError

    @property
    def success(self) -> bool:
        """True when the feed produced a price."""
        return self.price is not None

    @property
    def error(self) -> str | None:
        """Error identifier when no price was produced, else None."""
        if self.price is None:
            return self.metadata.get("error")
        return None


def median(values: Sequence[float]) -> float:
    """Median of the values; mean of the two middle values for even counts.

    :raises statistics.StatisticsError: If ``values`` is empty.
    """
    return _median(values)


def filter_outliers(
    samples: Sequence[PriceSample],
    threshold_percent: float,
) -> tuple[list[PriceSample], list[PriceSample]]:
    """Keep samples within ``threshold_percent`` of the median.

    A sample exactly at the threshold is kept. If every sample would be
    dropped, the unfiltered samples are returned and nothing is dropped.

    :param samples: Non-empty list of samples.
    :param threshold_percent: Max allowed deviation from the median, in percent.
    :returns: Tuple of (kept, dropped) samples.
    """
    mid = median([s.value for s in samples])
    if mid == 0:
        return list(samples), []

    kept: list[PriceSample] = []
    dropped: list[PriceSample] = []
    for sample in samples:
        deviation = abs(sample.value - mid) / mid * 100
        if deviation <= threshold_percent:
            kept.append(sample)
        else:
            dropped.append(sample)

    if not kept:
        return list(samples), []
    return kept, dropped


def simple_mean(samples: Sequence[PriceSample]) -> float:
    """Unweighted arithmetic mean of the sample values."""
    return sum(s.value for s in samples) / len(samples)


def freshness_weight(time_ms: float | None, now_ms: float, max_age_ms: float) -> float:
    """Linear decay from 1 (just observed) to 0 (at max age).

    Observations without a timestamp get full weight.
    """
    if time_ms is None or max_age_ms <= 0:
        return 1.0
    return max(0.0, 1 - (now_ms - time_ms) / max_age_ms)


def weighted_average(
    samples: Sequence[PriceSample],
    volume_lookup: VolumeLookup,
    now_ms: float,
    max_age_ms: float,
    label: str = "",
) -> tuple[float, bool]:
    """Volume and freshness weighted mean of the sample values.

    Volume weight is the traded volume for the sample's pair, or 1 when
    unavailable or non-positive. Falls back to the simple mean when the total
    weight is zero.

    :param samples: Non-empty list of samples.
    :param volume_lookup: Callable (symbol, exchange) -> volume or None.
    :param now_ms: Reference time in milliseconds.
    :param max_age_ms: Age at which freshness weight reaches zero.
    :param label: Feed name used in log messages.
    :returns: Tuple of (price, weighted); weighted is False when the simple
        mean fallback was used.
    """
    total_weight = 0.0
    weighted_sum = 0.0

    for sample in samples:
        volume_weight = 1.0
        volume = volume_lookup(sample.symbol, sample.exchange)
        if volume is not None and volume > 0:
            volume_weight = volume

        weight = volume_weight * freshness_weight(sample.time, now_ms, max_age_ms)
        weighted_sum += sample.value * weight
        total_weight += weight

    if total_weight == 0:
        logger.warning(
            f"Total volume+freshness weight is zero for {label}, "
            "falling back to simple average"
        )
        return simple_mean(samples), False

    return weighted_sum / total_weight, True
