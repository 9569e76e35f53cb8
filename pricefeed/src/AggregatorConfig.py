"""AggregatorConfig: Static settings for the feed aggregator.

Built once at process start, either directly or from environment variables,
and passed into FeedAggregator.

Environment variables:
    ENABLE_OUTLIER_FILTER, ENABLE_VOLUME_WEIGHTING, OUTLIER_THRESHOLD_PERCENT,
    VOLUME_LOOKBACK_SECONDS, MAX_PRICE_AGE_MS

.. code-block:: python

    >>> config = AggregatorConfig.from_env({"OUTLIER_THRESHOLD_PERCENT": "1.5"})
    >>> config.outlier_threshold_percent
    1.5
    >>> AggregatorConfig.from_env({"MAX_PRICE_AGE_MS": "soon"}).max_price_age_ms
    30000
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Callable, Mapping

DEFAULT_OUTLIER_THRESHOLD_PERCENT = 0.5
DEFAULT_VOLUME_LOOKBACK_SECONDS = 3600
DEFAULT_MAX_PRICE_AGE_MS = 30000


@dataclass(frozen=True)
class AggregatorConfig:
    """Aggregator settings.

    :ivar enable_outlier_filter: Drop samples deviating from the median.
    :ivar enable_volume_weighting: Weight samples by volume and freshness.
    :ivar outlier_threshold_percent: Max deviation from median, in percent.
    :ivar volume_lookback_seconds: Window for traded volume lookups.
    :ivar max_price_age_ms: Observations older than this are ignored.
    """

    enable_outlier_filter: bool = True
    enable_volume_weighting: bool = True
    outlier_threshold_percent: float = DEFAULT_OUTLIER_THRESHOLD_PERCENT
    volume_lookback_seconds: int = DEFAULT_VOLUME_LOOKBACK_SECONDS
    max_price_age_ms: int = DEFAULT_MAX_PRICE_AGE_MS

    def as_dict(self) -> dict[str, Any]:
        """Return the settings as a plain dict."""
        return asdict(self)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> AggregatorConfig:
        """Load settings from environment variables.

        Unset variables keep the defaults. Numeric values that fail to parse
        are replaced with the default without error. Keyword overrides take
        precedence over the environment.

        :param environ: Mapping to read from (default: os.environ).
        :param overrides: Explicit field values, e.g. ``max_price_age_ms=5000``.
        :returns: New AggregatorConfig instance.
        """
        env = os.environ if environ is None else environ

        values: dict[str, Any] = {
            "enable_outlier_filter": _parse_bool(
                env.get("ENABLE_OUTLIER_FILTER"), True
            ),
            "enable_volume_weighting": _parse_bool(
                env.get("ENABLE_VOLUME_WEIGHTING"), True
            ),
            "outlier_threshold_percent": _parse_number(
                env.get("OUTLIER_THRESHOLD_PERCENT"),
                float,
                DEFAULT_OUTLIER_THRESHOLD_PERCENT,
            ),
            "volume_lookback_seconds": _parse_number(
                env.get("VOLUME_LOOKBACK_SECONDS"),
                int,
                DEFAULT_VOLUME_LOOKBACK_SECONDS,
            ),
            "max_price_age_ms": _parse_number(
                env.get("MAX_PRICE_AGE_MS"), int, DEFAULT_MAX_PRICE_AGE_MS
            ),
        }
        values.update(overrides)
        return cls(**values)


def _parse_bool(raw: str | None, default: bool) -> bool:
    if not raw:
        return default
    return raw.strip().lower() == "true"


def _parse_number(raw: str | None, parse: Callable[[str], Any], default: Any) -> Any:
    if not raw:
        return default
    try:
        return parse(raw.strip())
    except ValueError:
        return default
