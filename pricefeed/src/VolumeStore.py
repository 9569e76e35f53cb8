"""Rolling traded-volume store consumed by the aggregator.

Each (symbol, exchange) pair has a VolumeWindow of recent trades. The
aggregator asks for the volume traded within its lookback window.

.. code-block:: python

    >>> store = RollingVolumeStore()
    >>> store.record("BTC/USDT", "binance", 2.5, time_ms=1_000_000)
    >>> store.record("BTC/USDT", "binance", 1.5, time_ms=1_500_000)
    >>> store.volume_over_window("BTC/USDT", "binance", 600, now_ms=1_700_000)
    1.5
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .AggregatorConfig import AggregatorConfig

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class VolumeWindow:
    """Time-ordered trade volumes for one market pair.

    Entries older than the retention period are pruned on write.

    :ivar retention_seconds: How long entries are kept.
    """

    DEFAULT_RETENTION_SECONDS = 3600

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS) -> None:
        self.retention_seconds = retention_seconds
        self._entries: deque[tuple[float, float]] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, volume: float, time_ms: float | None = None) -> None:
        """Record traded volume.

        :param volume: Traded amount.
        :param time_ms: Trade time in milliseconds (default: now).
        """
        if time_ms is None:
            time_ms = _now_ms()
        self._entries.append((time_ms, volume))
        self._prune(time_ms)

    def get_volume(self, seconds: float, now_ms: float | None = None) -> float:
        """Sum the volume traded in the last ``seconds``.

        :param seconds: Lookback window in seconds.
        :param now_ms: Reference time in milliseconds (default: now).
        :returns: Total volume inside the window.
        """
        if now_ms is None:
            now_ms = _now_ms()
        cutoff = now_ms - seconds * 1000
        return sum(volume for ts, volume in self._entries if cutoff <= ts <= now_ms)

    def _prune(self, now_ms: float) -> None:
        cutoff = now_ms - self.retention_seconds * 1000
        while self._entries and self._entries[0][0] < cutoff:
            self._entries.popleft()


class BaseVolumeStore(ABC):
    """Read interface of the traded-volume store."""

    @abstractmethod
    def volume_over_window(
        self,
        symbol: str,
        exchange: str,
        window_seconds: float,
        now_ms: float | None = None,
    ) -> float | None:
        """Get the volume traded for a market pair within a window.

        :param symbol: Market symbol.
        :param exchange: Exchange identifier.
        :param window_seconds: Lookback window in seconds.
        :param now_ms: Reference time in milliseconds (default: now).
        :returns: Traded volume, or None if the pair is not tracked.
        """
        pass


class RollingVolumeStore(BaseVolumeStore):
    """Dict-backed store: symbol -> exchange -> VolumeWindow.

    Queries for a window longer than the retention can only see the
    retained part of it; build the store with :meth:`from_config` so the
    retention covers the aggregator's lookback.
    """

    def __init__(self, retention_seconds: float = VolumeWindow.DEFAULT_RETENTION_SECONDS) -> None:
        self.retention_seconds = retention_seconds
        self._windows: dict[str, dict[str, VolumeWindow]] = {}
        self._warned_windows: set[float] = set()

    @classmethod
    def from_config(cls, config: AggregatorConfig) -> RollingVolumeStore:
        """Create a store retaining at least the configured volume lookback."""
        return cls(max(VolumeWindow.DEFAULT_RETENTION_SECONDS, config.volume_lookback_seconds))

    def window(self, symbol: str, exchange: str) -> VolumeWindow:
        """Get or create the window for a market pair."""
        by_exchange = self._windows.setdefault(symbol, {})
        if exchange not in by_exchange:
            by_exchange[exchange] = VolumeWindow(self.retention_seconds)
        return by_exchange[exchange]

    def record(
        self,
        symbol: str,
        exchange: str,
        volume: float,
        time_ms: float | None = None,
    ) -> None:
        """Record traded volume for a market pair."""
        self.window(symbol, exchange).add(volume, time_ms)

    def volume_over_window(
        self,
        symbol: str,
        exchange: str,
        window_seconds: float,
        now_ms: float | None = None,
    ) -> float | None:
        if window_seconds > self.retention_seconds and window_seconds not in self._warned_windows:
            self._warned_windows.add(window_seconds)
            logger.warning(
                f"Volume window of {window_seconds}s exceeds retention of "
                f"{self.retention_seconds}s, older volume is not counted"
            )

        window = self._windows.get(symbol, {}).get(exchange)
        if window is None:
            return None
        return window.get_volume(window_seconds, now_ms)
