"""
In-memory candle repository.

Holds one-minute candle history per (instrument, market) for warm start.
Used by tests and by CSV replay, where history is loaded up front.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List

from ...domain.signals.data import Candle, CandleKey
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class InMemoryCandleRepository:
    """
    CandleRepository backed by a dict of open_time → Candle per key.

    Re-adding a candle with an existing open_time replaces it.

    Example:
        repo = InMemoryCandleRepository()
        repo.add("BTCUSDT", "FUTURES", candles)
        latest = await repo.find_latest("BTCUSDT", "FUTURES", 1440)
    """

    def __init__(self) -> None:
        self._candles: Dict[CandleKey, Dict[int, Candle]] = {}
        self._lock = threading.Lock()

    def add(self, instrument: str, market: str, candles: Iterable[Candle]) -> int:
        """Store candles for a key; returns how many were given."""
        key = CandleKey(instrument, market)
        count = 0
        with self._lock:
            store = self._candles.setdefault(key, {})
            for candle in candles:
                store[candle.open_time] = candle
                count += 1
        logger.debug(f"Stored {count} candles for {key}")
        return count

    async def find_latest(self, instrument: str, market: str, limit: int) -> List[Candle]:
        """Most recent `limit` candles in ascending open_time order."""
        if limit <= 0:
            return []
        with self._lock:
            store = self._candles.get(CandleKey(instrument, market), {})
            times = sorted(store)[-limit:]
            return [store[t] for t in times]

    def keys(self) -> List[CandleKey]:
        with self._lock:
            return list(self._candles)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(store) for store in self._candles.values())
