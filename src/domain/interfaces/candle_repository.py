"""Candle repository protocol for warm-start history."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from ..signals.data.candle import Candle


@runtime_checkable
class CandleRepository(Protocol):
    """
    Protocol for persisted one-minute candle history.

    Implementations:
    - InMemoryCandleRepository

    Usage:
        repo: CandleRepository = InMemoryCandleRepository()
        candles = await repo.find_latest("BTCUSDT", "FUTURES", 1440)
    """

    async def find_latest(self, instrument: str, market: str, limit: int) -> List[Candle]:
        """
        Fetch the most recent closed one-minute candles.

        Args:
            instrument: Instrument symbol (e.g., "BTCUSDT").
            market: Market segment (e.g., "FUTURES").
            limit: Maximum number of candles to return.

        Returns:
            Candles sorted by openTime ascending, at most `limit` long.
        """
        ...
