"""
CandleSeries - Read-only view of one (instrument, market, timeframe) series.

Handed to the indicator library and strategies. The pandas frame and numpy
columns are built lazily and cached; the candles themselves are a tuple so
the view cannot be used to mutate the owner's history.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .candle import Candle, CandleKey, Timeframe

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


@dataclass(frozen=True)
class CandleSeries:
    """Time-ascending candles for one key and timeframe."""

    key: CandleKey
    timeframe: Timeframe
    candles: Tuple[Candle, ...]

    @classmethod
    def of(cls, key: CandleKey, timeframe: Timeframe, candles: Sequence[Candle]) -> "CandleSeries":
        return cls(key=key, timeframe=timeframe, candles=tuple(candles))

    def __len__(self) -> int:
        return len(self.candles)

    @property
    def instrument(self) -> str:
        return self.key.instrument

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def previous(self) -> Optional[Candle]:
        return self.candles[-2] if len(self.candles) >= 2 else None

    @property
    def last_timestamp(self) -> int:
        return self.candles[-1].open_time if self.candles else 0

    @cached_property
    def frame(self) -> pd.DataFrame:
        """OHLCV DataFrame indexed by openTime (ms)."""
        index = pd.Index([c.open_time for c in self.candles], name="open_time", dtype="int64")
        return pd.DataFrame(
            {
                "open": np.fromiter((c.open for c in self.candles), dtype=np.float64, count=len(self.candles)),
                "high": np.fromiter((c.high for c in self.candles), dtype=np.float64, count=len(self.candles)),
                "low": np.fromiter((c.low for c in self.candles), dtype=np.float64, count=len(self.candles)),
                "close": np.fromiter((c.close for c in self.candles), dtype=np.float64, count=len(self.candles)),
                "volume": np.fromiter((c.volume for c in self.candles), dtype=np.float64, count=len(self.candles)),
            },
            index=index,
        )

    def closes(self) -> np.ndarray:
        return self.frame["close"].to_numpy()

    def tail(self, n: int) -> "CandleSeries":
        """The last n candles as a new view."""
        return CandleSeries(key=self.key, timeframe=self.timeframe, candles=self.candles[-n:] if n > 0 else ())
