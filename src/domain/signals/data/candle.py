"""
Candle - OHLCV model for one-minute and aggregated candles.

Times are epoch milliseconds (UTC), the unit exchange kline payloads use,
so bucket alignment is plain integer arithmetic:

    bucket_start = (open_time // interval_ms) * interval_ms

Candles are immutable. A candle that is still forming is *replaced* in the
buffer on every update rather than mutated in place.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from src.domain.exceptions import InvalidCandle
from src.utils.timezone import from_millis


class Timeframe(Enum):
    """Supported candle timeframes."""

    M1 = "1m"
    M15 = "15m"
    H1 = "1h"
    D1 = "1d"

    @property
    def seconds(self) -> int:
        return TIMEFRAME_SECONDS[self.value]

    @property
    def millis(self) -> int:
        return self.seconds * 1000

    @property
    def minutes(self) -> int:
        return self.seconds // 60

    def bucket_start(self, open_time_ms: int) -> int:
        """Start of the bucket containing open_time_ms (1d aligns to midnight UTC)."""
        return (open_time_ms // self.millis) * self.millis

    @classmethod
    def parse(cls, value: "str | Timeframe") -> "Timeframe":
        """Parse "15m" style strings; raises ValueError on unknown values."""
        if isinstance(value, Timeframe):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown timeframe '{value}'. Supported: {[t.value for t in cls]}"
            ) from None


TIMEFRAME_SECONDS: Dict[str, int] = {
    "1m": 60,
    "15m": 900,
    "1h": 3600,
    "1d": 86400,
}


@dataclass(frozen=True)
class CandleKey:
    """Identity of one candle stream: instrument on a market."""

    instrument: str
    market: str = "FUTURES"

    def __str__(self) -> str:
        return f"{self.instrument}:{self.market}"


@dataclass(frozen=True, slots=True)
class Candle:
    """
    One OHLCV candle.

    Invariants (checked by validate_candle):
        open_time < close_time
        low <= open, close <= high
        volume >= 0
    """

    open_time: int
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float = 0.0
    trades: int = 0
    taker_buy_base_volume: float = 0.0
    taker_buy_quote_volume: float = 0.0

    @property
    def open_datetime(self) -> datetime:
        return from_millis(self.open_time)

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3

    @property
    def body_percent(self) -> float:
        """Close-to-open move as a percentage of open."""
        if self.open == 0:
            return 0.0
        return (self.close - self.open) / self.open * 100

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with exchange-style camelCase keys."""
        raw = asdict(self)
        return {_CAMEL_KEYS.get(k, k): v for k, v in raw.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candle":
        """
        Build a candle from a camelCase or snake_case mapping.

        Numeric fields may arrive as strings (exchange REST payloads do this).

        Raises:
            InvalidCandle: If a required field is missing or not numeric.
        """
        normalized = {_SNAKE_KEYS.get(k, k): v for k, v in data.items()}
        try:
            return cls(
                open_time=int(normalized["open_time"]),
                close_time=int(normalized["close_time"]),
                open=float(normalized["open"]),
                high=float(normalized["high"]),
                low=float(normalized["low"]),
                close=float(normalized["close"]),
                volume=float(normalized["volume"]),
                quote_volume=float(normalized.get("quote_volume", 0.0)),
                trades=int(normalized.get("trades", 0)),
                taker_buy_base_volume=float(normalized.get("taker_buy_base_volume", 0.0)),
                taker_buy_quote_volume=float(normalized.get("taker_buy_quote_volume", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidCandle(f"Malformed candle payload: {e}") from e


_CAMEL_KEYS = {
    "open_time": "openTime",
    "close_time": "closeTime",
    "quote_volume": "quoteVolume",
    "taker_buy_base_volume": "takerBuyBaseVolume",
    "taker_buy_quote_volume": "takerBuyQuoteVolume",
}
_SNAKE_KEYS = {v: k for k, v in _CAMEL_KEYS.items()}


def validate_candle(candle: Candle) -> Candle:
    """
    Check the OHLC invariants of a candle.

    Returns:
        The same candle, for chaining.

    Raises:
        InvalidCandle: Naming the first violated invariant.
    """
    prices = (candle.open, candle.high, candle.low, candle.close)
    if not all(math.isfinite(p) for p in prices) or not math.isfinite(candle.volume):
        raise InvalidCandle("non-finite price or volume", candle)
    if candle.open_time >= candle.close_time:
        raise InvalidCandle(
            f"openTime {candle.open_time} must be before closeTime {candle.close_time}",
            candle,
        )
    if candle.low > min(candle.open, candle.close):
        raise InvalidCandle(f"low {candle.low} above open/close", candle)
    if candle.high < max(candle.open, candle.close):
        raise InvalidCandle(f"high {candle.high} below open/close", candle)
    if candle.volume < 0:
        raise InvalidCandle(f"negative volume {candle.volume}", candle)
    return candle
