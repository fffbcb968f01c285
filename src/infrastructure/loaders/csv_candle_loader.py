"""
CSV candle loader.

Reads one-minute kline history into Candles (for warm start) or
CandleEvents (for replay through the pipeline).

Expected columns:
- open_time (or openTime / timestamp / date): epoch ms or a datetime string
- open, high, low, close, volume
- optional: close_time, quote_volume, trades, instrument, market, is_final

Naive datetime strings are taken as UTC. Missing close_time defaults to
open_time + 59999 ms, the exchange convention for one-minute klines.

Example:
    loader = CsvCandleLoader("data/btcusdt_1m.csv", instrument="BTCUSDT")
    events = loader.events()
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pandas as pd

from ...domain.exceptions import ConfigurationError, InvalidCandle
from ...domain.interfaces import CandleEvent
from ...domain.signals.data import Candle, Timeframe, validate_candle
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

_TIME_COLUMNS = ("open_time", "openTime", "timestamp", "date")
_REQUIRED = ("open", "high", "low", "close", "volume")


class CsvCandleLoader:
    """
    Load one-minute candles from a CSV file with pandas.

    Rows that fail candle validation are skipped with a warning.
    """

    def __init__(
        self,
        path: str | Path,
        instrument: Optional[str] = None,
        market: str = "FUTURES",
    ) -> None:
        """
        Args:
            path: CSV file path
            instrument: Instrument for every row (overrides an instrument column)
            market: Market used when the file has no market column
        """
        self._path = Path(path)
        self._instrument = instrument
        self._market = market
        self._skipped = 0

    @property
    def skipped(self) -> int:
        """Rows rejected by the last load."""
        return self._skipped

    def frame(self) -> pd.DataFrame:
        """
        Raw rows with a normalized integer open_time column, sorted by time.

        Raises:
            ConfigurationError: If the file is missing or lacks required columns
        """
        if not self._path.exists():
            raise ConfigurationError(f"CSV file not found: {self._path}")

        df = pd.read_csv(self._path)
        time_col = next((c for c in _TIME_COLUMNS if c in df.columns), None)
        missing = [c for c in _REQUIRED if c not in df.columns]
        if time_col is None or missing:
            raise ConfigurationError(
                f"{self._path}: missing columns {missing or []}"
                f"{'' if time_col else ' and an open_time column'}"
            )

        df = df.rename(columns={"closeTime": "close_time", "quoteVolume": "quote_volume", "isFinal": "is_final"})
        df["open_time"] = _to_millis(df[time_col])
        if "close_time" not in df.columns:
            df["close_time"] = df["open_time"] + Timeframe.M1.millis - 1

        return df.sort_values("open_time", kind="stable").reset_index(drop=True)

    def events(self) -> List[CandleEvent]:
        """Rows as feed events in file time order."""
        df = self.frame()
        self._skipped = 0
        events: List[CandleEvent] = []

        for row in df.to_dict("records"):
            instrument = self._instrument or str(row.get("instrument", ""))
            if not instrument:
                raise ConfigurationError(f"{self._path}: no instrument given and no instrument column")
            try:
                candle = validate_candle(Candle.from_dict(row))
            except InvalidCandle as e:
                self._skipped += 1
                logger.warning(f"Skipping row at open_time={row.get('open_time')} in {self._path.name}: {e}")
                continue

            is_final = row.get("is_final", True)
            events.append(CandleEvent(
                instrument=instrument,
                market=str(row.get("market", self._market)),
                is_final=bool(is_final) if not pd.isna(is_final) else True,
                candle=candle,
            ))

        logger.info(
            f"CsvCandleLoader loaded {len(events)} rows from {self._path.name} ({self._skipped} skipped)",
            extra={"data": {"path": str(self._path), "rows": len(events), "skipped": self._skipped}},
        )
        return events

    def candles(self) -> List[Candle]:
        """Final candles only, for repository seeding."""
        return [e.candle for e in self.events() if e.is_final]


def _to_millis(column: pd.Series) -> pd.Series:
    """Epoch milliseconds from an integer or datetime-string column."""
    if pd.api.types.is_numeric_dtype(column):
        return column.astype("int64")
    stamps = pd.to_datetime(column, utc=True)
    return (stamps - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)
