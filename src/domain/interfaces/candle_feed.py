"""Market-data feed event consumed by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from ..signals.data.candle import Candle, CandleKey


@dataclass(frozen=True)
class CandleEvent:
    """
    One-minute candle update from the feed.

    is_final=False is a live update of the forming candle (buffer replace);
    is_final=True closes it (buffer append + aggregation + trigger).
    """

    instrument: str
    market: str
    is_final: bool
    candle: Candle

    @property
    def key(self) -> CandleKey:
        return CandleKey(self.instrument, self.market)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandleEvent":
        """
        Build from a feed payload: {instrument, market, isFinal, candle}.

        Raises:
            InvalidCandle: If the candle payload is malformed
        """
        return cls(
            instrument=str(data["instrument"]),
            market=str(data.get("market", "FUTURES")),
            is_final=bool(data.get("isFinal", data.get("is_final", False))),
            candle=Candle.from_dict(data["candle"]),
        )
