"""
VWAP (Volume Weighted Average Price) Indicator.

Cumulative (typical price x volume) / cumulative volume, with
typical price = (high + low + close) / 3.

The accumulation only resets at session boundaries passed in by the caller
(`session_boundaries`, epoch ms). It never decides on its own that a new
session started. A zero cumulative volume yields a VWAP of 0.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind


class VWAPIndicator(IndicatorBase):
    """
    Session VWAP indicator.

    Default Parameters:
        session_boundaries: () - openTimes (ms) at which accumulation restarts

    Output Columns:
        vwap, deviation_percent (close vs VWAP, in percent)
    """

    name = "vwap"
    kind = IndicatorKind.VWAP
    category = IndicatorCategory.VOLUME
    required_fields = ["high", "low", "close", "volume"]

    _default_params = {"session_boundaries": ()}

    def _lookback(self, params: Dict[str, Any]) -> int:
        return 1

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        high = data["high"].values.astype(np.float64)
        low = data["low"].values.astype(np.float64)
        close = data["close"].values.astype(np.float64)
        volume = data["volume"].values.astype(np.float64)
        open_times = data.index.to_numpy()
        boundaries = sorted(int(b) for b in params["session_boundaries"])

        typical = (high + low + close) / 3
        vwap = np.zeros(len(close), dtype=np.float64)
        cum_volume = 0.0
        cum_amount = 0.0
        next_boundary = 0

        for i in range(len(close)):
            # Reset at the first candle at or after each boundary
            reset = False
            while next_boundary < len(boundaries) and open_times[i] >= boundaries[next_boundary]:
                next_boundary += 1
                reset = True
            if reset:
                cum_volume = 0.0
                cum_amount = 0.0

            cum_volume += volume[i]
            cum_amount += typical[i] * volume[i]
            vwap[i] = 0.0 if cum_volume == 0 else cum_amount / cum_volume

        with np.errstate(divide="ignore", invalid="ignore"):
            deviation = np.where(vwap != 0, (close - vwap) / vwap * 100, 0.0)

        return pd.DataFrame({"vwap": vwap, "deviation_percent": deviation}, index=data.index)

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "value": float(current["vwap"]),
            "deviation_percent": float(current["deviation_percent"]),
        }
