"""
ATR (Average True Range) Indicator.

    true_range = max(high - low, |high - prev_close|, |low - prev_close|)
    atr        = simple mean of the last `period` true ranges

The first candle has no previous close, so the first ATR needs
period + 1 candles. ATR is a plain rolling mean here, not Wilder-smoothed,
while RSI is Wilder-smoothed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind


class ATRIndicator(IndicatorBase):
    """
    Average True Range indicator.

    Default Parameters:
        period: 14

    Output Columns:
        true_range, atr, atr_percent (ATR relative to close, in percent)
    """

    name = "atr"
    kind = IndicatorKind.ATR
    category = IndicatorCategory.VOLATILITY
    required_fields = ["high", "low", "close"]

    _default_params = {"period": 14}

    def _lookback(self, params: Dict[str, Any]) -> int:
        return params["period"] + 1

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        period = params["period"]
        high = data["high"].values.astype(np.float64)
        low = data["low"].values.astype(np.float64)
        close = data["close"].values.astype(np.float64)
        n = len(close)

        true_range = np.full(n, np.nan, dtype=np.float64)
        prev_close = close[:-1]
        true_range[1:] = np.maximum.reduce([
            high[1:] - low[1:],
            np.abs(high[1:] - prev_close),
            np.abs(low[1:] - prev_close),
        ])

        atr = np.full(n, np.nan, dtype=np.float64)
        for i in range(period, n):
            atr[i] = np.mean(true_range[i - period + 1 : i + 1])

        with np.errstate(divide="ignore", invalid="ignore"):
            atr_percent = np.where(close != 0, atr / close * 100, 0.0)

        return pd.DataFrame(
            {"true_range": true_range, "atr": atr, "atr_percent": atr_percent},
            index=data.index,
        )

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "value": float(current["atr"]),
            "atr_percent": float(current["atr_percent"]),
            "expanding": None if previous is None else float(current["atr"]) > float(previous["atr"]),
        }
