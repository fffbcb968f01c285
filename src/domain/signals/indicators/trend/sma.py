"""
SMA (Simple Moving Average) Indicator.

Arithmetic mean of the last `period` closes at every position. O(n * period),
which is fine at the series sizes involved (a few thousand candles at most).

State:
- value: Latest SMA
- slope: Change versus the previous SMA (None on the first row)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind, rolling_mean


class SMAIndicator(IndicatorBase):
    """
    Simple moving average of close.

    Default Parameters:
        period: 20

    Output Columns:
        sma
    """

    name = "sma"
    kind = IndicatorKind.SMA
    category = IndicatorCategory.TREND
    required_fields = ["close"]

    _default_params = {"period": 20}

    def _lookback(self, params: Dict[str, Any]) -> int:
        return params["period"]

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        close = data["close"].values.astype(np.float64)
        return pd.DataFrame({"sma": rolling_mean(close, params["period"])}, index=data.index)

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        value = float(current["sma"])
        slope = None if previous is None else value - float(previous["sma"])
        return {"value": value, "slope": slope}
