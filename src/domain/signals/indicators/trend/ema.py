"""
EMA (Exponential Moving Average) Indicator.

Seeded with the SMA of the first `period` closes, then

    ema[i] = close[i] * alpha + ema[i-1] * (1 - alpha),  alpha = 2 / (period + 1)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind, ema_seeded


class EMAIndicator(IndicatorBase):
    """
    Exponential moving average of close.

    Default Parameters:
        period: 12

    Output Columns:
        ema
    """

    name = "ema"
    kind = IndicatorKind.EMA
    category = IndicatorCategory.TREND
    required_fields = ["close"]

    _default_params = {"period": 12}

    def _lookback(self, params: Dict[str, Any]) -> int:
        return params["period"]

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        close = data["close"].values.astype(np.float64)
        return pd.DataFrame({"ema": ema_seeded(close, params["period"])}, index=data.index)

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        value = float(current["ema"])
        slope = None if previous is None else value - float(previous["ema"])
        return {"value": value, "slope": slope}
