"""
Volume Analysis Indicator.

- volume_ma: rolling mean of volume over `period`
- ratio: current volume / volume_ma (0 when the mean is 0)
- is_surge: ratio >= surge_ratio (default 2.0)
- obv: On-Balance Volume. Starts at 0 on the first computed row and adds the
  candle's volume when close rose versus the prior candle, subtracts it when
  close fell, and leaves it unchanged on a tie.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind, rolling_mean


class VolumeAnalysisIndicator(IndicatorBase):
    """
    Volume ratio / surge / OBV indicator.

    Default Parameters:
        period: 20
        surge_ratio: 2.0

    Output Columns:
        volume_ma, ratio, is_surge, obv
    """

    name = "volume"
    kind = IndicatorKind.VOLUME
    category = IndicatorCategory.VOLUME
    required_fields = ["close", "volume"]

    _default_params = {
        "period": 20,
        "surge_ratio": 2.0,
    }

    def _lookback(self, params: Dict[str, Any]) -> int:
        return params["period"]

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        period = params["period"]
        close = data["close"].values.astype(np.float64)
        volume = data["volume"].values.astype(np.float64)
        n = len(close)

        volume_ma = rolling_mean(volume, period)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = np.where(volume_ma > 0, volume / volume_ma, 0.0)
        ratio[: period - 1] = np.nan

        obv = np.full(n, np.nan, dtype=np.float64)
        running = 0.0
        for i in range(period - 1, n):
            if i > period - 1:
                if close[i] > close[i - 1]:
                    running += volume[i]
                elif close[i] < close[i - 1]:
                    running -= volume[i]
            obv[i] = running

        return pd.DataFrame(
            {
                "volume_ma": volume_ma,
                "ratio": ratio,
                "is_surge": ratio >= params["surge_ratio"],
                "obv": obv,
            },
            index=data.index,
        )

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        obv_trend = None
        if previous is not None:
            delta = float(current["obv"]) - float(previous["obv"])
            obv_trend = "rising" if delta > 0 else "falling" if delta < 0 else "flat"
        return {
            "ratio": float(current["ratio"]),
            "is_surge": bool(current["is_surge"]),
            "obv": float(current["obv"]),
            "obv_trend": obv_trend,
        }
