"""
Bollinger Bands Indicator.

    middle    = SMA(period)
    std       = population standard deviation of the same window
    upper     = middle + multiplier * std
    lower     = middle - multiplier * std
    percent_b = (close - lower) / (upper - lower)
    bandwidth = (upper - lower) / middle

A flat window (upper == lower) reports percent_b = 0.5.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind


class BollingerIndicator(IndicatorBase):
    """
    Bollinger Bands indicator.

    Default Parameters:
        period: 20
        std_dev: 2.0

    Output Columns:
        middle, upper, lower, std, percent_b, bandwidth

    State Output:
        percent_b, bandwidth
        position: "above_upper", "below_lower", or "inside"
    """

    name = "bollinger"
    kind = IndicatorKind.BOLLINGER
    category = IndicatorCategory.VOLATILITY
    required_fields = ["close"]

    _default_params = {
        "period": 20,
        "std_dev": 2.0,
    }

    def _lookback(self, params: Dict[str, Any]) -> int:
        return params["period"]

    def _validate_params(self, params: Dict[str, Any]) -> None:
        super()._validate_params(params)
        if params["std_dev"] <= 0:
            raise ValueError(f"Bollinger std_dev must be positive, got {params['std_dev']}")

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        period = params["period"]
        multiplier = float(params["std_dev"])
        close = data["close"].values.astype(np.float64)
        n = len(close)

        middle = np.full(n, np.nan, dtype=np.float64)
        std = np.full(n, np.nan, dtype=np.float64)
        for i in range(period - 1, n):
            window = close[i - period + 1 : i + 1]
            middle[i] = np.mean(window)
            std[i] = np.std(window)  # ddof=0: population

        upper = middle + multiplier * std
        lower = middle - multiplier * std
        width = upper - lower

        with np.errstate(divide="ignore", invalid="ignore"):
            percent_b = np.where(width > 0, (close - lower) / width, 0.5)
            bandwidth = np.where(middle != 0, width / middle, 0.0)
        percent_b[: period - 1] = np.nan
        bandwidth[: period - 1] = np.nan

        return pd.DataFrame(
            {
                "middle": middle,
                "upper": upper,
                "lower": lower,
                "std": std,
                "percent_b": percent_b,
                "bandwidth": bandwidth,
            },
            index=data.index,
        )

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        percent_b = float(current["percent_b"])
        if percent_b > 1:
            position = "above_upper"
        elif percent_b < 0:
            position = "below_lower"
        else:
            position = "inside"
        return {
            "percent_b": percent_b,
            "bandwidth": float(current["bandwidth"]),
            "position": position,
        }
