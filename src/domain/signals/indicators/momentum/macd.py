"""
MACD (Moving Average Convergence Divergence) Indicator.

    macd_line   = EMA(fast) - EMA(slow)       on the candles where both exist
    signal_line = EMA(signal) of macd_line    seeded with the SMA of its first `signal` values
    histogram   = macd_line - signal_line

is_golden_cross is the level condition macd_line > signal_line, evaluated on
every row. The transition (a cross on this candle) is reported in the state
as crossover = "golden" / "dead".
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind, ema_seeded


class MACDIndicator(IndicatorBase):
    """
    MACD indicator.

    Default Parameters:
        fast_period: 12
        slow_period: 26
        signal_period: 9

    Output Columns:
        macd, signal, histogram, is_golden_cross, is_dead_cross

    State Output:
        macd, signal, histogram
        crossover: "golden" when the MACD line crossed above the signal line
            on the latest candle, "dead" when it crossed below, otherwise None
        above_zero: MACD line above zero
    """

    name = "macd"
    kind = IndicatorKind.MACD
    category = IndicatorCategory.MOMENTUM
    required_fields = ["close"]

    _default_params = {
        "fast_period": 12,
        "slow_period": 26,
        "signal_period": 9,
    }

    def _lookback(self, params: Dict[str, Any]) -> int:
        # signal EMA is seeded from the first MACD value at index longest - 1
        return max(params["fast_period"], params["slow_period"]) + params["signal_period"] - 1

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        close = data["close"].values.astype(np.float64)
        longest = max(params["fast_period"], params["slow_period"])

        fast = ema_seeded(close, params["fast_period"])
        slow = ema_seeded(close, params["slow_period"])
        macd_line = fast - slow  # NaN until both EMAs exist

        signal_line = ema_seeded(macd_line, params["signal_period"], start=longest - 1)
        histogram = macd_line - signal_line

        return pd.DataFrame(
            {
                "macd": macd_line,
                "signal": signal_line,
                "histogram": histogram,
                "is_golden_cross": macd_line > signal_line,
                "is_dead_cross": macd_line < signal_line,
            },
            index=data.index,
        )

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        crossover = None
        if previous is not None:
            if bool(current["is_golden_cross"]) and not bool(previous["is_golden_cross"]):
                crossover = "golden"
            elif bool(current["is_dead_cross"]) and not bool(previous["is_dead_cross"]):
                crossover = "dead"

        return {
            "macd": float(current["macd"]),
            "signal": float(current["signal"]),
            "histogram": float(current["histogram"]),
            "crossover": crossover,
            "above_zero": float(current["macd"]) > 0,
        }
