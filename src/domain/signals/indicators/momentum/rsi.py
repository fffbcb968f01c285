"""
RSI (Relative Strength Index) Indicator.

Measures the speed and magnitude of recent price changes to evaluate
overbought or oversold conditions.

Uses Wilder's smoothing: the average gain/loss is seeded with the plain
mean of the first `period` deltas, then

    avg = (avg * (period - 1) + current) / period

An average loss of zero is treated as RS = 100.

Signals:
- Overbought (>= overbought, default 70)
- Oversold (<= oversold, default 30)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base import IndicatorBase, IndicatorCategory, IndicatorKind


class RSIIndicator(IndicatorBase):
    """
    Relative Strength Index indicator.

    Default Parameters:
        period: 14
        overbought: 70
        oversold: 30

    Output Columns:
        rsi, is_overbought, is_oversold

    State Output:
        value: Current RSI value (0-100)
        zone: "overbought", "oversold", or "neutral"
        previous: Previous RSI value (None on the first row)
    """

    name = "rsi"
    kind = IndicatorKind.RSI
    category = IndicatorCategory.MOMENTUM
    required_fields = ["close"]

    _default_params = {
        "period": 14,
        "overbought": 70,
        "oversold": 30,
    }

    def _lookback(self, params: Dict[str, Any]) -> int:
        # period deltas need period + 1 closes
        return params["period"] + 1

    def _validate_params(self, params: Dict[str, Any]) -> None:
        super()._validate_params(params)
        if not 0 <= params["oversold"] < params["overbought"] <= 100:
            raise ValueError(
                f"RSI thresholds must satisfy 0 <= oversold < overbought <= 100, "
                f"got oversold={params['oversold']} overbought={params['overbought']}"
            )

    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        close = data["close"].values.astype(np.float64)
        rsi = self._calculate_rsi(close, params["period"])
        return pd.DataFrame(
            {
                "rsi": rsi,
                "is_overbought": rsi >= params["overbought"],
                "is_oversold": rsi <= params["oversold"],
            },
            index=data.index,
        )

    def _calculate_rsi(self, close: np.ndarray, period: int) -> np.ndarray:
        """
        Wilder RSI over a float64 close array.

        Returns:
            RSI values with NaN for the first `period` positions
        """
        n = len(close)
        rsi = np.full(n, np.nan, dtype=np.float64)

        delta = np.diff(close)
        gains = np.where(delta > 0, delta, 0.0)
        losses = np.where(delta < 0, -delta, 0.0)

        avg_gain = float(np.mean(gains[:period]))
        avg_loss = float(np.mean(losses[:period]))
        rsi[period] = self._to_rsi(avg_gain, avg_loss)

        for i in range(period, len(delta)):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period
            rsi[i + 1] = self._to_rsi(avg_gain, avg_loss)

        return rsi

    @staticmethod
    def _to_rsi(avg_gain: float, avg_loss: float) -> float:
        rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
        return 100.0 - 100.0 / (1.0 + rs)

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        rsi = float(current["rsi"])
        if rsi >= params["overbought"]:
            zone = "overbought"
        elif rsi <= params["oversold"]:
            zone = "oversold"
        else:
            zone = "neutral"

        return {
            "value": rsi,
            "zone": zone,
            "previous": None if previous is None else float(previous["rsi"]),
        }
