"""
Threshold crossing detection.

Compares a price series against a reference line (a moving average, VWAP,
or a constant level) and reports the candles where the price broke through:

- UP_BREAK: previous price below the line, current price above it
- DOWN_BREAK: previous price above the line, current price below it

Touching the line is not a break.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Union

import numpy as np

from .base import IndicatorResult


class ThresholdCross(Enum):
    UP_BREAK = "UP_BREAK"
    DOWN_BREAK = "DOWN_BREAK"


@dataclass(frozen=True)
class CrossEvent:
    timestamp: int
    price: float
    level: float
    cross: ThresholdCross


def detect_threshold_crosses(
    timestamps: np.ndarray,
    prices: np.ndarray,
    line: Union[np.ndarray, float],
) -> List[CrossEvent]:
    """
    Find every UP_BREAK / DOWN_BREAK of prices through line.

    Args:
        timestamps: Candle openTimes, aligned with prices
        prices: Price series (usually close)
        line: Reference series aligned with prices, or a constant level

    Returns:
        Cross events in time order
    """
    prices = np.asarray(prices, dtype=np.float64)
    levels = np.broadcast_to(np.asarray(line, dtype=np.float64), prices.shape)

    events: List[CrossEvent] = []
    for i in range(1, len(prices)):
        prev_p, curr_p = prices[i - 1], prices[i]
        prev_l, curr_l = levels[i - 1], levels[i]
        if np.isnan(prev_l) or np.isnan(curr_l):
            continue
        if prev_p < prev_l and curr_p > curr_l:
            events.append(CrossEvent(int(timestamps[i]), float(curr_p), float(curr_l), ThresholdCross.UP_BREAK))
        elif prev_p > prev_l and curr_p < curr_l:
            events.append(CrossEvent(int(timestamps[i]), float(curr_p), float(curr_l), ThresholdCross.DOWN_BREAK))
    return events


def crosses_against(result: IndicatorResult, closes: np.ndarray, column: str) -> List[CrossEvent]:
    """
    Crossings of closes through an indicator column.

    closes must cover the same candles as the indicator's source series; only
    the trailing len(result) closes are compared.
    """
    tail = np.asarray(closes, dtype=np.float64)[-len(result):]
    return detect_threshold_crosses(result.timestamps, tail, result.column(column))
