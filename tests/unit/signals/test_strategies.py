"""
Tests for the built-in strategies.

Series are kept just long enough for the indicators involved so the
expected signals can be worked out by hand.
"""

from typing import Optional, Sequence

import numpy as np
import pytest

from src.domain.signals.data import Timeframe
from src.domain.signals.indicators import IndicatorSuite, get_indicator_registry
from src.domain.signals.models import SignalType, StrategyResult
from src.domain.signals.strategies import Strategy, create_strategy
from src.domain.signals.strategies.composite import (
    MeanReversionStrategy,
    TripleConfirmationStrategy,
    VWAPTrendStrategy,
)
from src.domain.signals.strategies.momentum import (
    MACDGoldenCrossStrategy,
    MACDZeroCrossStrategy,
    RSIOverboughtReversalStrategy,
    RSIOversoldBounceStrategy,
)
from src.domain.signals.strategies.trend import (
    GoldenCrossStrategy,
    MABreakoutStrategy,
    MACrossoverStrategy,
)
from src.domain.signals.strategies.volatility import (
    BollingerLowerBounceStrategy,
    BollingerReversalStrategy,
    BollingerUpperBreakStrategy,
)
from src.domain.signals.strategies.volume import OBVTrendStrategy, VolumeSurgeStrategy
from tests.factories import BASE_TIME, series_from_closes


def run(
    strategy: Strategy,
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    timeframe: Timeframe = Timeframe.M15,
) -> StrategyResult:
    series = series_from_closes(closes, timeframe=timeframe, volumes=volumes)
    suite = IndicatorSuite(series, get_indicator_registry())
    suite.prefetch(strategy.requirements(series))
    return strategy.evaluate(series, suite)


# =============================================================================
# Base behaviour
# =============================================================================


class TestStrategyBase:
    """Identity, parameters and skipped results."""

    def test_default_ids(self) -> None:
        assert MABreakoutStrategy().strategy_id == "ma_breakout_20"
        assert GoldenCrossStrategy().strategy_id == "golden_cross_50_200"
        assert MACrossoverStrategy().strategy_id == "ma_crossover_20_50"
        assert TripleConfirmationStrategy().strategy_id == "triple_confirmation"
        assert VWAPTrendStrategy().strategy_id == "vwap_trend"

    def test_required_history(self) -> None:
        # Longest lookback plus one candle for the previous row
        assert MABreakoutStrategy(period=200).required_history() == 201
        assert GoldenCrossStrategy().required_history() == 201
        assert RSIOversoldBounceStrategy().required_history() == 16
        assert MACDGoldenCrossStrategy().required_history() == 35
        assert VWAPTrendStrategy().required_history() == 2

    def test_explicit_id_wins(self) -> None:
        assert MABreakoutStrategy(strategy_id="fast_breakout", period=5).strategy_id == "fast_breakout"

    def test_unknown_param_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown parameters"):
            MABreakoutStrategy(lenght=20)

    def test_timeframe_filter(self) -> None:
        strategy = MABreakoutStrategy(timeframes=["15m", "1h"])
        assert strategy.applies_to("15m")
        assert not strategy.applies_to("1m")
        assert MABreakoutStrategy().applies_to("1d")

    def test_single_candle_is_skipped(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0])

        assert result.skipped
        assert result.signal == SignalType.NEUTRAL
        assert result.confidence == 0.0
        assert "at least 2 candles" in result.evidence.error

    def test_insufficient_history_is_skipped(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 11.0])

        assert result.skipped
        assert result.signal == SignalType.NEUTRAL
        assert result.evidence.error == "sma needs 3 candles, got 2"

    def test_result_identity(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 12.0], timeframe=Timeframe.H1)

        assert result.instrument == "BTCUSDT"
        assert result.timeframe == "1h"
        assert result.timestamp == BASE_TIME + 4 * Timeframe.H1.millis
        assert not result.skipped


# =============================================================================
# Trend
# =============================================================================


class TestMABreakout:
    """close vs SMA(period) transitions."""

    def test_breakout_is_buy(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 12.0])

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["sma3"] == pytest.approx(32.0 / 3)
        assert "close > SMA3: yes" in result.evidence.conditions
        assert "previous close > SMA3: no" in result.evidence.conditions

    def test_holding_above_is_weak_buy(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 12.0, 13.0])
        assert result.signal == SignalType.WEAK_BUY

    def test_breakdown_is_sell(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 12.0, 9.0])
        assert result.signal == SignalType.SELL

    def test_staying_below_is_weak_sell(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 9.0])
        assert result.signal == SignalType.WEAK_SELL

    def test_first_sma_counts_previous_as_not_above(self) -> None:
        """With no previous SMA the first candle above it is a breakout."""
        result = run(MABreakoutStrategy(period=3), [9.0, 9.0, 12.0])
        assert result.signal == SignalType.BUY

    def test_confidence_bounded(self) -> None:
        result = run(MABreakoutStrategy(period=3), [10.0, 10.0, 10.0, 10.0, 100.0])
        assert 0 <= result.confidence <= 100


class TestGoldenCross:
    """SMA(fast) vs SMA(slow)."""

    def test_cross_is_strong_buy(self) -> None:
        strategy = GoldenCrossStrategy(fast_period=2, slow_period=3)
        result = run(strategy, [10.0, 10.0, 10.0, 13.0])

        assert result.signal == SignalType.STRONG_BUY
        assert "golden cross on this candle: yes" in result.evidence.conditions

    def test_fast_above_is_buy(self) -> None:
        strategy = GoldenCrossStrategy(fast_period=2, slow_period=3)
        assert run(strategy, [10.0, 10.0, 10.0, 13.0, 14.0]).signal == SignalType.BUY

    def test_dead_cross_is_sell(self) -> None:
        strategy = GoldenCrossStrategy(fast_period=2, slow_period=3)
        assert run(strategy, [10.0, 10.0, 10.0, 7.0]).signal == SignalType.SELL

    def test_no_cross_without_previous_slow_value(self) -> None:
        strategy = GoldenCrossStrategy(fast_period=2, slow_period=3)
        assert run(strategy, [10.0, 10.0, 13.0]).signal == SignalType.BUY

    def test_fast_must_be_shorter(self) -> None:
        with pytest.raises(ValueError, match="fast_period"):
            GoldenCrossStrategy(fast_period=50, slow_period=20)


class TestMACrossover:
    """Symmetric crossover with volume confirmation."""

    def test_cross_up_is_strong_buy(self) -> None:
        closes = [10.0] * 19 + [9.0, 13.0]
        result = run(MACrossoverStrategy(fast_period=2, slow_period=3), closes)

        assert result.signal == SignalType.STRONG_BUY
        assert result.confidence == 75

    def test_volume_confirmed_cross(self) -> None:
        closes = [10.0] * 19 + [9.0, 13.0]
        volumes = [100.0] * 20 + [400.0]
        result = run(MACrossoverStrategy(fast_period=2, slow_period=3), closes, volumes)

        assert result.signal == SignalType.STRONG_BUY
        assert result.confidence == 90

    def test_cross_down_is_strong_sell(self) -> None:
        closes = [10.0] * 19 + [11.0, 7.0]
        result = run(MACrossoverStrategy(fast_period=2, slow_period=3), closes)
        assert result.signal == SignalType.STRONG_SELL

    def test_ema_variant(self) -> None:
        strategy = MACrossoverStrategy(fast_period=2, slow_period=3, ma_type="ema")
        assert {spec.name for spec in strategy.requirements(series_from_closes([1.0]))} == {"ema", "volume"}

    def test_bad_ma_type(self) -> None:
        with pytest.raises(ValueError, match="ma_type"):
            MACrossoverStrategy(ma_type="wma")


# =============================================================================
# Momentum
# =============================================================================


class TestRSIStrategies:
    """RSI(3) bounce and reversal."""

    falling_then_up = [20.0, 18.0, 16.0, 14.0, 12.0, 12.5]
    falling = [20.0, 18.0, 16.0, 14.0, 12.0]
    rising_then_down = [10.0, 12.0, 14.0, 16.0, 18.0, 17.5]
    choppy = [10.0, 11.0, 10.0, 11.0]

    def test_oversold_bounce_buy(self) -> None:
        result = run(RSIOversoldBounceStrategy(period=3), self.falling_then_up)

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["rsi"] == pytest.approx(100 / 9)
        assert result.evidence.indicator_snapshot["previous_rsi"] == pytest.approx(0.0)

    def test_oversold_still_falling_is_weak_buy(self) -> None:
        assert run(RSIOversoldBounceStrategy(period=3), self.falling).signal == SignalType.WEAK_BUY

    def test_oversold_bounce_sees_overbought_as_weak_sell(self) -> None:
        assert run(RSIOversoldBounceStrategy(period=3), self.rising_then_down).signal == SignalType.WEAK_SELL

    def test_overbought_reversal_sell(self) -> None:
        result = run(RSIOverboughtReversalStrategy(period=3), self.rising_then_down)

        assert result.signal == SignalType.SELL
        assert result.evidence.indicator_snapshot["rsi"] == pytest.approx(800 / 9)

    def test_overbought_reversal_sees_oversold_as_weak_buy(self) -> None:
        assert run(RSIOverboughtReversalStrategy(period=3), self.falling).signal == SignalType.WEAK_BUY

    def test_mid_range_is_neutral(self) -> None:
        assert run(RSIOversoldBounceStrategy(period=3), self.choppy).signal == SignalType.NEUTRAL
        assert run(RSIOverboughtReversalStrategy(period=3), self.choppy).signal == SignalType.NEUTRAL

    def test_threshold_validation(self) -> None:
        with pytest.raises(ValueError):
            RSIOversoldBounceStrategy(oversold=80.0, overbought=70.0)


@pytest.fixture
def v_shaped_closes() -> np.ndarray:
    """Accelerating decline followed by a sharp recovery."""
    down = [100.0 - 0.1 * i * i for i in range(25)]
    up = [down[-1] + 3.0 * (i + 1) for i in range(20)]
    return np.array(down + up)


class TestMACDStrategies:
    """MACD(3, 6, 3) on a V-shaped series."""

    params = {"fast_period": 3, "slow_period": 6, "signal_period": 3}

    def _macd(self, closes: np.ndarray):
        series = series_from_closes(closes)
        return get_indicator_registry().compute("macd", series, **self.params).unwrap()

    def test_golden_cross_signal_follows_crossover(self, v_shaped_closes: np.ndarray) -> None:
        strategy = MACDGoldenCrossStrategy(**self.params)
        goldens = 0

        for end in range(9, len(v_shaped_closes) + 1):
            closes = v_shaped_closes[:end]
            state = self._macd(closes).state
            signal = run(strategy, closes).signal

            if state["crossover"] == "golden":
                goldens += 1
                expected = SignalType.STRONG_BUY if state["macd"] > 0 else SignalType.BUY
                assert signal == expected
            elif state["crossover"] == "dead":
                assert signal == SignalType.SELL
            elif state["macd"] > state["signal"]:
                assert signal == SignalType.WEAK_BUY
            else:
                assert signal == SignalType.WEAK_SELL

        assert goldens >= 1

    def test_decline_is_weak_sell(self, v_shaped_closes: np.ndarray) -> None:
        strategy = MACDGoldenCrossStrategy(**self.params)
        assert run(strategy, v_shaped_closes[:25]).signal == SignalType.WEAK_SELL

    def test_zero_cross_buy(self, v_shaped_closes: np.ndarray) -> None:
        macd = self._macd(v_shaped_closes).column("macd")
        offset = len(v_shaped_closes) - len(macd)
        crossings = [i for i in range(1, len(macd)) if macd[i - 1] <= 0 < macd[i]]
        assert crossings

        end = offset + crossings[0] + 1
        result = run(MACDZeroCrossStrategy(**self.params), v_shaped_closes[:end])

        assert result.signal == SignalType.BUY
        assert "MACD crossed above 0: yes" in result.evidence.conditions

    def test_below_zero_is_weak_sell(self, v_shaped_closes: np.ndarray) -> None:
        strategy = MACDZeroCrossStrategy(**self.params)
        assert run(strategy, v_shaped_closes[:25]).signal == SignalType.WEAK_SELL


# =============================================================================
# Volatility
# =============================================================================


class TestBollingerStrategies:
    """Bollinger(3, 1.0) band events."""

    spike_up = [10.0, 10.0, 10.0, 10.0, 20.0]
    spike_down = [10.0, 10.0, 10.0, 10.0, 0.0]

    def test_upper_break_is_buy(self) -> None:
        result = run(BollingerUpperBreakStrategy(period=3, std_dev=1.0), self.spike_up)

        assert result.signal == SignalType.BUY
        assert result.confidence == 65
        assert "bandwidth < 0.1: no" in result.evidence.conditions

    def test_upper_break_neutral_inside_band(self) -> None:
        strategy = BollingerUpperBreakStrategy(period=3, std_dev=1.0)
        assert run(strategy, [10.0, 11.0, 10.0, 11.0, 10.0]).signal == SignalType.NEUTRAL

    def test_lower_bounce_is_buy(self) -> None:
        strategy = BollingerLowerBounceStrategy(period=3, std_dev=1.0)
        assert run(strategy, self.spike_down + [9.0]).signal == SignalType.BUY

    def test_below_lower_band_is_weak_buy(self) -> None:
        strategy = BollingerLowerBounceStrategy(period=3, std_dev=1.0)
        assert run(strategy, self.spike_down).signal == SignalType.WEAK_BUY

    def test_reversal_at_lower_band_with_cold_rsi(self) -> None:
        strategy = BollingerReversalStrategy(period=3, std_dev=1.0, rsi_period=3)
        assert run(strategy, self.spike_down).signal == SignalType.STRONG_BUY

    def test_reversal_at_upper_band_with_hot_rsi(self) -> None:
        strategy = BollingerReversalStrategy(period=3, std_dev=1.0, rsi_period=3)
        assert run(strategy, self.spike_up).signal == SignalType.STRONG_SELL

    def test_std_dev_validation(self) -> None:
        with pytest.raises(ValueError, match="std_dev"):
            BollingerUpperBreakStrategy(std_dev=0.0)


# =============================================================================
# Volume
# =============================================================================


class TestVolumeStrategies:
    """Volume ratio and OBV direction."""

    def test_surge_with_rising_close_is_buy(self) -> None:
        strategy = VolumeSurgeStrategy(period=3)
        result = run(strategy, [10.0, 10.0, 10.0, 11.0], volumes=[100.0, 100.0, 100.0, 500.0])

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["volume_ratio"] == pytest.approx(500 / (700 / 3))

    def test_surge_with_falling_close_is_weak_sell(self) -> None:
        strategy = VolumeSurgeStrategy(period=3)
        result = run(strategy, [10.0, 10.0, 10.0, 9.0], volumes=[100.0, 100.0, 100.0, 500.0])
        assert result.signal == SignalType.WEAK_SELL

    def test_normal_volume_is_neutral(self) -> None:
        strategy = VolumeSurgeStrategy(period=3)
        assert run(strategy, [10.0, 10.0, 10.0, 11.0]).signal == SignalType.NEUTRAL

    def test_obv_and_price_rising_is_buy(self) -> None:
        strategy = OBVTrendStrategy(period=3, lookback=2)
        result = run(strategy, [10.0, 11.0, 12.0, 13.0, 14.0])

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["obv_change"] == pytest.approx(200.0)

    def test_obv_and_price_falling_is_sell(self) -> None:
        strategy = OBVTrendStrategy(period=3, lookback=2)
        assert run(strategy, [14.0, 13.0, 12.0, 11.0, 10.0]).signal == SignalType.SELL

    def test_accumulation_is_weak_buy(self) -> None:
        strategy = OBVTrendStrategy(period=3, lookback=2)
        closes = [10.0, 10.0, 10.0, 9.0, 12.0, 8.0]
        volumes = [100.0, 100.0, 100.0, 100.0, 300.0, 100.0]
        assert run(strategy, closes, volumes).signal == SignalType.WEAK_BUY

    def test_lookback_validation(self) -> None:
        with pytest.raises(ValueError, match="lookback"):
            OBVTrendStrategy(lookback=0)


# =============================================================================
# Composite
# =============================================================================


class TestCompositeStrategies:
    """Strategies combining several indicators."""

    def test_triple_confirmation_sums_components(self, linear_closes: np.ndarray) -> None:
        # MA holding above (+1), RSI overbought (-1), volume surge on a rising close (+2)
        volumes = [100.0] * (len(linear_closes) - 1) + [500.0]
        result = run(TripleConfirmationStrategy(), linear_closes, volumes)

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["score"] == 2.0
        assert result.evidence.indicator_snapshot["ma_breakout_20"] == 1.0
        assert result.evidence.indicator_snapshot["rsi_oversold_bounce_14"] == -1.0
        assert result.evidence.indicator_snapshot["volume_surge_20"] == 2.0

    def test_triple_confirmation_skipped_when_short(self) -> None:
        result = run(TripleConfirmationStrategy(), [10.0] * 15)
        assert result.skipped

    def test_mean_reversion_buy_after_sharp_drop(self) -> None:
        closes = [100.0] * 40 + [95.0, 90.0, 85.0, 80.0]
        assert run(MeanReversionStrategy(), closes).signal == SignalType.BUY

    def test_mean_reversion_sell_after_sharp_rally(self) -> None:
        closes = [100.0] * 40 + [105.0, 110.0, 115.0, 120.0]
        assert run(MeanReversionStrategy(), closes).signal == SignalType.SELL

    def test_mean_reversion_flat_is_neutral(self) -> None:
        assert run(MeanReversionStrategy(), [100.0] * 40).signal == SignalType.NEUTRAL

    def test_vwap_cross_up_is_buy(self) -> None:
        strategy = VWAPTrendStrategy(session="none")
        result = run(strategy, [10.0, 10.0, 10.0, 13.0])

        assert result.signal == SignalType.BUY
        assert result.evidence.indicator_snapshot["vwap"] == pytest.approx(10.5)

    def test_vwap_above_is_weak_buy(self) -> None:
        strategy = VWAPTrendStrategy(session="none")
        assert run(strategy, [10.0, 10.0, 10.0, 13.0, 14.0]).signal == SignalType.WEAK_BUY

    def test_vwap_daily_session_boundaries(self) -> None:
        # 100 fifteen-minute candles span one UTC midnight
        series = series_from_closes([10.0] * 100, timeframe=Timeframe.M15)
        spec = VWAPTrendStrategy().requirements(series)[0]

        assert spec.param_dict["session_boundaries"] == (BASE_TIME + Timeframe.D1.millis,)

    def test_vwap_bad_session(self) -> None:
        with pytest.raises(ValueError, match="session"):
            VWAPTrendStrategy(session="weekly")


class TestCreateStrategy:
    """Type table lookups."""

    def test_create_by_type_name(self) -> None:
        strategy = create_strategy("ma_breakout", period=50)
        assert isinstance(strategy, MABreakoutStrategy)
        assert strategy.strategy_id == "ma_breakout_50"

    def test_unknown_type(self) -> None:
        with pytest.raises(KeyError, match="no_such"):
            create_strategy("no_such")
