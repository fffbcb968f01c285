"""Configuration data models."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from src.domain.signals.data.anomaly_detector import AnomalyThresholds
from src.domain.signals.data.candle import Timeframe
from src.domain.signals.data.timeframe_aggregator import DEFAULT_SERIES_CAPACITY
from src.domain.signals.strategies.registry import StrategyRegistry, create_strategy


@dataclass
class BufferConfig:
    """One-minute candle buffer configuration."""
    capacity: int = 1440  # one day of minutes per key


@dataclass
class AggregatorConfig:
    """Higher-timeframe aggregation configuration."""
    series_capacity: int = DEFAULT_SERIES_CAPACITY  # closed candles kept per timeframe


@dataclass
class IndicatorConfig:
    """Default thresholds injected into strategies that do not set their own."""
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    volume_surge_ratio: float = 2.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9


@dataclass
class StrategyConfig:
    """One configured strategy instance."""
    id: str
    type: str
    enabled: bool = True
    params: Dict[str, Any] = field(default_factory=dict)
    timeframes: Optional[List[str]] = None


@dataclass
class PipelineConfig:
    """Pipeline coordinator configuration."""
    timeframes: List[str] = field(default_factory=lambda: ["15m", "1h", "1d"])
    trigger_timeframe: str = "15m"
    max_queue_size: int = 10_000  # per key
    warm_start_limit: int = 1440
    max_workers: Optional[int] = None  # strategy pool size, default = strategy count
    drain_timeout_sec: float = 30.0

    @property
    def evaluation_timeframes(self) -> List[Timeframe]:
        return [Timeframe.parse(tf) for tf in self.timeframes]

    @property
    def trigger(self) -> Timeframe:
        return Timeframe.parse(self.trigger_timeframe)


@dataclass
class AnomalyConfig:
    """Candle anomaly detection thresholds."""
    enabled: bool = True
    volume_multiplier: float = 3.0
    volume_lookback: int = 10
    spike_percent: float = 3.0
    gap_percent: float = 1.0

    def thresholds(self) -> AnomalyThresholds:
        return AnomalyThresholds(
            volume_multiplier=self.volume_multiplier,
            volume_lookback=self.volume_lookback,
            spike_percent=self.spike_percent,
            gap_percent=self.gap_percent,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    json: bool = True
    console: bool = True
    log_dir: str = "./logs"
    timezone: str = "UTC"  # Timezone for log timestamps ("UTC", "local" or an IANA name)


_RSI_TYPES = ("rsi_oversold_bounce", "rsi_overbought_reversal", "bollinger_reversal")
_MACD_TYPES = ("macd_golden_cross", "macd_zero_cross")


@dataclass
class AppConfig:
    """Complete application configuration."""
    env: str = "dev"
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    strategies: List[StrategyConfig] = field(default_factory=list)  # empty = built-in set
    raw: Dict[str, Any] = field(default_factory=dict)

    def strategy_params(self, strategy: StrategyConfig) -> Dict[str, Any]:
        """Strategy parameters with indicator defaults filled in."""
        ind = self.indicators
        params = dict(strategy.params)
        if strategy.type in _RSI_TYPES:
            params.setdefault("oversold", ind.rsi_oversold)
            params.setdefault("overbought", ind.rsi_overbought)
            params.setdefault("rsi_period" if strategy.type == "bollinger_reversal" else "period", ind.rsi_period)
        elif strategy.type in _MACD_TYPES:
            params.setdefault("fast_period", ind.macd_fast)
            params.setdefault("slow_period", ind.macd_slow)
            params.setdefault("signal_period", ind.macd_signal)
        elif strategy.type == "volume_surge":
            params.setdefault("surge_ratio", ind.volume_surge_ratio)
        return params

    def strategies_dict(self) -> Dict[str, Any]:
        """Strategies in the mapping form StrategyRegistry.from_config reads."""
        return {
            "strategies": {
                s.id: {
                    "type": s.type,
                    "enabled": s.enabled,
                    "params": self.strategy_params(s),
                    "timeframes": s.timeframes,
                }
                for s in self.strategies
            }
        }

    def strategy_registry(self) -> StrategyRegistry:
        """Configured strategies, or the built-in set when none are configured."""
        if not self.strategies:
            return StrategyRegistry.with_defaults()
        return StrategyRegistry.from_config(self.strategies_dict())

    def validate(self) -> List[str]:
        """
        Check the configuration.

        Returns:
            Human-readable problems; empty when the configuration is usable.
        """
        problems: List[str] = []

        for tf in [*self.pipeline.timeframes, self.pipeline.trigger_timeframe]:
            try:
                Timeframe.parse(tf)
            except ValueError:
                problems.append(f"pipeline: unknown timeframe '{tf}'")
        if not self.pipeline.timeframes:
            problems.append("pipeline: at least one evaluation timeframe is required")

        positive = {
            "buffer.capacity": self.buffer.capacity,
            "aggregator.series_capacity": self.aggregator.series_capacity,
            "pipeline.max_queue_size": self.pipeline.max_queue_size,
            "pipeline.warm_start_limit": self.pipeline.warm_start_limit,
            "indicators.rsi_period": self.indicators.rsi_period,
            "indicators.macd_fast": self.indicators.macd_fast,
            "indicators.macd_slow": self.indicators.macd_slow,
            "indicators.macd_signal": self.indicators.macd_signal,
            "anomaly.volume_lookback": self.anomaly.volume_lookback,
        }
        for name, value in positive.items():
            if not isinstance(value, int) or value <= 0:
                problems.append(f"{name} must be a positive integer, got {value!r}")

        if self.indicators.macd_fast >= self.indicators.macd_slow:
            problems.append(
                f"indicators: macd_fast ({self.indicators.macd_fast}) must be < macd_slow ({self.indicators.macd_slow})"
            )
        if not 0 <= self.indicators.rsi_oversold < self.indicators.rsi_overbought <= 100:
            problems.append("indicators: need 0 <= rsi_oversold < rsi_overbought <= 100")

        seen = set()
        checked = []
        for s in self.strategies:
            if s.id in seen:
                problems.append(f"strategy '{s.id}': duplicate id")
            seen.add(s.id)
            for tf in s.timeframes or ():
                if tf not in self.pipeline.timeframes:
                    problems.append(f"strategy '{s.id}': timeframe '{tf}' is not evaluated by the pipeline")
            try:
                strategy = create_strategy(s.type, strategy_id=s.id, timeframes=s.timeframes, **self.strategy_params(s))
            except KeyError:
                problems.append(f"strategy '{s.id}': unknown strategy type '{s.type}'")
            except (ValueError, TypeError) as e:
                problems.append(f"strategy '{s.id}': {e}")
            else:
                if s.enabled:
                    checked.append(strategy)
        if not self.strategies:
            checked = list(StrategyRegistry.with_defaults())

        capacity = self.aggregator.series_capacity
        if isinstance(capacity, int) and capacity > 0:
            for strategy in checked:
                needed = strategy.required_history()
                if needed > capacity:
                    problems.append(
                        f"strategy '{strategy.strategy_id}': needs {needed} candles per timeframe "
                        f"but aggregator.series_capacity is {capacity}"
                    )

        buffer_capacity = self.buffer.capacity
        if isinstance(buffer_capacity, int) and buffer_capacity > 0:
            for tf in self.pipeline.timeframes:
                try:
                    minutes = Timeframe.parse(tf).minutes
                except ValueError:
                    continue
                if minutes > buffer_capacity:
                    problems.append(
                        f"buffer.capacity ({buffer_capacity}) cannot hold one {tf} bucket ({minutes} minutes)"
                    )

        return problems
