"""
PipelineCoordinator - Routes feed events to per-key workers.

Owns one KeyWorker per (instrument, market). Keys never share state, so
workers run independently; within a key, events are processed strictly in
order and evaluations are single-flight.

Lifecycle:
    coordinator = PipelineCoordinator.from_config(config, sink)
    await coordinator.warm_start([CandleKey("BTCUSDT")])
    await coordinator.start()
    coordinator.submit(event)        # from the feed
    await coordinator.stop()         # drains every queue, then closes

Recoverable errors never leave the coordinator; they are logged, counted
and embedded in the affected result. Only FatalError subclasses
(configuration problems, a full event queue) propagate.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from config.models import AppConfig, PipelineConfig

from ...domain.exceptions import ConfigurationError
from ...domain.interfaces import AnomalySink, CandleEvent, CandleRepository, ErrorChannel, SignalSink
from ...domain.signals.data import DEFAULT_SERIES_CAPACITY, CandleAnomalyDetector, CandleKey
from ...domain.signals.strategy_engine import StrategyEngine
from ...utils.logging_setup import get_logger
from .key_worker import KeyWorker
from .preloader import CandlePreloader

logger = get_logger(__name__)


class PipelineCoordinator:
    """
    Registry of key workers plus their shared collaborators.

    Args:
        engine: Strategy engine shared by all keys
        sink: Receives every MultiStrategyResult
        config: Pipeline settings (timeframes, trigger, queue size)
        error_channel: Receives reports for FAILED results
        repository: Candle history for warm_start()
        anomaly_detector: Detector for closed candles (None disables)
        anomaly_sink: Receives detected anomalies
        buffer_capacity: One-minute candles retained per key
        series_capacity: Closed candles retained per timeframe
    """

    def __init__(
        self,
        engine: StrategyEngine,
        sink: SignalSink,
        config: Optional[PipelineConfig] = None,
        error_channel: Optional[ErrorChannel] = None,
        repository: Optional[CandleRepository] = None,
        anomaly_detector: Optional[CandleAnomalyDetector] = None,
        anomaly_sink: Optional[AnomalySink] = None,
        buffer_capacity: int = 1440,
        series_capacity: int = DEFAULT_SERIES_CAPACITY,
    ) -> None:
        self._engine = engine
        self._sink = sink
        self._config = config or PipelineConfig()
        self._error_channel = error_channel
        self._repository = repository
        self._anomaly_detector = anomaly_detector
        self._anomaly_sink = anomaly_sink
        self._buffer_capacity = buffer_capacity
        self._series_capacity = series_capacity

        try:
            self._timeframes = self._config.evaluation_timeframes
            self._trigger = self._config.trigger
        except ValueError as e:
            raise ConfigurationError(f"Invalid pipeline timeframes: {e}") from e

        self._workers: Dict[CandleKey, KeyWorker] = {}
        self._running = False
        self._stopped = False

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        sink: SignalSink,
        error_channel: Optional[ErrorChannel] = None,
        repository: Optional[CandleRepository] = None,
        anomaly_sink: Optional[AnomalySink] = None,
    ) -> "PipelineCoordinator":
        """
        Build a coordinator and its engine from application config.

        Raises:
            ConfigurationError: If config.validate() reports problems
        """
        problems = config.validate()
        if problems:
            raise ConfigurationError("Invalid configuration:\n  " + "\n  ".join(problems))

        engine = StrategyEngine(config.strategy_registry(), max_workers=config.pipeline.max_workers)
        detector = CandleAnomalyDetector(config.anomaly.thresholds()) if config.anomaly.enabled else None
        return cls(
            engine,
            sink,
            config=config.pipeline,
            error_channel=error_channel,
            repository=repository,
            anomaly_detector=detector,
            anomaly_sink=anomaly_sink,
            buffer_capacity=config.buffer.capacity,
            series_capacity=config.aggregator.series_capacity,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def keys(self) -> List[CandleKey]:
        return list(self._workers)

    def worker(self, key: CandleKey) -> KeyWorker:
        """Worker for a key, created on first use."""
        worker = self._workers.get(key)
        if worker is None:
            worker = KeyWorker(
                key,
                self._engine,
                self._sink,
                timeframes=self._timeframes,
                trigger_timeframe=self._trigger,
                buffer_capacity=self._buffer_capacity,
                series_capacity=self._series_capacity,
                max_queue_size=self._config.max_queue_size,
                error_channel=self._error_channel,
                anomaly_detector=self._anomaly_detector,
                anomaly_sink=self._anomaly_sink,
            )
            self._workers[key] = worker
            logger.info(f"Created worker for {key}")
            if self._running:
                worker.start()
        return worker

    async def start(self) -> None:
        """Start a consumer task for every known key."""
        if self._running:
            logger.warning("PipelineCoordinator already running")
            return
        if self._stopped:
            raise RuntimeError("PipelineCoordinator cannot be restarted after stop()")
        self._running = True
        for worker in self._workers.values():
            worker.start()
        logger.info(
            f"PipelineCoordinator started: trigger={self._trigger.value} "
            f"timeframes={[tf.value for tf in self._timeframes]} "
            f"strategies={len(self._engine.strategies)}"
        )

    async def stop(self) -> None:
        """Stop accepting events, drain every key, then close the engine."""
        if not self._running:
            return
        logger.info("Stopping PipelineCoordinator...")
        self._running = False
        self._stopped = True
        try:
            for worker in list(self._workers.values()):
                await worker.stop(timeout=self._config.drain_timeout_sec)
        finally:
            self._engine.close()
        logger.info(f"PipelineCoordinator stopped. Stats: {self.stats()}")

    def submit(self, event: CandleEvent) -> bool:
        """
        Route a feed event to its key's worker (non-blocking).

        Returns:
            False if the coordinator has been stopped

        Raises:
            ResourceExhaustedError: If the key's queue is full
        """
        if self._stopped:
            logger.warning(f"Dropping event for {event.key}: coordinator stopped")
            return False
        self.worker(event.key).enqueue(event)
        return True

    async def warm_start(self, keys: Iterable[CandleKey]) -> Dict[CandleKey, int]:
        """
        Seed workers for keys from the repository.

        Returns:
            Candles added per key (empty when no repository is configured)
        """
        if self._repository is None:
            logger.warning("warm_start called without a candle repository")
            return {}
        preloader = CandlePreloader(self._repository, limit=self._config.warm_start_limit)
        return await preloader.preload(self.worker(key) for key in keys)

    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-key counters and state."""
        return {str(key): worker.snapshot() for key, worker in self._workers.items()}
