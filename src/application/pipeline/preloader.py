"""
CandlePreloader - Warm-starts key workers from the candle repository.

Loads the most recent one-minute candles per key so indicators have their
lookback as soon as the first live trigger arrives.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable

from ...domain.interfaces import CandleRepository
from ...domain.signals.data import CandleKey
from ...utils.logging_setup import get_logger
from ...utils.perf_logger import log_timing_async
from .key_worker import KeyWorker

logger = get_logger(__name__)


class CandlePreloader:
    """
    Seeds workers concurrently, one repository call per key.

    Usage:
        preloader = CandlePreloader(repository, limit=1440)
        loaded = await preloader.preload(workers)
    """

    def __init__(self, repository: CandleRepository, limit: int = 1440) -> None:
        self._repository = repository
        self._limit = limit

    async def preload_one(self, worker: KeyWorker) -> int:
        """Seed one worker; returns candles added (0 on repository failure)."""
        key = worker.key
        try:
            candles = await self._repository.find_latest(key.instrument, key.market, self._limit)
        except Exception as e:
            logger.error(f"Warm start failed for {key}: {e}", exc_info=True)
            return 0

        added = worker.seed(candles)
        logger.info(
            f"Warm start {key}: {added}/{len(candles)} candles",
            extra={"data": {"key": str(key), "loaded": len(candles), "added": added}},
        )
        return added

    async def preload(self, workers: Iterable[KeyWorker]) -> Dict[CandleKey, int]:
        """
        Seed every worker.

        Returns:
            Candles added per key
        """
        workers = list(workers)
        async with log_timing_async("warm_start", warn_threshold_ms=1000, error_threshold_ms=5000) as ctx:
            counts = await asyncio.gather(*(self.preload_one(w) for w in workers))
            ctx["keys"] = len(workers)
            ctx["candles"] = sum(counts)
        return {w.key: n for w, n in zip(workers, counts)}
