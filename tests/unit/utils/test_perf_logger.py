"""Tests for timing helpers."""

import logging
from typing import List

import pytest

from src.utils.perf_logger import log_timing, log_timing_async, set_perf_logger, timed


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def perf_records() -> List[logging.LogRecord]:
    handler = ListHandler()
    logger = logging.getLogger("tests.perf")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    set_perf_logger(logger)
    yield handler.records
    logger.removeHandler(handler)
    set_perf_logger(logging.getLogger("signalcore.perf"))


class TestLogTiming:
    def test_fast_operation_logs_debug(self, perf_records: List[logging.LogRecord]) -> None:
        with log_timing("prefetch", extra={"specs": 2}) as ctx:
            ctx["strategies"] = 5

        rec = perf_records[0]
        assert rec.levelno == logging.DEBUG
        assert rec.data["operation"] == "prefetch"
        assert rec.data["specs"] == 2
        assert rec.data["strategies"] == 5

    def test_thresholds_escalate(self, perf_records: List[logging.LogRecord]) -> None:
        with log_timing("slow", warn_threshold_ms=0.0, error_threshold_ms=1e9):
            pass
        with log_timing("slower", warn_threshold_ms=0.0, error_threshold_ms=0.0):
            pass

        assert [r.levelno for r in perf_records] == [logging.WARNING, logging.ERROR]

    def test_logs_when_block_raises(self, perf_records: List[logging.LogRecord]) -> None:
        with pytest.raises(RuntimeError):
            with log_timing("boom"):
                raise RuntimeError("boom")
        assert perf_records[0].data["operation"] == "boom"

    @pytest.mark.asyncio
    async def test_async_context_manager(self, perf_records: List[logging.LogRecord]) -> None:
        async with log_timing_async("evaluation") as ctx:
            ctx["results"] = 19
        assert perf_records[0].data["results"] == 19


class TestTimedDecorator:
    def test_sync_function(self, perf_records: List[logging.LogRecord]) -> None:
        @timed()
        def compute(x: int) -> int:
            return x * 2

        assert compute(4) == 8
        assert perf_records[0].data["operation"] == "compute"

    @pytest.mark.asyncio
    async def test_async_function(self, perf_records: List[logging.LogRecord]) -> None:
        @timed("warm_start")
        async def load() -> int:
            return 3

        assert await load() == 3
        assert perf_records[0].data["operation"] == "warm_start"
