"""
JSON-lines signal sink.

Appends one JSON object per result to a file. Consumers de-duplicate on
(instrument, market, timeframe, timestamp).
"""

from __future__ import annotations

import json
from pathlib import Path

from ...domain.signals.models import MultiStrategyResult
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class JsonLinesSignalSink:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        return self._count

    async def publish(self, result: MultiStrategyResult) -> None:
        line = json.dumps(result.to_dict(), default=str)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        self._count += 1
        logger.debug(f"Wrote {result} to {self._path.name}")
