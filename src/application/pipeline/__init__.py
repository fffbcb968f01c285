"""Pipeline coordination: per-key workers, routing and warm start."""

from .coordinator import PipelineCoordinator
from .key_worker import KeyWorker, WorkerStats
from .preloader import CandlePreloader

__all__ = [
    "CandlePreloader",
    "KeyWorker",
    "PipelineCoordinator",
    "WorkerStats",
]
