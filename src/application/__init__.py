"""Application layer - pipeline coordination and workflow control."""

from .pipeline import CandlePreloader, KeyWorker, PipelineCoordinator, WorkerStats

__all__ = [
    "CandlePreloader",
    "KeyWorker",
    "PipelineCoordinator",
    "WorkerStats",
]
