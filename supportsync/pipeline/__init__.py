"""Pipeline package: normalization, bounded-concurrency ingestion and run drivers."""

from supportsync.pipeline.ingest import IngestionPipeline
from supportsync.pipeline.report import EntityCounts, Failure, RunReport
from supportsync.pipeline.runner import compute_window, run_once
from supportsync.pipeline.watch import WatchRunner

__all__ = [
    "IngestionPipeline",
    "RunReport",
    "EntityCounts",
    "Failure",
    "compute_window",
    "run_once",
    "WatchRunner",
]
