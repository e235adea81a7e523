"""supportsync - support conversation connector.

Polls a conversational-support API for the conversations active in a time
window, then upserts each conversation, its messages and their senders into
a local SQLite database under bounded concurrency.

Example:
    import asyncio
    from supportsync import load_settings, run_once

    report = asyncio.run(run_once(load_settings(lookback_hours=6)))
    print(report.summary())
"""

from supportsync.config import Settings, load_settings
from supportsync.errors import SupportSyncError
from supportsync.pipeline import IngestionPipeline, RunReport, WatchRunner, run_once
from supportsync.sources import SupportApiClient
from supportsync.storage import AsyncSQLiteBackend
from supportsync.version import SUPPORTSYNC_VERSION

__version__ = SUPPORTSYNC_VERSION

__all__ = [
    "Settings",
    "load_settings",
    "SupportSyncError",
    "IngestionPipeline",
    "RunReport",
    "WatchRunner",
    "run_once",
    "SupportApiClient",
    "AsyncSQLiteBackend",
    "__version__",
]
