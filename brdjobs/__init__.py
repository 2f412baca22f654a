"""Resilient async client for remote scraping, search and dataset jobs.

Key modules:
    client          -- BrdClient facade (scrape, search, zones, datasets, snapshots)
    dispatcher      -- RequestDispatcher for one work item with retries
    executor        -- BatchExecutor for bounded-concurrency, order-preserving batches
    retry           -- RetryPolicy for exponential backoff with jitter
    zones           -- ZoneCache and ZonesAPI (idempotent ensure_zone)
    snapshot        -- SnapshotAPI and SnapshotPoller for async jobs
    datasets        -- DatasetsAPI for sync collection and async triggers
    session         -- ApiSession transport and response classification
    metrics         -- MetricsCollector for per-attempt outcomes
    models          -- WorkItem, AttemptOutcome, ScrapeResult and friends
    errors          -- BrdError and the closed ErrorKind enumeration
    validation      -- input checks run before any network call
    config          -- ClientSettings (environment-backed configuration)
    logging_setup   -- structured JSON logging
"""

from .client import BrdClient, build_search_url
from .config import ClientSettings
from .constants import PACKAGE_VERSION as __version__
from .errors import BrdError, ErrorKind
from .executor import BatchExecutor
from .models import ScrapeResult, SnapshotHandle, SnapshotStatus, WorkItem, ZoneRecord
from .retry import RetryPolicy
from .snapshot import SnapshotPoller

__all__ = [
    "BrdClient",
    "BrdError",
    "BatchExecutor",
    "ClientSettings",
    "ErrorKind",
    "RetryPolicy",
    "ScrapeResult",
    "SnapshotHandle",
    "SnapshotPoller",
    "SnapshotStatus",
    "WorkItem",
    "ZoneRecord",
    "build_search_url",
    "__version__",
]
