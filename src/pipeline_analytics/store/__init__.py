"""Local storage for opportunities, snapshots and upload batches."""

from pipeline_analytics.store.base import SnapshotRepository
from pipeline_analytics.store.sqlite_store import SnapshotStore

__all__ = [
    "SnapshotRepository",
    "SnapshotStore",
]
