"""Data models for opportunities, snapshots, upload batches and engine settings."""

from pipeline_analytics.models.opportunity import Opportunity, Snapshot, UploadBatch
from pipeline_analytics.models.raw import RawSnapshotRow
from pipeline_analytics.models.settings import EngineSettings, ProbabilityConfig, StageMapping

__all__ = [
    "EngineSettings",
    "Opportunity",
    "ProbabilityConfig",
    "RawSnapshotRow",
    "Snapshot",
    "StageMapping",
    "UploadBatch",
]
