"""Reconstruct per-opportunity stage history from an unordered bag of snapshots."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.matching import is_closed
from pipeline_analytics.models.opportunity import Snapshot

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class TransitionEvent(BaseModel):
    """Stage change between two adjacent distinct-stage observations."""

    from_stage: str
    to_stage: str
    at: datetime
    value: float = Field(0.0, description="Deal value of the snapshot first showing to_stage")


class StageWindow(BaseModel):
    """Span of continuous occupancy in one stage. Open-ended when ended_at is None."""

    stage: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_days: Optional[float] = None

    @property
    def is_closed_window(self) -> bool:
        return self.ended_at is not None


class ReopenAnomaly(BaseModel):
    """A later observation leaving a closed stage. Recorded, never turned into an event."""

    closed_stage: str
    observed_stage: str
    at: datetime


class Timeline(BaseModel):
    """Sorted snapshots plus the events, windows and anomalies derived from them."""

    opportunity_id: int
    snapshots: list[Snapshot] = Field(default_factory=list)
    events: list[TransitionEvent] = Field(default_factory=list)
    windows: list[StageWindow] = Field(default_factory=list)
    anomalies: list[ReopenAnomaly] = Field(default_factory=list)

    @property
    def latest(self) -> Optional[Snapshot]:
        return self.snapshots[-1] if self.snapshots else None

    @property
    def staged_snapshots(self) -> list[Snapshot]:
        """Snapshots carrying a stage, in order."""
        return [s for s in self.snapshots if _stage_of(s)]

    def closed_windows(self) -> list[StageWindow]:
        return [w for w in self.windows if w.is_closed_window]


def _stage_of(snapshot: Snapshot) -> Optional[str]:
    if snapshot.stage is None:
        return None
    return snapshot.stage.strip() or None


def sort_snapshots(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Ascending by snapshot date; ties broken by snapshot id."""
    return sorted(snapshots, key=lambda s: (s.snapshot_date, s.id))


def reconstruct(snapshots: Iterable[Snapshot], opportunity_id: Optional[int] = None) -> Timeline:
    """
    Walk sorted snapshots and derive transition events and occupancy windows.

    Null-stage snapshots are skipped. A window starts at the first observation
    of a stage and ends at the next emitted transition; the final window is
    open-ended. Once a closed stage is reached, later differing stages are
    recorded as ReopenAnomaly and produce no events or windows.
    """
    ordered = sort_snapshots(snapshots)
    if opportunity_id is None:
        opportunity_id = ordered[0].opportunity_id if ordered else 0
    timeline = Timeline(opportunity_id=opportunity_id, snapshots=ordered)

    current: Optional[str] = None
    window_start: Optional[datetime] = None
    last_seen: Optional[str] = None

    for snap in ordered:
        stage = _stage_of(snap)
        if stage is None:
            continue
        if current is None:
            current, window_start, last_seen = stage, snap.snapshot_date, stage
            continue
        if stage == current:
            last_seen = stage
            continue
        if is_closed(current):
            if stage != last_seen:
                timeline.anomalies.append(
                    ReopenAnomaly(closed_stage=current, observed_stage=stage, at=snap.snapshot_date)
                )
                logger.warning(
                    "Opportunity %s observed in %r after closing as %r on %s; ignoring",
                    opportunity_id,
                    stage,
                    current,
                    snap.snapshot_date.date(),
                )
            last_seen = stage
            continue

        timeline.events.append(
            TransitionEvent(from_stage=current, to_stage=stage, at=snap.snapshot_date, value=snap.value)
        )
        duration = (snap.snapshot_date - window_start).total_seconds() / SECONDS_PER_DAY
        timeline.windows.append(
            StageWindow(
                stage=current,
                started_at=window_start,
                ended_at=snap.snapshot_date,
                duration_days=duration,
            )
        )
        current, window_start, last_seen = stage, snap.snapshot_date, stage

    if current is not None:
        timeline.windows.append(StageWindow(stage=current, started_at=window_start))
    return timeline


def group_by_opportunity(snapshots: Iterable[Snapshot]) -> dict[int, list[Snapshot]]:
    grouped: dict[int, list[Snapshot]] = defaultdict(list)
    for snap in snapshots:
        grouped[snap.opportunity_id].append(snap)
    return dict(grouped)


def build_timelines(snapshots: Iterable[Snapshot]) -> dict[int, Timeline]:
    """Group snapshots by opportunity and reconstruct each timeline."""
    return {
        opp_id: reconstruct(group, opportunity_id=opp_id)
        for opp_id, group in group_by_opportunity(snapshots).items()
    }
