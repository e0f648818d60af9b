"""Loss reason attribution for closed-lost deals."""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed_lost_exact
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.common import (
    UNKNOWN,
    client_name,
    in_range,
    opportunity_name,
    percentage,
)

UNKNOWN_STAGE = "Unknown Stage"
DEFAULT_RECENT_LIMIT = 20


class LossRecord(BaseModel):
    """One closed-lost deal with its attributed reason and prior stage."""

    opportunity_id: int
    opportunity_name: str
    client_name: Optional[str] = None
    reason: str
    previous_stage: str
    value: float
    close_date: date


class LossReasonRow(BaseModel):
    reason: str
    count: int
    total_value: float
    percentage: float


class LossReasonStageRow(BaseModel):
    reason: str
    previous_stage: str
    count: int
    total_value: float
    percentage: float


def _previous_stage(timeline: Timeline, lost: Snapshot) -> str:
    for snap in reversed(timeline.staged_snapshots):
        if not is_closed_lost_exact(snap.stage):
            return snap.stage.strip()
    if lost.stage_before and lost.stage_before.strip():
        return lost.stage_before.strip()
    return UNKNOWN_STAGE


def _record(timeline: Timeline, lost: Snapshot, opp: Optional[Opportunity]) -> LossRecord:
    reason = (lost.loss_reason or "").strip() or UNKNOWN
    return LossRecord(
        opportunity_id=timeline.opportunity_id,
        opportunity_name=opportunity_name(lost, opp),
        client_name=client_name(lost, opp),
        reason=reason,
        previous_stage=_previous_stage(timeline, lost),
        value=lost.value,
        close_date=lost.effective_close_date,
    )


def collect_losses(
    timelines: Iterable[Timeline],
    opportunities: Optional[dict[int, Opportunity]] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[LossRecord]:
    """Latest exact "Closed Lost" snapshot per opportunity, filtered on close date."""
    opportunities = opportunities or {}
    records = []
    for timeline in timelines:
        lost = next(
            (s for s in reversed(timeline.snapshots) if is_closed_lost_exact(s.stage)), None
        )
        if lost is None or not in_range(lost.effective_close_date, start, end):
            continue
        records.append(_record(timeline, lost, opportunities.get(timeline.opportunity_id)))
    return records


def losses_by_reason(records: list[LossRecord]) -> list[LossReasonRow]:
    """Group by reason; sorted by count then value, both descending."""
    counts: dict[str, int] = defaultdict(int)
    values: dict[str, float] = defaultdict(float)
    for r in records:
        counts[r.reason] += 1
        values[r.reason] += r.value
    total = len(records)
    rows = [
        LossReasonRow(
            reason=reason,
            count=count,
            total_value=values[reason],
            percentage=percentage(count, total),
        )
        for reason, count in counts.items()
    ]
    rows.sort(key=lambda r: (-r.count, -r.total_value))
    return rows


def losses_by_reason_and_stage(records: list[LossRecord]) -> list[LossReasonStageRow]:
    """Group by (reason, previous stage); sorted by reason, then count descending."""
    counts: dict[tuple[str, str], int] = defaultdict(int)
    values: dict[tuple[str, str], float] = defaultdict(float)
    for r in records:
        key = (r.reason, r.previous_stage)
        counts[key] += 1
        values[key] += r.value
    total = len(records)
    rows = [
        LossReasonStageRow(
            reason=reason,
            previous_stage=stage,
            count=count,
            total_value=values[(reason, stage)],
            percentage=percentage(count, total),
        )
        for (reason, stage), count in counts.items()
    ]
    rows.sort(key=lambda r: (r.reason, -r.count))
    return rows


def recent_losses(
    timelines: Iterable[Timeline],
    batch_date: Optional[date],
    opportunities: Optional[dict[int, Opportunity]] = None,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> list[LossRecord]:
    """Closed-lost deals as of the given batch, newest close date first."""
    if batch_date is None:
        return []
    opportunities = opportunities or {}
    records = []
    for timeline in timelines:
        in_batch = [s for s in timeline.snapshots if s.snapshot_date.date() == batch_date]
        if not in_batch or not is_closed_lost_exact(in_batch[-1].stage):
            continue
        records.append(_record(timeline, in_batch[-1], opportunities.get(timeline.opportunity_id)))
    records.sort(key=lambda r: r.close_date, reverse=True)
    return records[:limit]
