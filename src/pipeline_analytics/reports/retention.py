"""Quarter retention: share of closed deals that closed in the fiscal quarter they entered a stage."""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from pipeline_analytics.fiscal import fiscal_quarter
from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed, is_closed_lost_exact, is_closed_won
from pipeline_analytics.reports.common import in_range, order_stages, percentage


class RetentionRow(BaseModel):
    stage: str
    total_closed: int
    closed_same_quarter: int
    retention_rate: float


def quarter_retention(
    timelines: Iterable[Timeline],
    pipeline_stages: list[str],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[RetentionRow]:
    """
    For each deal's first Closed Won / Closed Lost snapshot, compare the fiscal
    quarter of each earlier stage entry with the fiscal quarter of the close.
    """
    totals: dict[str, int] = defaultdict(int)
    retained: dict[str, int] = defaultdict(int)

    for timeline in timelines:
        staged = timeline.staged_snapshots
        close_idx = next(
            (i for i, s in enumerate(staged) if is_closed_won(s.stage) or is_closed_lost_exact(s.stage)),
            None,
        )
        if close_idx is None:
            continue
        close_date = staged[close_idx].effective_close_date
        if not in_range(close_date, start, end):
            continue
        close_quarter = fiscal_quarter(close_date)

        entered: dict[str, date] = {}
        for snap in staged[:close_idx]:
            stage = snap.stage.strip()
            if is_closed(stage) or stage in entered:
                continue
            entered[stage] = snap.snapshot_date.date()

        for stage, entered_on in entered.items():
            totals[stage] += 1
            if fiscal_quarter(entered_on) == close_quarter:
                retained[stage] += 1

    return [
        RetentionRow(
            stage=stage,
            total_closed=totals[stage],
            closed_same_quarter=retained[stage],
            retention_rate=percentage(retained[stage], totals[stage]),
        )
        for stage in order_stages(totals.keys(), pipeline_stages)
    ]
