"""How deal values move when a deal leaves a stage."""

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel

from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed
from pipeline_analytics.reports.common import order_stages, percentage


class ValueChangeRow(BaseModel):
    from_stage: str
    opportunity_count: int
    total_year1_change: float
    avg_year1_change: float
    total_tcv_change: float
    avg_tcv_change: float
    year1_change_percentage: float
    tcv_change_percentage: float


class _Totals:
    def __init__(self) -> None:
        self.count = 0
        self.year1_change = 0.0
        self.tcv_change = 0.0
        self.year1_base = 0.0
        self.tcv_base = 0.0


def value_change_by_stage(
    timelines: Iterable[Timeline], pipeline_stages: list[str]
) -> list[ValueChangeRow]:
    """
    Deltas of Year 1 value and TCV across consecutive stage changes, grouped by
    the stage the deal left. Missing values count as 0. Closed stages are never
    an origin.
    """
    totals: dict[str, _Totals] = defaultdict(_Totals)
    for timeline in timelines:
        staged = timeline.staged_snapshots
        for prev, curr in zip(staged, staged[1:]):
            from_stage, to_stage = prev.stage.strip(), curr.stage.strip()
            if from_stage == to_stage or is_closed(from_stage):
                continue
            t = totals[from_stage]
            t.count += 1
            t.year1_change += (curr.year1_value or 0) - (prev.year1_value or 0)
            t.tcv_change += (curr.tcv or 0) - (prev.tcv or 0)
            t.year1_base += prev.year1_value or 0
            t.tcv_base += prev.tcv or 0

    rows = []
    for stage in order_stages(totals.keys(), pipeline_stages):
        t = totals[stage]
        rows.append(
            ValueChangeRow(
                from_stage=stage,
                opportunity_count=t.count,
                total_year1_change=round(t.year1_change, 2),
                avg_year1_change=round(t.year1_change / t.count, 2),
                total_tcv_change=round(t.tcv_change, 2),
                avg_tcv_change=round(t.tcv_change / t.count, 2),
                year1_change_percentage=percentage(t.year1_change, t.year1_base),
                tcv_change_percentage=percentage(t.tcv_change, t.tcv_base),
            )
        )
    return rows
