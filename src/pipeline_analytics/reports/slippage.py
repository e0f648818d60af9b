"""Forecast drift: how far expected close dates move while a deal sits in a stage."""

from collections import defaultdict
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.fiscal import fiscal_quarter, is_fiscal_quarter_end_month
from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.common import opportunity_name, percentage


class WorstCase(BaseModel):
    opportunity_name: str
    slippage_days: int
    value: float


class SlippageRow(BaseModel):
    stage_name: str
    avg_slippage_days: float
    deal_count: int
    quarter_end_slippage_rate: float = Field(
        0.0, description="Percent of quarter-end forecasts that slipped into another fiscal quarter"
    )
    total_slipped_value: float = 0.0
    worst_case: Optional[WorstCase] = None


class _StageWindow:
    """First and last forecast observed for one opportunity in one stage."""

    def __init__(self, first: Snapshot, last: Snapshot, name: str):
        self.first = first
        self.last = last
        self.name = name

    @property
    def slippage_days(self) -> int:
        return (self.last.expected_close_date - self.first.expected_close_date).days

    @property
    def starts_at_quarter_end(self) -> bool:
        return is_fiscal_quarter_end_month(self.first.expected_close_date)

    @property
    def crossed_quarter(self) -> bool:
        return fiscal_quarter(self.first.expected_close_date) != fiscal_quarter(
            self.last.expected_close_date
        )


def _forecast_snapshots(timeline: Timeline) -> list[Snapshot]:
    return [
        s
        for s in timeline.staged_snapshots
        if s.expected_close_date is not None and not is_closed(s.stage)
    ]


def date_slippage(
    timelines: Iterable[Timeline],
    opportunities: Optional[dict[int, Opportunity]] = None,
) -> list[SlippageRow]:
    """
    Per stage: average slippage (negative values kept), window count, quarter-end
    slippage rate, slipped value and the worst positive slip.
    """
    opportunities = opportunities or {}
    windows: dict[str, list[_StageWindow]] = defaultdict(list)

    for timeline in timelines:
        forecasts = _forecast_snapshots(timeline)
        if len(forecasts) < 2:
            continue
        by_stage: dict[str, list[Snapshot]] = defaultdict(list)
        for snap in forecasts:
            by_stage[snap.stage.strip()].append(snap)
        opp = opportunities.get(timeline.opportunity_id)
        for stage, snaps in by_stage.items():
            if len(snaps) < 2:
                continue
            windows[stage].append(_StageWindow(snaps[0], snaps[-1], opportunity_name(snaps[-1], opp)))

    rows: list[SlippageRow] = []
    for stage, stage_windows in windows.items():
        slips = [w.slippage_days for w in stage_windows]
        quarter_end = [w for w in stage_windows if w.starts_at_quarter_end]
        crossed = sum(1 for w in quarter_end if w.crossed_quarter)

        worst: Optional[WorstCase] = None
        positive = [w for w in stage_windows if w.slippage_days > 0]
        if positive:
            top = max(positive, key=lambda w: w.slippage_days)
            worst = WorstCase(
                opportunity_name=top.name, slippage_days=top.slippage_days, value=top.last.value
            )

        rows.append(
            SlippageRow(
                stage_name=stage,
                avg_slippage_days=round(sum(slips) / len(slips), 1),
                deal_count=len(stage_windows),
                quarter_end_slippage_rate=percentage(crossed, len(quarter_end)),
                total_slipped_value=sum(w.last.value for w in stage_windows),
                worst_case=worst,
            )
        )
    rows.sort(key=lambda r: r.avg_slippage_days, reverse=True)
    return rows
