"""Win rate, close rate, headline pipeline metrics and pipeline value per snapshot date.

Win rate is Closed Won over all closed (won + lost) deals; close rate is Closed
Won over every post-validation deal that entered the pipeline. Both count only
deals with an entered_pipeline timestamp, except the close-rate series, which
falls back to the opportunity's created date.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from pipeline_analytics.fiscal import fiscal_year_start
from pipeline_analytics.matching import (
    is_active_stage,
    is_closed_lost_exact,
    is_closed_won,
    is_validation_stage,
)
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.closed_won import one_year_earlier
from pipeline_analytics.reports.common import in_range, latest_per_opportunity, percentage


class WinRate(BaseModel):
    win_rate: float = 0.0
    closed_won: int = 0
    closed_lost: int = 0
    total_closed: int = 0


class CloseRate(BaseModel):
    close_rate: float = 0.0
    closed_won: int = 0
    total_eligible: int = 0


class WinRatePoint(BaseModel):
    snapshot_date: date
    fiscal_year_win_rate: Optional[float] = None
    rolling_12_month_win_rate: Optional[float] = None


class CloseRatePoint(BaseModel):
    snapshot_date: date
    close_rate: float
    closed_won: int
    total_eligible: int


class PipelineMetrics(BaseModel):
    active_count: int = 0
    total_tcv: float = 0.0
    total_value: float = 0.0
    avg_deal_size: float = 0.0
    closed_won_count: int = 0
    avg_closed_won_deal_size: float = 0.0


class PipelineValuePoint(BaseModel):
    snapshot_date: date
    total_value: float


def _by_snapshot_date(snapshots: Iterable[Snapshot]) -> dict[date, list[Snapshot]]:
    batches: dict[date, list[Snapshot]] = defaultdict(list)
    for snap in snapshots:
        batches[snap.snapshot_date.date()].append(snap)
    return batches


def _win_rate(closed: list[Snapshot]) -> WinRate:
    won = sum(1 for s in closed if is_closed_won(s.stage))
    lost = len(closed) - won
    return WinRate(
        win_rate=percentage(won, won + lost),
        closed_won=won,
        closed_lost=lost,
        total_closed=won + lost,
    )


def win_rate(
    batch_snapshots: Iterable[Snapshot],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> WinRate:
    """
    Closed Won / (Closed Won + Closed Lost) over deals of the batch that
    entered the pipeline, with close date in [start, end] when a range is given.
    """
    closed = [
        s
        for s in latest_per_opportunity(batch_snapshots).values()
        if s.entered_pipeline is not None
        and (is_closed_won(s.stage) or is_closed_lost_exact(s.stage))
        and in_range(s.effective_close_date, start, end)
    ]
    return _win_rate(closed)


def _close_rate(eligible: list[Snapshot]) -> tuple[int, float]:
    won = sum(1 for s in eligible if is_closed_won(s.stage))
    return won, percentage(won, len(eligible))


def close_rate(
    batch_snapshots: Iterable[Snapshot],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> CloseRate:
    """Closed Won / deals that entered the pipeline in [start, end], validation stages excluded."""
    eligible = [
        s
        for s in latest_per_opportunity(batch_snapshots).values()
        if s.entered_pipeline is not None
        and not is_validation_stage(s.stage)
        and in_range(s.entered_pipeline.date(), start, end)
    ]
    won, rate = _close_rate(eligible)
    return CloseRate(close_rate=rate, closed_won=won, total_eligible=len(eligible))


def win_rate_over_time(snapshots: Iterable[Snapshot]) -> list[WinRatePoint]:
    """
    Per snapshot date: win rate of deals closing in the fiscal year to date and
    in the trailing 12 months. A rate is None when no deal closed in its window;
    dates with neither are skipped.
    """
    points = []
    for day, batch in sorted(_by_snapshot_date(snapshots).items()):
        closed = [
            s
            for s in latest_per_opportunity(batch).values()
            if s.entered_pipeline is not None
            and (is_closed_won(s.stage) or is_closed_lost_exact(s.stage))
        ]
        fiscal = [s for s in closed if in_range(s.effective_close_date, fiscal_year_start(day), day)]
        rolling = [s for s in closed if in_range(s.effective_close_date, one_year_earlier(day), day)]
        if not fiscal and not rolling:
            continue
        points.append(
            WinRatePoint(
                snapshot_date=day,
                fiscal_year_win_rate=_win_rate(fiscal).win_rate if fiscal else None,
                rolling_12_month_win_rate=_win_rate(rolling).win_rate if rolling else None,
            )
        )
    return points


def close_rate_over_time(
    snapshots: Iterable[Snapshot],
    opportunities: Optional[dict[int, Opportunity]] = None,
) -> list[CloseRatePoint]:
    """
    Per snapshot date: close rate of deals that entered the pipeline in the
    trailing 12 months. Entry falls back to the opportunity's created date.
    Dates with no eligible deal are skipped.
    """
    opportunities = opportunities or {}
    points = []
    for day, batch in sorted(_by_snapshot_date(snapshots).items()):
        eligible = []
        for opp_id, snap in latest_per_opportunity(batch).items():
            if not snap.stage or is_validation_stage(snap.stage):
                continue
            entered = snap.entered_pipeline
            if entered is None and opp_id in opportunities:
                entered = opportunities[opp_id].created_date
            if entered is not None and in_range(entered.date(), one_year_earlier(day), day):
                eligible.append(snap)
        if not eligible:
            continue
        won, rate = _close_rate(eligible)
        points.append(
            CloseRatePoint(snapshot_date=day, close_rate=rate, closed_won=won, total_eligible=len(eligible))
        )
    return points


def pipeline_metrics(batch_snapshots: Iterable[Snapshot]) -> PipelineMetrics:
    """Headline numbers for the batch: active count, TCV, deal value and average deal sizes."""
    latest = latest_per_opportunity(batch_snapshots).values()
    active = [s for s in latest if is_active_stage(s.stage)]
    won = [s for s in latest if is_closed_won(s.stage)]

    metrics = PipelineMetrics(
        active_count=len(active),
        total_tcv=sum(s.tcv or 0 for s in active),
        total_value=sum(s.value for s in active),
        closed_won_count=len(won),
    )
    if active:
        metrics.avg_deal_size = round(metrics.total_value / len(active), 2)
    if won:
        metrics.avg_closed_won_deal_size = round(sum(s.value for s in won) / len(won), 2)
    return metrics


def pipeline_value_by_date(snapshots: Iterable[Snapshot]) -> list[PipelineValuePoint]:
    """Summed value of active deals with a positive value, per snapshot date, oldest first."""
    totals: dict[date, float] = defaultdict(float)
    for day, batch in _by_snapshot_date(snapshots).items():
        for snap in latest_per_opportunity(batch).values():
            if is_active_stage(snap.stage) and snap.value > 0:
                totals[day] += snap.value
    return [PipelineValuePoint(snapshot_date=day, total_value=totals[day]) for day in sorted(totals)]
