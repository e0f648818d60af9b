"""Closed-won deals in a period, with growth against the same period a year earlier."""

from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.matching import is_closed_won
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.common import (
    client_name,
    in_range,
    latest_per_opportunity,
    opportunity_name,
)


class WonDeal(BaseModel):
    opportunity_name: str
    client_name: Optional[str] = None
    close_date: date
    value: float


class ClosedWonReport(BaseModel):
    start_date: date
    end_date: date
    total_value: float = 0.0
    deal_count: int = 0
    prior_total_value: float = 0.0
    growth_percentage: float = 0.0
    deals: list[WonDeal] = Field(default_factory=list)


def one_year_earlier(d: date) -> date:
    """Same calendar day a year earlier; Feb 29 maps to Feb 28."""
    try:
        return d.replace(year=d.year - 1)
    except ValueError:
        return d.replace(year=d.year - 1, day=28)


def closed_won(
    batch_snapshots: Iterable[Snapshot],
    start: date,
    end: date,
    opportunities: Optional[dict[int, Opportunity]] = None,
) -> ClosedWonReport:
    """
    Closed Won deals of the batch with close date in [start, end]. Growth is
    against [start, end] shifted back one year; 100 when the prior period is
    empty and the current one is not.
    """
    opportunities = opportunities or {}
    prior_start, prior_end = one_year_earlier(start), one_year_earlier(end)
    report = ClosedWonReport(start_date=start, end_date=end)

    for opp_id, snap in latest_per_opportunity(batch_snapshots).items():
        if not is_closed_won(snap.stage):
            continue
        close = snap.effective_close_date
        if in_range(close, prior_start, prior_end):
            report.prior_total_value += snap.value
        if not in_range(close, start, end):
            continue
        opp = opportunities.get(opp_id)
        report.deals.append(
            WonDeal(
                opportunity_name=opportunity_name(snap, opp),
                client_name=client_name(snap, opp),
                close_date=close,
                value=snap.value,
            )
        )

    report.deals.sort(key=lambda d: d.close_date, reverse=True)
    report.deal_count = len(report.deals)
    report.total_value = sum(d.value for d in report.deals)
    if report.prior_total_value:
        report.growth_percentage = round(
            (report.total_value - report.prior_total_value) / report.prior_total_value * 100, 1
        )
    elif report.total_value:
        report.growth_percentage = 100.0
    return report
