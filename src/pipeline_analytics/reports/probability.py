"""Historical closing probability: win rate of closed deals by pipeline stage visited."""

from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed_won, is_final_outcome
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.common import client_name, in_range, opportunity_name, percentage


class ClosedDeal(BaseModel):
    opportunity_name: str
    client_name: Optional[str] = None
    final_stage: str
    close_date: date
    value: float


class ProbabilityRow(BaseModel):
    stage: str
    total_deals: int = 0
    closed_won: int = 0
    closed_lost: int = 0
    win_rate: float = 0.0
    conversion_to_next: float = Field(0.0, description="Currently equal to win_rate")
    deals: list[ClosedDeal] = Field(default_factory=list)


def final_outcome(timeline: Timeline) -> Optional[Snapshot]:
    """Most recent snapshot in Closed Won or any lost stage."""
    for snap in reversed(timeline.snapshots):
        if is_final_outcome(snap.stage):
            return snap
    return None


def closing_probability(
    timelines: Iterable[Timeline],
    pipeline_stages: list[str],
    opportunities: Optional[dict[int, Opportunity]] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[ProbabilityRow]:
    """
    Count each closed deal once per pipeline stage it was observed in, split by
    outcome. Date range applies to the outcome's close date.
    """
    opportunities = opportunities or {}
    rows = {stage: ProbabilityRow(stage=stage) for stage in pipeline_stages}
    canonical = {stage.strip().lower(): stage for stage in pipeline_stages}

    for timeline in timelines:
        outcome = final_outcome(timeline)
        if outcome is None:
            continue
        close_date = outcome.effective_close_date
        if not in_range(close_date, start, end):
            continue
        won = is_closed_won(outcome.stage)
        visited = {
            canonical[s.stage.strip().lower()]
            for s in timeline.staged_snapshots
            if s.stage.strip().lower() in canonical
        }
        if not visited:
            continue
        opp = opportunities.get(timeline.opportunity_id)
        deal = ClosedDeal(
            opportunity_name=opportunity_name(outcome, opp),
            client_name=client_name(outcome, opp),
            final_stage=outcome.stage.strip(),
            close_date=close_date,
            value=outcome.value,
        )
        for stage in visited:
            row = rows[stage]
            row.total_deals += 1
            if won:
                row.closed_won += 1
            else:
                row.closed_lost += 1
            row.deals.append(deal)

    result = []
    for stage in pipeline_stages:
        row = rows[stage]
        if not row.total_deals:
            continue
        row.win_rate = percentage(row.closed_won, row.total_deals)
        # TODO: replace with true stage-to-stage conversion once product defines it
        row.conversion_to_next = row.win_rate
        result.append(row)
    return result
