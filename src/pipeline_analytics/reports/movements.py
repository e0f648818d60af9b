"""Deal movements: stage transitions within a date window."""

from datetime import date, datetime
from typing import Iterable, Optional

from pydantic import BaseModel

from pipeline_analytics.history import Timeline
from pipeline_analytics.models.opportunity import Opportunity
from pipeline_analytics.reports.common import client_name, in_range, opportunity_name


class MovementRow(BaseModel):
    opportunity_id: int
    opportunity_name: str
    client_name: Optional[str] = None
    from_stage: str
    to_stage: str
    moved_at: datetime
    value: float


def deal_movements(
    timelines: Iterable[Timeline],
    opportunities: Optional[dict[int, Opportunity]] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[MovementRow]:
    """Every emitted transition event with its date in range, newest first."""
    opportunities = opportunities or {}
    rows = []
    for timeline in timelines:
        opp = opportunities.get(timeline.opportunity_id)
        latest = timeline.latest
        for event in timeline.events:
            if not in_range(event.at.date(), start, end):
                continue
            rows.append(
                MovementRow(
                    opportunity_id=timeline.opportunity_id,
                    opportunity_name=opportunity_name(latest, opp),
                    client_name=client_name(latest, opp),
                    from_stage=event.from_stage,
                    to_stage=event.to_stage,
                    moved_at=event.at,
                    value=event.value,
                )
            )
    rows.sort(key=lambda r: r.moved_at, reverse=True)
    return rows
