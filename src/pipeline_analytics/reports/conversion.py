"""Validation-stage conversion funnel and the roster of deals still in validation."""

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.history import Timeline
from pipeline_analytics.matching import is_closed_lost, is_validation_stage
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.reports.common import client_name, opportunity_name, percentage

DEFAULT_TOP_N = 10


class StageConversion(BaseModel):
    from_stage: str
    to_later_stage: int = 0
    to_closed_lost: int = 0
    total_deals: int = 0
    conversion_rate: float = 0.0


class ValidationOpportunity(BaseModel):
    opportunity_name: str
    client_name: Optional[str] = None
    value: float
    days_in_validation: int
    stage: str


class ValidationConversion(BaseModel):
    total_validation_value: float = 0.0
    total_validation_count: int = 0
    avg_validation_deal_size: float = 0.0
    conversion_to_later_stage: int = 0
    conversion_to_closed_lost: int = 0
    conversion_rate: float = 0.0
    stage_breakdown: list[StageConversion] = Field(default_factory=list)
    top_validation_opportunities: list[ValidationOpportunity] = Field(default_factory=list)


def _first_qualifying(snapshots: list[Snapshot]) -> Optional[int]:
    for i, snap in enumerate(snapshots):
        if is_validation_stage(snap.stage):
            return i
    return None


def validation_conversion(
    timelines: Iterable[Timeline],
    opportunities: Optional[dict[int, Opportunity]] = None,
    as_of: Optional[datetime] = None,
    top_n: int = DEFAULT_TOP_N,
) -> ValidationConversion:
    """
    Walk each opportunity from its first validation snapshot to the first later
    non-validation stage. Converted deals count as "to later stage" unless that
    stage is closed-lost.
    """
    opportunities = opportunities or {}
    as_of = as_of or datetime.now()
    breakdown: dict[str, StageConversion] = {}
    roster: list[ValidationOpportunity] = []
    converted = lost = 0

    for timeline in timelines:
        staged = timeline.staged_snapshots
        first = _first_qualifying(staged)
        if first is None:
            continue
        origin = staged[first].stage.strip()
        row = breakdown.setdefault(origin, StageConversion(from_stage=origin))
        row.total_deals += 1

        for snap in staged[first + 1 :]:
            if is_validation_stage(snap.stage):
                continue
            if is_closed_lost(snap.stage):
                row.to_closed_lost += 1
                lost += 1
            else:
                row.to_later_stage += 1
                converted += 1
            break

        latest = timeline.latest
        if latest is not None and is_validation_stage(latest.stage):
            opp = opportunities.get(timeline.opportunity_id)
            roster.append(
                ValidationOpportunity(
                    opportunity_name=opportunity_name(latest, opp),
                    client_name=client_name(latest, opp),
                    value=latest.value,
                    days_in_validation=max((as_of - staged[first].snapshot_date).days, 0),
                    stage=latest.stage.strip(),
                )
            )

    for row in breakdown.values():
        row.conversion_rate = percentage(row.to_later_stage, row.to_later_stage + row.to_closed_lost)

    total_value = sum(r.value for r in roster)
    roster.sort(key=lambda r: r.value, reverse=True)
    return ValidationConversion(
        total_validation_value=total_value,
        total_validation_count=len(roster),
        avg_validation_deal_size=round(total_value / len(roster), 2) if roster else 0.0,
        conversion_to_later_stage=converted,
        conversion_to_closed_lost=lost,
        conversion_rate=percentage(converted, converted + lost),
        stage_breakdown=sorted(breakdown.values(), key=lambda r: r.from_stage),
        top_validation_opportunities=roster[:top_n],
    )
