"""Detect accounts carrying more than one opportunity in the current batch."""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.matching import is_active_stage
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.names import is_valid_name, normalize_name
from pipeline_analytics.reports.common import latest_per_opportunity, opportunity_name


class DuplicateMember(BaseModel):
    id: int
    name: str
    opportunity_id: Optional[str] = None
    owner: Optional[str] = None
    is_active: bool
    close_date: Optional[date] = None
    stage: Optional[str] = None
    value: float


class DuplicateGroup(BaseModel):
    client_name: str
    opportunities: list[DuplicateMember] = Field(default_factory=list)
    total_value: float = 0.0
    total_opportunities_count: int = 0
    active_opportunities_count: int = 0


def duplicate_accounts(
    batch_snapshots: Iterable[Snapshot],
    opportunities: Optional[dict[int, Opportunity]] = None,
) -> list[DuplicateGroup]:
    """
    Group the batch's opportunities by normalized account name. A group is kept
    when it has more than one opportunity and at least one active member; only
    active members contribute to total_value.
    """
    opportunities = opportunities or {}
    groups: dict[str, DuplicateGroup] = {}
    members: dict[str, list[DuplicateMember]] = defaultdict(list)

    for opp_id, snap in latest_per_opportunity(batch_snapshots).items():
        opp = opportunities.get(opp_id)
        raw_name = snap.account_name or (opp.client_name if opp else None)
        if not is_valid_name(raw_name):
            continue
        key = normalize_name(raw_name)
        groups.setdefault(key, DuplicateGroup(client_name=raw_name.strip()))
        members[key].append(
            DuplicateMember(
                id=opp_id,
                name=opportunity_name(snap, opp),
                opportunity_id=opp.opportunity_id if opp else None,
                owner=opp.owner if opp else None,
                is_active=is_active_stage(snap.stage),
                close_date=snap.close_date or snap.expected_close_date,
                stage=snap.stage,
                value=snap.value,
            )
        )

    result = []
    for key, group in groups.items():
        group_members = members[key]
        active = [m for m in group_members if m.is_active]
        if len(group_members) < 2 or not active:
            continue
        group.opportunities = group_members
        group.total_value = sum(m.value for m in active)
        group.total_opportunities_count = len(group_members)
        group.active_opportunities_count = len(active)
        result.append(group)
    result.sort(key=lambda g: g.total_value, reverse=True)
    return result
