"""Helpers shared by the report aggregators."""

from datetime import date
from typing import Iterable, Optional

from pipeline_analytics.models.opportunity import Opportunity, Snapshot

UNKNOWN = "Unknown"


def in_range(d: Optional[date], start: Optional[date] = None, end: Optional[date] = None) -> bool:
    """Inclusive range check; a missing bound is open. A missing date never matches a bound."""
    if start is None and end is None:
        return True
    if d is None:
        return False
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def percentage(part: float, whole: float, digits: int = 1) -> float:
    """part / whole * 100, rounded; 0 when whole is 0."""
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def opportunity_name(snapshot: Optional[Snapshot], opportunity: Optional[Opportunity]) -> str:
    """Name captured in the snapshot, else the opportunity's display name."""
    if snapshot is not None and snapshot.opportunity_name:
        return snapshot.opportunity_name
    if opportunity is not None and opportunity.name:
        return opportunity.name
    return ""


def client_name(snapshot: Optional[Snapshot], opportunity: Optional[Opportunity]) -> Optional[str]:
    """Account name captured in the snapshot, else the opportunity's client name."""
    if snapshot is not None and snapshot.account_name:
        return snapshot.account_name
    if opportunity is not None:
        return opportunity.client_name
    return None


def latest_per_opportunity(snapshots: Iterable[Snapshot]) -> dict[int, Snapshot]:
    """Most recent snapshot per opportunity (ties broken by snapshot id)."""
    latest: dict[int, Snapshot] = {}
    for snap in snapshots:
        current = latest.get(snap.opportunity_id)
        if current is None or (snap.snapshot_date, snap.id) > (current.snapshot_date, current.id):
            latest[snap.opportunity_id] = snap
    return latest


def order_stages(stages: Iterable[str], canonical: list[str]) -> list[str]:
    """Canonical pipeline order first, remaining stages appended alphabetically."""
    present = set(stages)
    ordered = [s for s in canonical if s in present]
    ordered.extend(sorted(present.difference(ordered)))
    return ordered
