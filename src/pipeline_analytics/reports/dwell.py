"""Stage dwell time: average days spent in each stage before moving on."""

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel

from pipeline_analytics.history import Timeline


class DwellRow(BaseModel):
    stage: str
    avg_days: float
    deal_count: int


def stage_dwell_time(timelines: Iterable[Timeline]) -> list[DwellRow]:
    """
    Average duration of closed occupancy windows per stage.
    Open-ended windows and non-positive durations (same-day re-uploads) are ignored.
    """
    durations: dict[str, list[float]] = defaultdict(list)
    for timeline in timelines:
        if len(timeline.snapshots) < 2:
            continue
        for window in timeline.closed_windows():
            if window.duration_days is None or window.duration_days <= 0:
                continue
            durations[window.stage].append(window.duration_days)

    rows = [
        DwellRow(stage=stage, avg_days=round(sum(days) / len(days), 1), deal_count=len(days))
        for stage, days in durations.items()
    ]
    rows.sort(key=lambda r: r.avg_days, reverse=True)
    return rows
