"""Unit tests for value change by stage."""

from datetime import datetime

from pipeline_analytics.history import build_timelines
from pipeline_analytics.reports.value_change import value_change_by_stage

STAGES = ["Discover", "Developing Champions", "Negotiation/Review"]


def _d(month: int) -> datetime:
    return datetime(2024, month, 1)


class TestValueChangeByStage:
    """Tests for value_change_by_stage."""

    def test_deltas_grouped_by_origin(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1), "Discover", year1_value=100, tcv=200),
            snapshot_factory(1, _d(2), "Discover", year1_value=120, tcv=200),
            snapshot_factory(1, _d(3), "Negotiation/Review", year1_value=150, tcv=300),
            snapshot_factory(2, _d(1), "Discover", year1_value=100),
            snapshot_factory(2, _d(2), "Developing Champions", year1_value=80, tcv=50),
        ]
        rows = value_change_by_stage(build_timelines(snaps).values(), STAGES)
        discover = rows[0]

        assert discover.from_stage == "Discover"
        assert discover.opportunity_count == 2
        assert discover.total_year1_change == 30 - 20
        assert discover.avg_year1_change == 5
        assert discover.total_tcv_change == 100 + 50
        assert discover.year1_change_percentage == round(10 / 220 * 100, 1)
        assert discover.tcv_change_percentage == 75.0

    def test_closed_origin_excluded(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1), "Closed Lost", year1_value=100),
            snapshot_factory(1, _d(2), "Discover", year1_value=300),
        ]
        assert value_change_by_stage(build_timelines(snaps).values(), STAGES) == []

    def test_zero_base_percentage(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1), "Discover"),
            snapshot_factory(1, _d(2), "Negotiation/Review", year1_value=50),
        ]
        row = value_change_by_stage(build_timelines(snaps).values(), STAGES)[0]
        assert row.total_year1_change == 50
        assert row.year1_change_percentage == 0.0

    def test_canonical_order_then_alphabetical(self, snapshot_factory) -> None:
        snaps = []
        for i, stage in enumerate(["Zeta", "Negotiation/Review", "Alpha", "Discover"], start=1):
            snaps.append(snapshot_factory(i, _d(1), stage))
            snaps.append(snapshot_factory(i, _d(2), "Closed Won"))
        rows = value_change_by_stage(build_timelines(snaps).values(), STAGES)
        assert [r.from_stage for r in rows] == ["Discover", "Negotiation/Review", "Alpha", "Zeta"]
