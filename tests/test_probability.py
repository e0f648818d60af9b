"""Unit tests for closing probability."""

from datetime import date, datetime

from pipeline_analytics.history import build_timelines
from pipeline_analytics.reports.probability import closing_probability

STAGES = ["Discover", "Developing Champions", "Negotiation/Review"]


def _d(month: int, day: int = 1) -> datetime:
    return datetime(2024, month, day)


class TestClosingProbability:
    """Tests for closing_probability."""

    def _snaps(self, factory):
        return [
            factory(1, _d(1), "Discover"),
            factory(1, _d(2), "Negotiation/Review"),
            factory(1, _d(3), "Closed Won", close_date=date(2024, 3, 5), year1_value=500),
            factory(2, _d(1), "Discover"),
            factory(2, _d(2), "Closed Lost", close_date=date(2024, 2, 10)),
            factory(3, _d(1), "Discover"),
            factory(3, _d(2), "Developing Champions"),
        ]

    def test_counts_and_win_rate(self, snapshot_factory) -> None:
        rows = closing_probability(build_timelines(self._snaps(snapshot_factory)).values(), STAGES)
        by_stage = {r.stage: r for r in rows}

        assert list(by_stage) == ["Discover", "Negotiation/Review"]
        discover = by_stage["Discover"]
        assert (discover.total_deals, discover.closed_won, discover.closed_lost) == (2, 1, 1)
        assert discover.win_rate == 50.0
        assert discover.conversion_to_next == discover.win_rate
        assert by_stage["Negotiation/Review"].win_rate == 100.0
        assert by_stage["Negotiation/Review"].deals[0].value == 500

    def test_date_range_on_close_date(self, snapshot_factory) -> None:
        rows = closing_probability(
            build_timelines(self._snaps(snapshot_factory)).values(),
            STAGES,
            start=date(2024, 3, 1),
            end=date(2024, 3, 31),
        )
        discover = next(r for r in rows if r.stage == "Discover")
        assert (discover.total_deals, discover.closed_won) == (1, 1)

    def test_latest_outcome_wins(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1), "Discover"),
            snapshot_factory(1, _d(2), "Lost"),
            snapshot_factory(1, _d(3), "Closed Won"),
        ]
        rows = closing_probability(build_timelines(snaps).values(), STAGES)
        assert rows[0].closed_won == 1

    def test_open_deals_ignored(self, snapshot_factory) -> None:
        snaps = [snapshot_factory(1, _d(1), "Discover")]
        assert closing_probability(build_timelines(snaps).values(), STAGES) == []
