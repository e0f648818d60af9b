"""Unit tests for validation conversion."""

from datetime import datetime

from pipeline_analytics.history import build_timelines
from pipeline_analytics.reports.conversion import validation_conversion

from conftest import make_opportunity

AS_OF = datetime(2024, 3, 1)


def _d(month: int, day: int) -> datetime:
    return datetime(2024, month, day)


class TestValidationConversion:
    """Tests for validation_conversion."""

    def test_conversion_counts(self, snapshot_factory) -> None:
        snaps = [
            # converts to a later stage
            snapshot_factory(1, _d(1, 1), "Validation/Introduction"),
            snapshot_factory(1, _d(1, 8), "Validation/Introduction"),
            snapshot_factory(1, _d(1, 15), "Discover"),
            snapshot_factory(1, _d(1, 22), "Closed Lost"),
            # lost straight out of validation
            snapshot_factory(2, _d(1, 1), "Technical Validation"),
            snapshot_factory(2, _d(1, 8), "Closed Lost"),
            # never in validation
            snapshot_factory(3, _d(1, 1), "Discover"),
        ]
        result = validation_conversion(build_timelines(snaps).values(), as_of=AS_OF)

        assert result.conversion_to_later_stage == 1
        assert result.conversion_to_closed_lost == 1
        assert result.conversion_rate == 50.0
        breakdown = {b.from_stage: b for b in result.stage_breakdown}
        assert breakdown["Validation/Introduction"].to_later_stage == 1
        assert breakdown["Technical Validation"].to_closed_lost == 1
        assert breakdown["Technical Validation"].conversion_rate == 0.0

    def test_null_stage_does_not_convert(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1, 1), "Validation"),
            snapshot_factory(1, _d(1, 8), None),
        ]
        result = validation_conversion(build_timelines(snaps).values(), as_of=AS_OF)
        assert result.conversion_to_later_stage == 0
        assert result.conversion_rate == 0.0
        assert result.stage_breakdown[0].total_deals == 1

    def test_roster_sorted_by_value_and_limited(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(i, _d(2, 1), "Validation/Introduction", year1_value=v, account_name=f"Acct {i}")
            for i, v in ((1, 100), (2, 300), (3, 200))
        ]
        snaps.append(snapshot_factory(1, _d(1, 1), "Validation/Introduction", year1_value=100))
        opps = {1: make_opportunity(1, name="First")}
        result = validation_conversion(build_timelines(snaps).values(), opps, as_of=AS_OF, top_n=2)

        assert result.total_validation_count == 3
        assert result.total_validation_value == 600
        assert result.avg_validation_deal_size == 200
        top = result.top_validation_opportunities
        assert [o.value for o in top] == [300, 200]
        assert top[0].client_name == "Acct 2"

    def test_days_in_validation_from_first_qualifying_snapshot(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, _d(1, 1), "Validation/Introduction"),
            snapshot_factory(1, _d(2, 1), "Validation/Introduction"),
        ]
        result = validation_conversion(build_timelines(snaps).values(), as_of=AS_OF)
        assert result.top_validation_opportunities[0].days_in_validation == 60

    def test_empty(self) -> None:
        result = validation_conversion([], as_of=AS_OF)
        assert result.total_validation_count == 0
        assert result.avg_validation_deal_size == 0.0
        assert result.stage_breakdown == []
