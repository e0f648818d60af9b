"""Unit tests for win rate, close rate, pipeline metrics and pipeline value by date."""

from datetime import date, datetime

from conftest import make_opportunity

from pipeline_analytics.reports.rates import (
    close_rate,
    close_rate_over_time,
    pipeline_metrics,
    pipeline_value_by_date,
    win_rate,
    win_rate_over_time,
)

BATCH = datetime(2024, 3, 1)


class TestWinRate:
    """Tests for win_rate."""

    def test_counts_only_deals_that_entered_pipeline(self, snapshot_factory) -> None:
        batch = [
            snapshot_factory(1, BATCH, "Closed Won", entered_pipeline=date(2023, 6, 1), close_date=date(2024, 2, 10)),
            snapshot_factory(2, BATCH, "Closed Lost", entered_pipeline=date(2023, 7, 1), close_date=date(2024, 2, 20)),
            snapshot_factory(3, BATCH, "Closed Won", close_date=date(2024, 2, 1)),
            snapshot_factory(4, BATCH, "Discover", entered_pipeline=date(2023, 8, 1)),
        ]
        result = win_rate(batch)
        assert result.closed_won == 1
        assert result.closed_lost == 1
        assert result.total_closed == 2
        assert result.win_rate == 50.0

    def test_range_bounds_close_date(self, snapshot_factory) -> None:
        batch = [
            snapshot_factory(1, BATCH, "Closed Won", entered_pipeline=date(2023, 6, 1), close_date=date(2024, 2, 10)),
            snapshot_factory(2, BATCH, "Closed Lost", entered_pipeline=date(2023, 7, 1), close_date=date(2024, 2, 20)),
        ]
        result = win_rate(batch, start=date(2024, 2, 15), end=date(2024, 2, 29))
        assert (result.closed_won, result.closed_lost, result.win_rate) == (0, 1, 0.0)

    def test_no_closed_deals(self, snapshot_factory) -> None:
        result = win_rate([snapshot_factory(1, BATCH, "Discover", entered_pipeline=date(2023, 6, 1))])
        assert result.total_closed == 0
        assert result.win_rate == 0.0


class TestCloseRate:
    """Tests for close_rate."""

    def _batch(self, snapshot_factory):
        return [
            snapshot_factory(1, BATCH, "Closed Won", entered_pipeline=date(2023, 6, 1)),
            snapshot_factory(2, BATCH, "Closed Lost", entered_pipeline=date(2023, 7, 1)),
            snapshot_factory(3, BATCH, "Discover", entered_pipeline=date(2023, 8, 1)),
            snapshot_factory(4, BATCH, "Validation/Introduction", entered_pipeline=date(2023, 8, 1)),
            snapshot_factory(5, BATCH, "Discover"),
        ]

    def test_won_over_all_post_validation_entries(self, snapshot_factory) -> None:
        result = close_rate(self._batch(snapshot_factory))
        assert result.closed_won == 1
        assert result.total_eligible == 3
        assert result.close_rate == 33.3

    def test_range_bounds_entry_date(self, snapshot_factory) -> None:
        result = close_rate(self._batch(snapshot_factory), start=date(2023, 7, 1), end=date(2023, 12, 31))
        assert (result.closed_won, result.total_eligible, result.close_rate) == (0, 2, 0.0)


class TestRatesOverTime:
    """Tests for win_rate_over_time and close_rate_over_time."""

    def test_fiscal_and_rolling_windows(self, snapshot_factory) -> None:
        jan, feb = datetime(2024, 1, 10), datetime(2024, 2, 10)
        entered = date(2022, 12, 1)
        snaps = [
            snapshot_factory(1, jan, "Closed Won", entered_pipeline=entered, close_date=date(2024, 1, 5)),
            snapshot_factory(2, jan, "Closed Lost", entered_pipeline=entered, close_date=date(2023, 1, 20)),
            snapshot_factory(1, feb, "Closed Won", entered_pipeline=entered, close_date=date(2024, 1, 5)),
            snapshot_factory(2, feb, "Closed Lost", entered_pipeline=entered, close_date=date(2023, 1, 20)),
            snapshot_factory(3, datetime(2022, 6, 1), "Discover", entered_pipeline=entered),
        ]
        points = win_rate_over_time(snaps)
        assert [(p.snapshot_date, p.fiscal_year_win_rate, p.rolling_12_month_win_rate) for p in points] == [
            (date(2024, 1, 10), 100.0, 50.0),
            (date(2024, 2, 10), None, 100.0),
        ]

    def test_close_rate_falls_back_to_created_date(self, snapshot_factory) -> None:
        opportunities = {2: make_opportunity(2, created_date=datetime(2024, 1, 1))}
        snaps = [
            snapshot_factory(1, BATCH, "Closed Won", entered_pipeline=date(2023, 6, 1)),
            snapshot_factory(2, BATCH, "Discover"),
            snapshot_factory(3, BATCH, "Discover"),
            snapshot_factory(4, BATCH, "Discover", entered_pipeline=date(2022, 1, 1)),
        ]
        points = close_rate_over_time(snaps, opportunities)
        assert len(points) == 1
        assert points[0].snapshot_date == date(2024, 3, 1)
        assert (points[0].closed_won, points[0].total_eligible, points[0].close_rate) == (1, 2, 50.0)

    def test_dates_without_eligible_deals_skipped(self, snapshot_factory) -> None:
        snaps = [snapshot_factory(1, BATCH, "Validation/Introduction", entered_pipeline=date(2024, 1, 1))]
        assert close_rate_over_time(snaps) == []
        assert win_rate_over_time(snaps) == []


class TestPipelineMetrics:
    """Tests for pipeline_metrics."""

    def test_active_and_closed_won_sizes(self, snapshot_factory) -> None:
        batch = [
            snapshot_factory(1, BATCH, "Discover", tcv=300, year1_value=100),
            snapshot_factory(2, BATCH, "Negotiation/Review", tcv=100, amount=50),
            snapshot_factory(3, BATCH, "Closed Won", year1_value=200),
            snapshot_factory(4, BATCH, "Closed Won", year1_value=100),
            snapshot_factory(5, BATCH, "Validation/Introduction", year1_value=999, tcv=999),
        ]
        metrics = pipeline_metrics(batch)
        assert metrics.active_count == 2
        assert metrics.total_tcv == 400
        assert metrics.total_value == 150
        assert metrics.avg_deal_size == 75.0
        assert metrics.closed_won_count == 2
        assert metrics.avg_closed_won_deal_size == 150.0

    def test_empty_batch(self) -> None:
        metrics = pipeline_metrics([])
        assert metrics.active_count == 0
        assert metrics.avg_deal_size == 0.0


class TestPipelineValueByDate:
    """Tests for pipeline_value_by_date."""

    def test_active_positive_value_per_date(self, snapshot_factory) -> None:
        jan, feb = datetime(2024, 1, 10), datetime(2024, 2, 10)
        snaps = [
            snapshot_factory(1, feb, "Discover", year1_value=100),
            snapshot_factory(2, feb, "Closed Won", year1_value=500),
            snapshot_factory(1, jan, "Discover", year1_value=80),
            snapshot_factory(2, jan, "Negotiation/Review", amount=20),
            snapshot_factory(3, jan, "Discover", year1_value=0),
            snapshot_factory(4, datetime(2023, 12, 1), "Closed Lost", year1_value=40),
        ]
        points = pipeline_value_by_date(snaps)
        assert [(p.snapshot_date, p.total_value) for p in points] == [
            (date(2024, 1, 10), 100.0),
            (date(2024, 2, 10), 100.0),
        ]
