"""Unit tests for the duplicate account detector."""

from datetime import date, datetime

from pipeline_analytics.reports.duplicates import duplicate_accounts

from conftest import make_opportunity

BATCH = datetime(2024, 3, 1)


class TestDuplicateAccounts:
    """Tests for duplicate_accounts."""

    def test_active_value_only(self, snapshot_factory) -> None:
        """Two closed and one active Acme deal form one group valued at the active deal."""
        snaps = [
            snapshot_factory(1, BATCH, "Closed Won", account_name="Acme Inc.", year1_value=500),
            snapshot_factory(2, BATCH, "Closed Lost", account_name="ACME", year1_value=300),
            snapshot_factory(3, BATCH, "Discover", account_name="Acme", year1_value=100, expected_close_date=date(2024, 6, 1)),
        ]
        groups = duplicate_accounts(snaps)

        assert len(groups) == 1
        group = groups[0]
        assert group.client_name == "Acme Inc."
        assert group.total_opportunities_count == 3
        assert group.active_opportunities_count == 1
        assert group.total_value == 100
        active = [m for m in group.opportunities if m.is_active]
        assert active[0].close_date == date(2024, 6, 1)

    def test_group_without_active_member_dropped(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, BATCH, "Closed Won", account_name="Acme"),
            snapshot_factory(2, BATCH, "Validation/Introduction", account_name="Acme"),
        ]
        assert duplicate_accounts(snaps) == []

    def test_singletons_and_invalid_names_dropped(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, BATCH, "Discover", account_name="Acme"),
            snapshot_factory(2, BATCH, "Discover", account_name="N/A"),
            snapshot_factory(3, BATCH, "Discover", account_name="n/a"),
            snapshot_factory(4, BATCH, "Discover", account_name="123"),
            snapshot_factory(5, BATCH, "Discover", account_name="123"),
        ]
        assert duplicate_accounts(snaps) == []

    def test_falls_back_to_opportunity_client_name(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, BATCH, "Discover", year1_value=10),
            snapshot_factory(2, BATCH, "Discover", account_name="Globex LLC", year1_value=20),
        ]
        opps = {
            1: make_opportunity(1, client_name="Globex", owner="Sam"),
            2: make_opportunity(2, client_name="Other"),
        }
        groups = duplicate_accounts(snaps, opps)
        assert len(groups) == 1
        assert groups[0].total_value == 30
        assert {m.owner for m in groups[0].opportunities} == {"Sam", None}

    def test_sorted_by_total_value(self, snapshot_factory) -> None:
        snaps = [
            snapshot_factory(1, BATCH, "Discover", account_name="Small", year1_value=1),
            snapshot_factory(2, BATCH, "Discover", account_name="Small", year1_value=1),
            snapshot_factory(3, BATCH, "Discover", account_name="Large", year1_value=50),
            snapshot_factory(4, BATCH, "Discover", account_name="large", year1_value=50),
        ]
        assert [g.client_name for g in duplicate_accounts(snaps)] == ["Large", "Small"]
