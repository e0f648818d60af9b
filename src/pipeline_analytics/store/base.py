"""Abstract read interface the report engine consumes."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from pipeline_analytics.models.opportunity import Opportunity, Snapshot


class SnapshotRepository(ABC):
    """
    Read side of snapshot persistence.
    Implementations return snapshots in any order; the engine sorts them.
    """

    @abstractmethod
    def list_snapshots(self, opportunity_id: int) -> list[Snapshot]:
        """All snapshots of one opportunity."""
        pass

    @abstractmethod
    def list_snapshots_between(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Snapshot]:
        """Snapshots with snapshot date in [start, end]; either bound optional."""
        pass

    @abstractmethod
    def list_snapshots_on(self, snapshot_date: date) -> list[Snapshot]:
        """Snapshots of one batch date."""
        pass

    @abstractmethod
    def latest_batch_date(self, at_or_before: Optional[date] = None) -> Optional[date]:
        """Snapshot date of the most recent upload batch at or before the given date."""
        pass

    @abstractmethod
    def list_opportunities(self) -> list[Opportunity]:
        pass

    @abstractmethod
    def get_opportunity(self, id: int) -> Optional[Opportunity]:
        pass

    def opportunities_by_id(self) -> dict[int, Opportunity]:
        """Index of all opportunities by internal id."""
        return {o.id: o for o in self.list_opportunities()}
