"""Report engine: loads snapshots once per request and dispatches to an aggregator."""

import logging
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel

from pipeline_analytics.fiscal import fiscal_year_start
from pipeline_analytics.history import Timeline, build_timelines
from pipeline_analytics.models.settings import EngineSettings
from pipeline_analytics.reports import (
    closed_won,
    conversion,
    duplicates,
    dwell,
    losses,
    movements,
    pipeline,
    probability,
    rates,
    retention,
    slippage,
    value_change,
)
from pipeline_analytics.store.base import SnapshotRepository

logger = logging.getLogger(__name__)


def _dump(result: BaseModel | list[BaseModel]) -> Any:
    if isinstance(result, list):
        return [r.model_dump(mode="json") for r in result]
    return result.model_dump(mode="json")


def _check_range(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and start > end:
        raise ValueError(f"start_date {start} is after end_date {end}")


class ReportEngine:
    """
    Stateless report facade over a SnapshotRepository.
    Each method reads what it needs, resolves the latest batch at most once, and
    returns JSON-serializable rows (a list of dicts, or one dict for summaries).
    """

    def __init__(self, repository: SnapshotRepository, settings: Optional[EngineSettings] = None):
        self.repository = repository
        self.settings = settings or EngineSettings()

    def _timelines(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Timeline]:
        snapshots = self.repository.list_snapshots_between(start, end)
        timelines = list(build_timelines(snapshots).values())
        logger.debug(
            "Loaded %d snapshots across %d opportunities (%s..%s)",
            len(snapshots),
            len(timelines),
            start or "-",
            end or "-",
        )
        return timelines

    def _batch(self, at_or_before: Optional[date] = None):
        """Resolve the latest batch date once and load that batch's snapshots."""
        batch_date = self.repository.latest_batch_date(at_or_before or date.today())
        if batch_date is None:
            logger.debug("No upload batch at or before %s", at_or_before or date.today())
            return None, []
        return batch_date, self.repository.list_snapshots_on(batch_date)

    def stage_dwell_time(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(dwell.stage_dwell_time(self._timelines(start_date, end_date)))

    def date_slippage(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(
            slippage.date_slippage(
                self._timelines(start_date, end_date), self.repository.opportunities_by_id()
            )
        )

    def validation_conversion(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        top_n: int = conversion.DEFAULT_TOP_N,
        as_of: Optional[datetime] = None,
    ) -> dict:
        _check_range(start_date, end_date)
        return _dump(
            conversion.validation_conversion(
                self._timelines(start_date, end_date),
                self.repository.opportunities_by_id(),
                as_of=as_of,
                top_n=top_n,
            )
        )

    def closing_probability(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(
            probability.closing_probability(
                self._timelines(),
                self.settings.pipeline_stages,
                self.repository.opportunities_by_id(),
                start=start_date,
                end=end_date,
            )
        )

    def loss_reasons(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        records = losses.collect_losses(
            self._timelines(), self.repository.opportunities_by_id(), start_date, end_date
        )
        return _dump(losses.losses_by_reason(records))

    def loss_reasons_by_stage(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        records = losses.collect_losses(
            self._timelines(), self.repository.opportunities_by_id(), start_date, end_date
        )
        return _dump(losses.losses_by_reason_and_stage(records))

    def recent_losses(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = losses.DEFAULT_RECENT_LIMIT,
    ) -> list[dict]:
        """Closed-lost deals of the latest batch at or before end_date."""
        _check_range(start_date, end_date)
        batch_date = self.repository.latest_batch_date(end_date or date.today())
        if batch_date is None:
            return []
        return _dump(
            losses.recent_losses(
                self._timelines(end=batch_date),
                batch_date,
                self.repository.opportunities_by_id(),
                limit=limit,
            )
        )

    def value_change_by_stage(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(
            value_change.value_change_by_stage(
                self._timelines(start_date, end_date), self.settings.pipeline_stages
            )
        )

    def duplicate_accounts(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        """Duplicates within the latest batch at or before end_date (default today)."""
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(duplicates.duplicate_accounts(batch, self.repository.opportunities_by_id()))

    def deal_movements(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(
            movements.deal_movements(
                self._timelines(end=end_date),
                self.repository.opportunities_by_id(),
                start_date,
                end_date,
            )
        )

    def fiscal_rollups(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(pipeline.fiscal_rollups(batch))

    def stage_distribution(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(pipeline.stage_distribution(batch, self.settings.pipeline_stages))

    def weighted_pipeline(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(pipeline.weighted_pipeline(batch, self.settings))

    def quarter_retention(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        return _dump(
            retention.quarter_retention(
                self._timelines(), self.settings.pipeline_stages, start_date, end_date
            )
        )

    def closed_won(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        """Closed-won deals; the period defaults to fiscal year to date of the latest batch."""
        _check_range(start_date, end_date)
        batch_date, batch = self._batch(end_date)
        end = end_date or batch_date or date.today()
        start = start_date or fiscal_year_start(end)
        _check_range(start, end)
        return _dump(
            closed_won.closed_won(batch, start, end, self.repository.opportunities_by_id())
        )

    def win_rate(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        """Win rate of the latest batch; the range bounds close dates."""
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(rates.win_rate(batch, start_date, end_date))

    def close_rate(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        """Close rate of the latest batch; the range bounds pipeline entry dates."""
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(rates.close_rate(batch, start_date, end_date))

    def win_rate_over_time(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        snapshots = self.repository.list_snapshots_between(start_date, end_date)
        return _dump(rates.win_rate_over_time(snapshots))

    def close_rate_over_time(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        snapshots = self.repository.list_snapshots_between(start_date, end_date)
        return _dump(rates.close_rate_over_time(snapshots, self.repository.opportunities_by_id()))

    def pipeline_metrics(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        _check_range(start_date, end_date)
        _, batch = self._batch(end_date)
        return _dump(rates.pipeline_metrics(batch))

    def pipeline_value_by_date(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        _check_range(start_date, end_date)
        snapshots = self.repository.list_snapshots_between(start_date, end_date)
        return _dump(rates.pipeline_value_by_date(snapshots))
