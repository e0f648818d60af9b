"""Views over the latest batch's open pipeline: fiscal rollups, stage distribution, weighted value."""

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel, Field

from pipeline_analytics.fiscal import (
    fiscal_quarter,
    fiscal_quarter_number,
    fiscal_year,
    fiscal_year_number,
)
from pipeline_analytics.matching import is_active_stage
from pipeline_analytics.models.opportunity import Snapshot
from pipeline_analytics.models.settings import EngineSettings
from pipeline_analytics.reports.common import latest_per_opportunity, order_stages


class PeriodTotal(BaseModel):
    period: str
    total_value: float = 0.0
    deal_count: int = 0


class PipelineRollup(BaseModel):
    by_fiscal_year: list[PeriodTotal] = Field(default_factory=list)
    by_fiscal_quarter: list[PeriodTotal] = Field(default_factory=list)
    by_month: list[PeriodTotal] = Field(default_factory=list)


class StageDistributionRow(BaseModel):
    stage: str
    opportunity_count: int
    total_tcv: float


class WeightedStageRow(BaseModel):
    stage: str
    deal_count: int = 0
    total_value: float = 0.0
    weighted_value: float = 0.0


class WeightedPipeline(BaseModel):
    stages: list[WeightedStageRow] = Field(default_factory=list)
    total_value: float = 0.0
    weighted_total: float = 0.0


def _active(batch_snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    return [s for s in latest_per_opportunity(batch_snapshots).values() if is_active_stage(s.stage)]


def _totals(buckets: dict, key_fn=None) -> list[PeriodTotal]:
    keys = sorted(buckets, key=key_fn) if key_fn else sorted(buckets)
    return [buckets[k] for k in keys]


def fiscal_rollups(batch_snapshots: Iterable[Snapshot]) -> PipelineRollup:
    """Active deal value by fiscal year, fiscal quarter and calendar month of expected close."""
    years: dict[str, PeriodTotal] = {}
    quarters: dict[str, PeriodTotal] = {}
    months: dict[str, PeriodTotal] = {}
    quarter_keys: dict[str, tuple[int, int]] = {}

    for snap in _active(batch_snapshots):
        close = snap.expected_close_date
        if close is None:
            continue
        fy, fq, month = fiscal_year(close), fiscal_quarter(close), close.strftime("%Y-%m")
        quarter_keys[fq] = (fiscal_year_number(close), fiscal_quarter_number(close))
        for buckets, period in ((years, fy), (quarters, fq), (months, month)):
            bucket = buckets.setdefault(period, PeriodTotal(period=period))
            bucket.total_value += snap.value
            bucket.deal_count += 1

    return PipelineRollup(
        by_fiscal_year=_totals(years),
        by_fiscal_quarter=_totals(quarters, key_fn=quarter_keys.get),
        by_month=_totals(months),
    )


def stage_distribution(
    batch_snapshots: Iterable[Snapshot], pipeline_stages: list[str]
) -> list[StageDistributionRow]:
    """Distinct opportunity count and summed TCV per active stage."""
    counts: dict[str, int] = defaultdict(int)
    tcv: dict[str, float] = defaultdict(float)
    for snap in _active(batch_snapshots):
        stage = snap.stage.strip()
        counts[stage] += 1
        tcv[stage] += snap.tcv or 0
    return [
        StageDistributionRow(stage=stage, opportunity_count=counts[stage], total_tcv=tcv[stage])
        for stage in order_stages(counts.keys(), pipeline_stages)
    ]


def weighted_pipeline(
    batch_snapshots: Iterable[Snapshot], settings: EngineSettings
) -> WeightedPipeline:
    """Active deal value weighted by the (stage, confidence) probability table."""
    rows: dict[str, WeightedStageRow] = {}
    for snap in _active(batch_snapshots):
        stage = snap.stage.strip()
        row = rows.setdefault(stage, WeightedStageRow(stage=stage))
        probability = settings.probability_for(stage, snap.confidence)
        row.deal_count += 1
        row.total_value += snap.value
        row.weighted_value += snap.value * probability / 100

    ordered = [rows[s] for s in order_stages(rows.keys(), settings.pipeline_stages)]
    for row in ordered:
        row.weighted_value = round(row.weighted_value, 2)
    return WeightedPipeline(
        stages=ordered,
        total_value=sum(r.total_value for r in ordered),
        weighted_total=round(sum(r.weighted_value for r in ordered), 2),
    )
