"""Registry for looking up reports by name."""

from typing import Callable

from pipeline_analytics.engine import ReportEngine


class ReportRegistry:
    """Maps report names to ReportEngine methods."""

    _reports: dict[str, str] = {
        "stage-dwell": "stage_dwell_time",
        "slippage": "date_slippage",
        "validation-conversion": "validation_conversion",
        "closing-probability": "closing_probability",
        "loss-reasons": "loss_reasons",
        "loss-reasons-by-stage": "loss_reasons_by_stage",
        "recent-losses": "recent_losses",
        "value-change": "value_change_by_stage",
        "duplicates": "duplicate_accounts",
        "movements": "deal_movements",
        "fiscal-rollups": "fiscal_rollups",
        "stage-distribution": "stage_distribution",
        "weighted-pipeline": "weighted_pipeline",
        "quarter-retention": "quarter_retention",
        "closed-won": "closed_won",
        "win-rate": "win_rate",
        "close-rate": "close_rate",
        "win-rate-over-time": "win_rate_over_time",
        "close-rate-over-time": "close_rate_over_time",
        "pipeline-metrics": "pipeline_metrics",
        "pipeline-value": "pipeline_value_by_date",
    }

    @classmethod
    def get(cls, name: str, engine: ReportEngine) -> Callable:
        """Bound engine method for the given report. Accepts snake_case or kebab-case."""
        method = cls._reports.get(name.lower().replace("_", "-"))
        if not method:
            raise ValueError(f"Unknown report: {name}. Available: {cls.available_reports()}")
        return getattr(engine, method)

    @classmethod
    def available_reports(cls) -> list[str]:
        """Return list of available report names."""
        return list(cls._reports.keys())
