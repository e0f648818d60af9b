"""Engine settings: stage remapping, probability table, canonical stage order."""

from pathlib import Path
from typing import Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings loading. Run: pip install -e ."
    ) from e
from pydantic import BaseModel, ConfigDict, Field

FALLBACK_PROBABILITY_STAGE = "Otherwise"


class StageMapping(BaseModel):
    """Rename an incoming stage label (matched case-insensitively) at ingest."""

    model_config = ConfigDict(populate_by_name=True)

    from_stage: str = Field(..., alias="from")
    to_stage: str = Field(..., alias="to")


class ProbabilityConfig(BaseModel):
    """Closing probability (percent) for a stage/confidence pair."""

    stage: str
    confidence: str = ""
    probability: float = Field(..., ge=0, le=100)


def _default_stage_mappings() -> list[StageMapping]:
    return [
        StageMapping(from_stage="develop", to_stage="Developing Champions"),
        StageMapping(from_stage="decision", to_stage="Negotiation/Review"),
    ]


def _default_probability_configs() -> list[ProbabilityConfig]:
    table = [
        ("Qualify", (10, 20, 30)),
        ("Developing Champions", (30, 40, 50)),
        ("Value Proposition", (40, 50, 60)),
        ("Business Case", (50, 60, 70)),
        ("Validation", (60, 70, 80)),
        ("Negotiation/Review", (80, 90, 95)),
    ]
    configs = [
        ProbabilityConfig(stage=stage, confidence=confidence, probability=p)
        for stage, probs in table
        for confidence, p in zip(("Upside", "Best Case", "Commit"), probs)
    ]
    configs.append(ProbabilityConfig(stage="Closed Won", confidence="Closed", probability=100))
    configs.append(ProbabilityConfig(stage=FALLBACK_PROBABILITY_STAGE, confidence="", probability=0))
    return configs


def _default_pipeline_stages() -> list[str]:
    return [
        "Validation/Introduction",
        "Discover",
        "Developing Champions",
        "ROI Analysis/Pricing",
        "Negotiation/Review",
    ]


class EngineSettings(BaseModel):
    """
    Explicit configuration passed to ingest and to the aggregators that need it.
    Replaces process-wide mutable tables: callers own an instance and replace
    its tables with ordinary method calls.
    """

    stage_mappings: list[StageMapping] = Field(default_factory=_default_stage_mappings)
    probability_configs: list[ProbabilityConfig] = Field(
        default_factory=_default_probability_configs
    )
    pipeline_stages: list[str] = Field(
        default_factory=_default_pipeline_stages,
        description="Non-terminal stages in canonical pipeline order",
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineSettings":
        """Load settings from YAML. Missing sections keep their defaults."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        return cls.model_validate(data)

    def to_yaml(self, path: str | Path) -> None:
        """Write settings to YAML in the same shape from_yaml reads."""
        data = self.model_dump(mode="json", by_alias=True)
        Path(path).write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

    def set_stage_mappings(self, mappings: list[StageMapping | dict]) -> None:
        """Replace the stage mapping table."""
        self.stage_mappings = [StageMapping.model_validate(m) for m in mappings]

    def set_probability_configs(self, configs: list[ProbabilityConfig | dict]) -> None:
        """Replace the probability table."""
        self.probability_configs = [ProbabilityConfig.model_validate(c) for c in configs]

    def normalize_stage(self, stage: Optional[str]) -> Optional[str]:
        """Trim a stage label and apply the first case-insensitive mapping."""
        if stage is None:
            return None
        trimmed = stage.strip()
        if not trimmed:
            return None
        for mapping in self.stage_mappings:
            if mapping.from_stage.strip().lower() == trimmed.lower():
                return mapping.to_stage
        return trimmed

    def probability_for(self, stage: Optional[str], confidence: Optional[str]) -> float:
        """
        Probability (percent) for stage/confidence. Exact pair match first, then
        the stage with blank confidence, then the "Otherwise" row, else 0.
        """
        stage_key = (stage or "").strip().lower()
        confidence_key = (confidence or "").strip().lower()
        stage_only: Optional[float] = None
        fallback = 0.0
        for cfg in self.probability_configs:
            cfg_stage = cfg.stage.strip().lower()
            cfg_conf = cfg.confidence.strip().lower()
            if cfg_stage == stage_key and cfg_conf == confidence_key:
                return cfg.probability
            if cfg_stage == stage_key and not cfg_conf and stage_only is None:
                stage_only = cfg.probability
            if cfg_stage == FALLBACK_PROBABILITY_STAGE.lower():
                fallback = cfg.probability
        return stage_only if stage_only is not None else fallback
