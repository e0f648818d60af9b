"""Opportunity, snapshot and upload batch models."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Salesforce-style identifiers: 15-char base form, 18-char extended form
BASE_ID_LENGTH = 15
EXTENDED_ID_LENGTH = 18


class Opportunity(BaseModel):
    """A sales deal, created once when first observed in an upload."""

    id: int = Field(..., description="Internal numeric id")
    opportunity_id: str = Field(..., description="External id (15- or 18-char form)")
    name: str = ""
    client_name: Optional[str] = None
    owner: Optional[str] = None
    created_date: Optional[datetime] = None

    @property
    def base_id(self) -> str:
        """External id truncated to its 15-char base form."""
        return self.opportunity_id[:BASE_ID_LENGTH]


class Snapshot(BaseModel):
    """Immutable, dated, full-state observation of one opportunity."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    opportunity_id: int
    snapshot_date: datetime

    stage: Optional[str] = None
    confidence: Optional[str] = None
    opportunity_name: Optional[str] = None
    account_name: Optional[str] = None

    amount: Optional[float] = None
    year1_value: Optional[float] = Field(default=None, description="Annualized (Year 1 ARR) value")
    tcv: Optional[float] = Field(default=None, description="Total contract value")

    expected_close_date: Optional[date] = None
    close_date: Optional[date] = None
    loss_reason: Optional[str] = None
    stage_before: Optional[str] = None
    entered_pipeline: Optional[datetime] = None

    @field_validator("snapshot_date", "entered_pipeline", mode="before")
    @classmethod
    def _date_to_datetime(cls, v):
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, datetime.min.time())
        return v

    @property
    def value(self) -> float:
        """Deal value: Year 1 ARR, falling back to amount."""
        if self.year1_value is not None:
            return self.year1_value
        if self.amount is not None:
            return self.amount
        return 0.0

    @property
    def effective_close_date(self) -> date:
        """Actual close date, else expected close date, else snapshot date."""
        return self.close_date or self.expected_close_date or self.snapshot_date.date()


class UploadBatch(BaseModel):
    """Record of one ingest: a set of snapshots sharing a snapshot date."""

    id: int
    filename: str
    uploaded_at: datetime
    snapshot_date: date
    record_count: int = 0
    status: str = "processing"
