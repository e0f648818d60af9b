"""Raw snapshot row representation before it is split into opportunity and snapshot."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RawSnapshotRow(BaseModel):
    """
    One already-structured row of an upload batch.
    Unknown columns are kept (extra="allow") but ignored by ingest. Strings are
    stripped, so a whitespace-only opportunity_id is rejected.
    """

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    opportunity_id: str = Field(..., min_length=1)
    opportunity_name: str = ""
    account_name: Optional[str] = None
    owner: Optional[str] = None

    stage: Optional[str] = None
    confidence: Optional[str] = None
    amount: Optional[float] = None
    year1_value: Optional[float] = None
    tcv: Optional[float] = None

    expected_close_date: Optional[date] = None
    close_date: Optional[date] = None
    loss_reason: Optional[str] = None
    stage_before: Optional[str] = None
    entered_pipeline: Optional[datetime] = None
    created_date: Optional[datetime] = None
