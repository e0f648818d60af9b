"""Pytest fixtures for pipeline-analytics tests."""

import tempfile
from datetime import datetime
from itertools import count
from pathlib import Path
from typing import Callable

import pytest

from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.store import SnapshotStore

_ids = count(1)


def make_snapshot(
    opportunity_id: int,
    snapshot_date: datetime,
    stage: str | None,
    **fields,
) -> Snapshot:
    """Snapshot with a fresh id; extra fields passed through."""
    return Snapshot(
        id=next(_ids),
        opportunity_id=opportunity_id,
        snapshot_date=snapshot_date,
        stage=stage,
        **fields,
    )


def make_opportunity(id: int, name: str = "", client_name: str | None = None, **fields) -> Opportunity:
    return Opportunity(
        id=id,
        opportunity_id=fields.pop("opportunity_id", f"006{id:012d}"),
        name=name or f"Deal {id}",
        client_name=client_name,
        **fields,
    )


@pytest.fixture
def snapshot_factory() -> Callable[..., Snapshot]:
    """Factory for Snapshot models."""
    return make_snapshot


@pytest.fixture
def temp_db() -> Path:
    """Temporary database path for isolated tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def store(temp_db: Path) -> SnapshotStore:
    """SnapshotStore with temporary database."""
    return SnapshotStore(temp_db)


@pytest.fixture
def end_to_end_rows() -> list[tuple[str, dict]]:
    """One opportunity across three batches: Discover, Negotiation/Review, Closed Won."""
    base = {"opportunity_id": "0061x00000ABCDE", "opportunity_name": "O1", "account_name": "Acme"}
    return [
        ("2024-01-10", {**base, "stage": "Discover", "year1_value": 100, "tcv": 300}),
        ("2024-03-01", {**base, "stage": "Negotiation/Review", "year1_value": 150, "tcv": 450}),
        (
            "2024-04-15",
            {**base, "stage": "Closed Won", "year1_value": 150, "tcv": 450, "close_date": "2024-04-15"},
        ),
    ]
