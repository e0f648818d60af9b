"""SQLite-backed snapshot store with upload batch tracking and identifier upgrade."""

import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pipeline_analytics.models.opportunity import (
    BASE_ID_LENGTH,
    EXTENDED_ID_LENGTH,
    Opportunity,
    Snapshot,
    UploadBatch,
)
from pipeline_analytics.models.raw import RawSnapshotRow
from pipeline_analytics.models.settings import EngineSettings
from pipeline_analytics.store.base import SnapshotRepository

logger = logging.getLogger(__name__)

_SNAPSHOT_COLUMNS = (
    "opportunity_id",
    "snapshot_date",
    "stage",
    "confidence",
    "opportunity_name",
    "account_name",
    "amount",
    "year1_value",
    "tcv",
    "expected_close_date",
    "close_date",
    "loss_reason",
    "stage_before",
    "entered_pipeline",
)


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


class SnapshotStore(SnapshotRepository):
    """
    SQLite store for opportunities, snapshots and upload batches.
    Opportunities are keyed by external id; a 15-char base id and its 18-char
    extended form resolve to the same row, and the stored id is upgraded to the
    extended form when it first arrives.
    """

    def __init__(self, db_path: str | Path = "pipeline_analytics.db"):
        self._db_path = Path(db_path)
        self._ensure_schema()

    def _connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        with self._connection() as conn:
            conn.executescript(schema_path.read_text())

    def _find_opportunity_row(
        self, conn: sqlite3.Connection, external_id: str
    ) -> Optional[sqlite3.Row]:
        row = conn.execute(
            "SELECT * FROM opportunities WHERE opportunity_id = ?", (external_id,)
        ).fetchone()
        if row or len(external_id) not in (BASE_ID_LENGTH, EXTENDED_ID_LENGTH):
            return row
        rows = conn.execute(
            """
            SELECT * FROM opportunities
            WHERE substr(opportunity_id, 1, ?) = ? AND length(opportunity_id) IN (?, ?)
            ORDER BY id
            """,
            (BASE_ID_LENGTH, external_id[:BASE_ID_LENGTH], BASE_ID_LENGTH, EXTENDED_ID_LENGTH),
        ).fetchall()
        if len(rows) > 1:
            logger.warning(
                "Identifier %s matches %d stored opportunities by base id; using %s",
                external_id,
                len(rows),
                rows[0]["opportunity_id"],
            )
        return rows[0] if rows else None

    def _upsert_opportunity(
        self,
        conn: sqlite3.Connection,
        opportunity_id: str,
        name: str = "",
        client_name: Optional[str] = None,
        owner: Optional[str] = None,
        created_date: Optional[datetime] = None,
    ) -> Opportunity:
        opportunity_id = opportunity_id.strip()
        if not opportunity_id:
            raise ValueError("opportunity_id must not be blank")

        row = self._find_opportunity_row(conn, opportunity_id)
        if row is None:
            cursor = conn.execute(
                """
                INSERT INTO opportunities (opportunity_id, name, client_name, owner, created_date)
                VALUES (?, ?, ?, ?, ?)
                """,
                (opportunity_id, name or "", client_name, owner, _iso(created_date)),
            )
            return Opportunity(
                id=cursor.lastrowid or 0,
                opportunity_id=opportunity_id,
                name=name or "",
                client_name=client_name,
                owner=owner,
                created_date=created_date,
            )

        stored_id = row["opportunity_id"]
        if len(stored_id) == BASE_ID_LENGTH and len(opportunity_id) == EXTENDED_ID_LENGTH:
            conn.execute(
                "UPDATE opportunities SET opportunity_id = ? WHERE id = ?",
                (opportunity_id, row["id"]),
            )
            logger.info("Upgraded opportunity id %s to %s", stored_id, opportunity_id)
            stored_id = opportunity_id
        data = dict(row)
        data["opportunity_id"] = stored_id
        return Opportunity.model_validate(data)

    def _insert_snapshot(self, conn: sqlite3.Connection, snapshot: Snapshot) -> Snapshot:
        values = snapshot.model_dump(include=set(_SNAPSHOT_COLUMNS))
        params = [
            _iso(values[c]) if isinstance(values[c], (date, datetime)) else values[c]
            for c in _SNAPSHOT_COLUMNS
        ]
        placeholders = ", ".join("?" for _ in _SNAPSHOT_COLUMNS)
        cursor = conn.execute(
            f"INSERT INTO snapshots ({', '.join(_SNAPSHOT_COLUMNS)}) VALUES ({placeholders})",
            params,
        )
        return snapshot.model_copy(update={"id": cursor.lastrowid or 0})

    def upsert_opportunity(
        self,
        opportunity_id: str,
        name: str = "",
        client_name: Optional[str] = None,
        owner: Optional[str] = None,
        created_date: Optional[datetime] = None,
    ) -> Opportunity:
        """
        Return the opportunity for an external id, creating it when first seen.
        Existing rows are never rewritten except for the base to extended id upgrade.
        """
        with self._connection() as conn:
            opp = self._upsert_opportunity(
                conn,
                opportunity_id,
                name=name,
                client_name=client_name,
                owner=owner,
                created_date=created_date,
            )
            conn.commit()
        return opp

    def add_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Insert one snapshot. Returns it with its assigned id."""
        with self._connection() as conn:
            saved = self._insert_snapshot(conn, snapshot)
            conn.commit()
        return saved

    def start_batch(self, filename: str, snapshot_date: date) -> UploadBatch:
        """Record start of an upload batch. Returns UploadBatch with id."""
        now = datetime.now(timezone.utc)
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO upload_batches (filename, uploaded_at, snapshot_date, record_count, status) VALUES (?, ?, ?, 0, 'processing')",
                (filename, now.isoformat(), snapshot_date.isoformat()),
            )
            conn.commit()
            batch_id = cursor.lastrowid
        return UploadBatch(
            id=batch_id or 0,
            filename=filename,
            uploaded_at=now,
            snapshot_date=snapshot_date,
        )

    def finish_batch(self, batch_id: int, record_count: int, status: str = "completed") -> None:
        """Record completion (or failure) of an upload batch."""
        with self._connection() as conn:
            conn.execute(
                "UPDATE upload_batches SET record_count = ?, status = ? WHERE id = ?",
                (record_count, status, batch_id),
            )
            conn.commit()

    def ingest_batch(
        self,
        rows: Iterable[RawSnapshotRow | dict],
        snapshot_date: date | datetime,
        filename: str = "",
        settings: Optional[EngineSettings] = None,
    ) -> UploadBatch:
        """
        Ingest structured rows as one upload batch sharing snapshot_date.
        Rows are validated before anything is written; stage names pass through
        the settings stage mappings. All rows are written in one transaction, so
        a failure part-way through rolls the batch back and marks it failed.
        """
        settings = settings or EngineSettings()
        validated = [RawSnapshotRow.model_validate(r) for r in rows]
        if isinstance(snapshot_date, datetime):
            taken_at = snapshot_date
        else:
            taken_at = datetime.combine(snapshot_date, datetime.min.time())

        batch = self.start_batch(filename, taken_at.date())
        count = 0
        try:
            with self._connection() as conn:
                for raw in validated:
                    opp = self._upsert_opportunity(
                        conn,
                        raw.opportunity_id,
                        name=raw.opportunity_name,
                        client_name=raw.account_name,
                        owner=raw.owner,
                        created_date=raw.created_date,
                    )
                    self._insert_snapshot(
                        conn,
                        Snapshot(
                            opportunity_id=opp.id,
                            snapshot_date=taken_at,
                            stage=settings.normalize_stage(raw.stage),
                            confidence=raw.confidence,
                            opportunity_name=raw.opportunity_name or None,
                            account_name=raw.account_name,
                            amount=raw.amount,
                            year1_value=raw.year1_value,
                            tcv=raw.tcv,
                            expected_close_date=raw.expected_close_date,
                            close_date=raw.close_date,
                            loss_reason=raw.loss_reason,
                            stage_before=raw.stage_before,
                            entered_pipeline=raw.entered_pipeline,
                        ),
                    )
                    count += 1
                conn.commit()
        except Exception:
            self.finish_batch(batch.id, 0, status="failed")
            logger.exception("Batch %s failed at row %d; rolled back", batch.id, count + 1)
            raise

        self.finish_batch(batch.id, count)
        logger.info(
            "Ingested %d snapshots for %s (batch %s, %s)",
            count,
            taken_at.date(),
            batch.id,
            filename or "<unnamed>",
        )
        return batch.model_copy(update={"record_count": count, "status": "completed"})

    def list_batches(self) -> list[UploadBatch]:
        """Upload batches, most recent first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM upload_batches ORDER BY snapshot_date DESC, id DESC"
            ).fetchall()
        return [UploadBatch.model_validate(dict(r)) for r in rows]

    def count_snapshots(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]

    def clear_all(self) -> None:
        """Delete every snapshot, opportunity and batch."""
        with self._connection() as conn:
            conn.execute("DELETE FROM snapshots")
            conn.execute("DELETE FROM opportunities")
            conn.execute("DELETE FROM upload_batches")
            conn.commit()
        logger.info("Cleared all data from %s", self._db_path)

    def clear_by_date(self, snapshot_date: date) -> int:
        """Delete snapshots and batches of one snapshot date. Returns snapshots deleted."""
        day = snapshot_date.isoformat()
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM snapshots WHERE date(snapshot_date) = ?", (day,))
            deleted = cursor.rowcount
            conn.execute("DELETE FROM upload_batches WHERE snapshot_date = ?", (day,))
            conn.commit()
        logger.info("Cleared %d snapshots for %s", deleted, day)
        return deleted

    def list_snapshots(self, opportunity_id: int) -> list[Snapshot]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM snapshots WHERE opportunity_id = ? ORDER BY snapshot_date, id",
                (opportunity_id,),
            ).fetchall()
        return [Snapshot.model_validate(dict(r)) for r in rows]

    def list_snapshots_between(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Snapshot]:
        clauses, params = [], []
        if start is not None:
            clauses.append("date(snapshot_date) >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("date(snapshot_date) <= ?")
            params.append(end.isoformat())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM snapshots {where} ORDER BY opportunity_id, snapshot_date, id",
                params,
            ).fetchall()
        return [Snapshot.model_validate(dict(r)) for r in rows]

    def list_snapshots_on(self, snapshot_date: date) -> list[Snapshot]:
        return self.list_snapshots_between(snapshot_date, snapshot_date)

    def latest_batch_date(self, at_or_before: Optional[date] = None) -> Optional[date]:
        """Snapshot date of the newest non-failed batch at or before the given date."""
        query = "SELECT MAX(snapshot_date) FROM upload_batches WHERE status != 'failed'"
        params: list[str] = []
        if at_or_before is not None:
            query += " AND snapshot_date <= ?"
            params.append(at_or_before.isoformat())
        with self._connection() as conn:
            value = conn.execute(query, params).fetchone()[0]
        return date.fromisoformat(value) if value else None

    def list_opportunities(self) -> list[Opportunity]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM opportunities ORDER BY id").fetchall()
        return [Opportunity.model_validate(dict(r)) for r in rows]

    def get_opportunity(self, id: int) -> Optional[Opportunity]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM opportunities WHERE id = ?", (id,)).fetchone()
        return Opportunity.model_validate(dict(row)) if row else None
