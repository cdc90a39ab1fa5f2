"""Metrics log API routes.

Readings posted here go to an append-only table that is independent of the
snapshot row; it is a secondary record only.
"""
from fastapi import APIRouter, Query

from ..models.metrics import MetricsEntryIn, MetricsRecord
from ..database import db_manager
from .snapshot import utc_stamp

router = APIRouter(prefix="/api", tags=["Metrics"])


def _row_to_metrics(row) -> MetricsRecord:
    """Convert SQLite row to MetricsRecord model."""
    return MetricsRecord(
        id=row["id"],
        recorded_at=row["recorded_at"],
        systolic=row["systolic"],
        diastolic=row["diastolic"],
        heart_rate=row["heart_rate"],
        weight=row["weight"],
        respiratory_rate=row["respiratory_rate"],
    )


@router.post("/metrics")
async def append_metrics(entry: MetricsEntryIn):
    """Append a reading to the metrics log."""
    with db_manager.get_conn() as conn:
        conn.execute(
            """
            INSERT INTO metrics (recorded_at, systolic, diastolic, heart_rate, weight, respiratory_rate)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.recorded_at or utc_stamp(),
                entry.systolic,
                entry.diastolic,
                entry.heart_rate,
                entry.weight,
                entry.respiratory_rate,
            ),
        )
    return {"ok": True}


@router.get("/metrics", response_model=list[MetricsRecord])
async def list_metrics(limit: int = Query(default=50, ge=1, le=500)):
    """Get the most recent logged readings, newest first."""
    with db_manager.get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM metrics ORDER BY recorded_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()

    return [_row_to_metrics(row) for row in rows]
