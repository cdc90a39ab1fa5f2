"""Snapshot API routes.

The service keeps exactly one snapshot row. Uploads replace it wholesale;
reconciliation is the client's responsibility.
"""
import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from ..models.snapshot import SnapshotEnvelope, SnapshotWrite, SnapshotWriteResult
from ..database import db_manager

router = APIRouter(prefix="/api", tags=["Snapshot"])

logger = logging.getLogger(__name__)

SNAPSHOT_ROW_ID = 1


def utc_stamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def load_snapshot_payload(conn) -> tuple[str, dict | None]:
    """Read the stored snapshot row as ``(updated_at, data)``."""
    row = conn.execute(
        "SELECT payload, updated_at FROM snapshot WHERE id = ?", (SNAPSHOT_ROW_ID,)
    ).fetchone()
    if row is None:
        return "", None

    try:
        data = json.loads(row["payload"])
    except (TypeError, ValueError) as e:
        logger.warning(f"[SNAPSHOT] Stored payload is not valid JSON: {e}")
        data = None

    if not isinstance(data, dict):
        data = None
    return row["updated_at"], data


@router.get("/snapshot", response_model=SnapshotEnvelope, response_model_by_alias=True)
async def get_snapshot():
    """
    Get the snapshot of record.
    Returns ``data: null`` when nothing has been uploaded yet.
    """
    with db_manager.get_conn() as conn:
        updated_at, data = load_snapshot_payload(conn)

    return SnapshotEnvelope(updated_at=updated_at, data=data)


@router.post("/snapshot", response_model=SnapshotWriteResult, response_model_by_alias=True)
async def put_snapshot(body: SnapshotWrite):
    """
    Replace the snapshot of record.
    A missing ``updatedAt`` is stamped with the server's current time.
    """
    if not body.data:
        raise HTTPException(status_code=400, detail="Snapshot data required")

    stamp = body.updated_at or utc_stamp()

    with db_manager.get_conn() as conn:
        conn.execute(
            """
            INSERT INTO snapshot (id, payload, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
            """,
            (SNAPSHOT_ROW_ID, json.dumps(body.data), stamp),
        )

    logger.info(f"[SNAPSHOT] Stored snapshot updatedAt={stamp}")
    return SnapshotWriteResult(updated_at=stamp)
