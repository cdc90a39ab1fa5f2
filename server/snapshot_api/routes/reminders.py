"""Reminder API routes."""
from datetime import datetime

from fastapi import APIRouter, Query

from ..models.reminders import ReminderStatus
from ..database import db_manager
from ..services.reminder_schedule import (
    ReminderDefinition,
    completion_for_date,
    compute_reminder_status,
)
from .snapshot import load_snapshot_payload

router = APIRouter(prefix="/api", tags=["Reminders"])


def _now() -> datetime:
    """Local wall-clock time used for due computation."""
    return datetime.now()


def _row_to_definition(row) -> ReminderDefinition:
    """Convert SQLite row to ReminderDefinition."""
    return ReminderDefinition(
        id=row["id"],
        type=row["type"],
        time=row["time"],
        enabled_by_default=bool(row["enabled_by_default"]),
        description=row["description"],
    )


@router.get("/reminders", response_model=list[ReminderStatus])
async def get_reminders(
    date: str = Query(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Client calendar date (YYYY-MM-DD)",
    ),
):
    """
    Get seeded reminders ordered by time, with due and completed flags.
    Completion comes from the stored snapshot's record for ``date``.
    """
    with db_manager.get_conn() as conn:
        rows = conn.execute(
            "SELECT id, type, time, enabled_by_default, description "
            "FROM reminders ORDER BY time ASC, id ASC"
        ).fetchall()
        _, snapshot = load_snapshot_payload(conn)

    reminders = [_row_to_definition(row) for row in rows]
    completion = completion_for_date(snapshot, date)
    return compute_reminder_status(reminders, _now(), completion)
