"""Pydantic models for snapshot service requests and responses."""
from .snapshot import SnapshotEnvelope, SnapshotWrite, SnapshotWriteResult
from .metrics import MetricsEntryIn, MetricsRecord
from .reminders import ReminderStatus

__all__ = [
    "SnapshotEnvelope",
    "SnapshotWrite",
    "SnapshotWriteResult",
    "MetricsEntryIn",
    "MetricsRecord",
    "ReminderStatus",
]
