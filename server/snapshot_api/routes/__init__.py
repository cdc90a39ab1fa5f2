"""API route modules."""
from .snapshot import router as snapshot_router
from .metrics import router as metrics_router
from .reminders import router as reminders_router

__all__ = [
    "snapshot_router",
    "metrics_router",
    "reminders_router",
]
