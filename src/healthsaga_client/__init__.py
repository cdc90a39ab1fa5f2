"""
HealthSaga client.

Local-first daily wellness state with whole-snapshot sync against the
HealthSaga snapshot service.
"""

from .client import HealthSagaClient
from .daily_state import DailyRecord, DailyStateManager
from .metrics_history import MetricsEntry, MetricsHistory, MetricsRecorder, TrendStats, trend_stats
from .mindfulness import MindfulnessSequencer, MindfulnessState
from .store import LocalStore, export_local_data
from .sync import SyncEngine, SyncMeta, SyncStatus

__all__ = [
    "HealthSagaClient",
    "DailyRecord",
    "DailyStateManager",
    "MetricsEntry",
    "MetricsHistory",
    "MetricsRecorder",
    "TrendStats",
    "trend_stats",
    "MindfulnessSequencer",
    "MindfulnessState",
    "LocalStore",
    "export_local_data",
    "SyncEngine",
    "SyncMeta",
    "SyncStatus",
]
