"""Wiring of the client components around one local store."""

import random
from typing import Optional, Sequence

import httpx

from .api import SnapshotApiClient
from .config import ClientSettings, get_client_settings
from .daily_state import DailyStateManager
from .metrics_history import MetricsHistory, MetricsRecorder
from .mindfulness import MeditationExercise, MindfulnessSequencer
from .reminders import ReminderPoller, ReminderToggles
from .store import LocalStore
from .sync import SyncEngine
from .timeutil import Clock, local_now


class HealthSagaClient:
    """All client components sharing one store, clock and service connection."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        clock: Clock = local_now,
        rng: Optional[random.Random] = None,
        exercises: Optional[Sequence[MeditationExercise]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_client_settings()
        self.store = LocalStore(self.settings.data_dir)
        self.api = SnapshotApiClient(
            self.settings.server_url,
            timeout=self.settings.request_timeout,
            transport=transport,
        )

        self.daily = DailyStateManager(self.store, clock)
        self.mindfulness = MindfulnessSequencer(self.store, exercises, clock, rng)
        self.history = MetricsHistory(self.store)
        self.toggles = ReminderToggles(self.store)
        self.sync_engine = SyncEngine(self.store, self.api, clock)
        self.recorder = MetricsRecorder(
            self.store, self.history, push=self.sync_engine.push_metric, clock=clock
        )
        self.reminders = ReminderPoller(
            self.store, self.api, clock, poll_minutes=self.settings.reminder_poll_minutes
        )

    def close(self) -> None:
        self.sync_engine.close()
