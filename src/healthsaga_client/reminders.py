"""
Reminder toggles and reminder polling.

Toggles are the user's on/off choices for walk reminders and travel with
the snapshot. Due/completed status is computed by the service on request;
the poller fetches it on first use and whenever the cached result is older
than the poll interval, and falls back to the cached result when offline.
"""

import copy
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from .api import SnapshotApiClient, SyncError
from .store import LocalStore, REMINDER_CACHE_KEY, REMINDER_TOGGLES_KEY
from .timeutil import Clock, local_now, local_date_key, parse_stamp, utc_stamp

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_TOGGLES = [
    {"time": "10:00 AM", "label": "Morning walk", "enabled": True},
    {"time": "2:00 PM", "label": "Afternoon walk", "enabled": True},
    {"time": "4:30 PM", "label": "Evening walk", "enabled": True},
]


class ReminderToggles:
    """Reminder on/off list persisted under its own store key."""

    def __init__(self, store: LocalStore):
        self.store = store

    def items(self) -> List[Dict[str, Any]]:
        stored = self.store.get(REMINDER_TOGGLES_KEY)
        if isinstance(stored, list):
            return stored
        return copy.deepcopy(DEFAULT_REMINDER_TOGGLES)

    def toggle(self, index: int) -> List[Dict[str, Any]]:
        items = self.items()
        if not 0 <= index < len(items):
            raise IndexError(f"No reminder at index {index}")
        items = [
            {**item, "enabled": not item.get("enabled", False)} if i == index else item
            for i, item in enumerate(items)
        ]
        self.store.set(REMINDER_TOGGLES_KEY, items)
        return items


class ReminderPoller:
    """Fetches reminder status for today and caches the last good result."""

    def __init__(
        self,
        store: LocalStore,
        api: SnapshotApiClient,
        clock: Clock = local_now,
        poll_minutes: int = 60,
    ):
        self.store = store
        self.api = api
        self.clock = clock
        self.poll_interval = timedelta(minutes=poll_minutes)
        self.last_error: Optional[str] = None

    def cached(self) -> List[Dict[str, Any]]:
        """Last successfully fetched reminders, regardless of age."""
        cache = self.store.get(REMINDER_CACHE_KEY)
        if isinstance(cache, dict) and isinstance(cache.get("reminders"), list):
            return cache["reminders"]
        return []

    def is_stale(self) -> bool:
        cache = self.store.get(REMINDER_CACHE_KEY)
        if not isinstance(cache, dict):
            return True
        now = self.clock()
        if cache.get("date") != local_date_key(now):
            return True
        fetched_at = parse_stamp(cache.get("fetchedAt", ""))
        if fetched_at is None:
            return True
        return now.astimezone() - fetched_at >= self.poll_interval

    async def refresh(self, force: bool = False) -> List[Dict[str, Any]]:
        """
        Return reminders for today, fetching if the cache is stale or ``force``.

        Transport failures are logged and the cached result is returned.
        """
        if not force and not self.is_stale():
            return self.cached()

        now = self.clock()
        today = local_date_key(now)
        try:
            reminders = await self.api.get_reminders(today)
        except SyncError as e:
            self.last_error = str(e)
            logger.warning(f"[REMINDERS] Refresh failed, using cached result: {e}")
            return self.cached()

        self.last_error = None
        self.store.commit(
            {
                REMINDER_CACHE_KEY: {
                    "date": today,
                    "fetchedAt": utc_stamp(now),
                    "reminders": reminders,
                }
            }
        )
        logger.info(f"[REMINDERS] Fetched {len(reminders)} reminders for {today}")
        return reminders

    def due(self) -> List[Dict[str, Any]]:
        """Cached reminders that are due and not yet completed."""
        return [r for r in self.cached() if r.get("due") and not r.get("completed")]
