"""
Synchronization Engine.

Reconciles the client's local records with the snapshot of record held by
the service. Conflicts resolve per whole snapshot: whichever side carries
the later ``updatedAt`` stamp wins and nothing is merged field by field.

Local records stay independent store keys; a snapshot is assembled from
them only when pushing and split back into them when applying. Applying
goes through ``LocalStore.commit``, which does not notify observers, so
imported data is never re-flagged as a local change.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .api import SnapshotApiClient, SyncError
from .daily_state import DailyStateManager
from .metrics_history import HISTORY_LIMIT, MetricsEntry
from .reminders import ReminderToggles
from .store import (
    LocalStore,
    METRICS_HISTORY_KEY,
    MINDFULNESS_KEY,
    REMINDER_TOGGLES_KEY,
    SYNC_META_KEY,
    TODAY_KEY,
)
from .timeutil import Clock, local_now, local_date_key, utc_stamp

logger = logging.getLogger(__name__)

# Store keys whose changes make the local snapshot newer
SNAPSHOT_KEYS = frozenset({TODAY_KEY, REMINDER_TOGGLES_KEY, MINDFULNESS_KEY, METRICS_HISTORY_KEY})


class SyncStatus(str, Enum):
    """State of the synchronization engine."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SyncMeta:
    """Logical stamp of the newest local change and of the last reconciliation."""

    updated_at: str = ""
    last_synced_at: str = ""

    def to_dict(self) -> dict:
        return {"updatedAt": self.updated_at, "lastSyncedAt": self.last_synced_at}

    @classmethod
    def from_dict(cls, data: Any) -> "SyncMeta":
        if not isinstance(data, dict):
            return cls()
        return cls(
            updated_at=str(data.get("updatedAt") or ""),
            last_synced_at=str(data.get("lastSyncedAt") or ""),
        )


class SyncEngine:
    """
    Local-first sync against the snapshot service.

    Every observed change to a snapshot key advances ``updatedAt``. A sync
    request made while another is in flight is ignored.
    """

    def __init__(
        self,
        store: LocalStore,
        api: SnapshotApiClient,
        clock: Clock = local_now,
    ):
        self.store = store
        self.api = api
        self.clock = clock
        self.daily = DailyStateManager(store, clock)
        self.toggles = ReminderToggles(store)

        self.status = SyncStatus.IDLE
        self.last_error = ""

        self._unsubscribe = store.subscribe(self._on_local_change)

    def close(self) -> None:
        """Stop observing local changes."""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Local bookkeeping
    # ------------------------------------------------------------------

    def meta(self) -> SyncMeta:
        return SyncMeta.from_dict(self.store.get(SYNC_META_KEY))

    def _save_meta(self, meta: SyncMeta) -> None:
        self.store.commit({SYNC_META_KEY: meta.to_dict()})

    def _on_local_change(self, key: str) -> None:
        if key in SNAPSHOT_KEYS:
            self.touch()

    def touch(self) -> str:
        """Advance ``updatedAt`` to now. The stamp never moves backward."""
        meta = self.meta()
        stamp = utc_stamp(self.clock())
        if stamp > meta.updated_at:
            meta = SyncMeta(updated_at=stamp, last_synced_at=meta.last_synced_at)
            self._save_meta(meta)
        return meta.updated_at

    @property
    def status_message(self) -> str:
        """Operator-facing description of the current status."""
        if self.status == SyncStatus.SYNCING:
            return "Syncing"
        if self.status == SyncStatus.ERROR:
            return f"Sync issue: {self.last_error}" if self.last_error else "Sync issue"
        if self.status == SyncStatus.SUCCESS:
            last = self.meta().last_synced_at
            return f"Last synced {last}" if last else "Sync complete"
        return "Local"

    # ------------------------------------------------------------------
    # Snapshot assembly and apply
    # ------------------------------------------------------------------

    def build_snapshot(self) -> Dict[str, Any]:
        """Compose the current local records into a snapshot payload."""
        history = self.store.get(METRICS_HISTORY_KEY, [])
        return {
            "today": self.daily.load().to_dict(),
            "reminderToggles": self.toggles.items(),
            "mindfulnessState": self.store.get(MINDFULNESS_KEY),
            "metricsHistory": history if isinstance(history, list) else [],
        }

    def stage_snapshot(
        self, data: Dict[str, Any], updated_at: str, synced_at: str
    ) -> Dict[str, Any]:
        """
        Split an incoming snapshot into per-key values ready to commit.

        The incoming daily record is only taken if it is for today's date;
        otherwise the local record for today is left as it is.
        """
        staged: Dict[str, Any] = {}
        today = data.get("today")
        today_key = local_date_key(self.clock())
        if isinstance(today, dict) and today.get("date") == today_key:
            staged[TODAY_KEY] = today
        elif today is not None:
            logger.info(
                f"[SYNC] Keeping local record for {today_key}, "
                f"remote record is for {today.get('date') if isinstance(today, dict) else None}"
            )

        toggles = data.get("reminderToggles")
        if isinstance(toggles, list):
            staged[REMINDER_TOGGLES_KEY] = toggles

        history = data.get("metricsHistory")
        if isinstance(history, list):
            staged[METRICS_HISTORY_KEY] = [e for e in history if isinstance(e, dict)][:HISTORY_LIMIT]

        mindfulness = data.get("mindfulnessState")
        if isinstance(mindfulness, dict):
            staged[MINDFULNESS_KEY] = mindfulness

        staged[SYNC_META_KEY] = SyncMeta(updated_at=updated_at, last_synced_at=synced_at).to_dict()
        return staged

    def apply_snapshot(self, data: Dict[str, Any], updated_at: str, synced_at: str) -> None:
        """Replace local records with an incoming snapshot in one commit."""
        self.store.commit(self.stage_snapshot(data, updated_at, synced_at))
        logger.info(f"[SYNC] Applied remote snapshot updatedAt={updated_at}")

    async def push(self) -> str:
        """Upload the local snapshot and record the reconciliation."""
        updated_at = self.meta().updated_at or utc_stamp(self.clock())
        await self.api.post_snapshot(updated_at, self.build_snapshot())

        # Local changes made while the upload was in flight keep their newer stamp
        current = self.meta()
        self._save_meta(
            SyncMeta(
                updated_at=max(current.updated_at, updated_at),
                last_synced_at=utc_stamp(self.clock()),
            )
        )
        logger.info(f"[SYNC] Pushed local snapshot updatedAt={updated_at}")
        return updated_at

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def sync(self) -> SyncStatus:
        """
        Reconcile with the service.

        Returns:
            The resulting status; ``SYNCING`` if another sync was already running
        """
        if self.status == SyncStatus.SYNCING:
            logger.info("[SYNC] Sync already in progress, ignoring request")
            return self.status

        self.status = SyncStatus.SYNCING
        self.last_error = ""

        try:
            remote = await self.api.get_snapshot()
            local = self.meta()

            if not remote.found or remote.data is None:
                logger.info("[SYNC] Remote is empty, pushing local snapshot")
                await self.push()
            elif not local.updated_at and remote.updated_at:
                # First sync on this device: the remote copy is authoritative
                self.apply_snapshot(remote.data, remote.updated_at, remote.updated_at)
            elif remote.updated_at > local.updated_at:
                self.apply_snapshot(remote.data, remote.updated_at, utc_stamp(self.clock()))
            else:
                await self.push()

            self.status = SyncStatus.SUCCESS
        except SyncError as e:
            self.status = SyncStatus.ERROR
            self.last_error = str(e)
            logger.error(f"[SYNC] Sync failed: {e}")
        except Exception as e:
            self.status = SyncStatus.ERROR
            self.last_error = str(e) or type(e).__name__
            logger.exception(f"[SYNC] Unexpected sync failure: {e}")

        return self.status

    async def push_metric(self, entry: MetricsEntry) -> bool:
        """Best-effort append to the remote metrics log. Never raises on transport failure."""
        try:
            await self.api.post_metrics(entry.to_dict())
            return True
        except SyncError as e:
            logger.warning(f"[SYNC] Metric push failed, kept locally: {e}")
            return False
