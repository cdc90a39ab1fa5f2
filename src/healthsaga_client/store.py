"""
Persistent key-value store for client state.

Each key is an independent JSON document stored in its own file under the
data directory, so a write to one key never touches another and there are
no cross-key transactions. Files are replaced atomically so a crash during
a write leaves the previous value readable.

Two write entry points exist:

- ``set`` persists a value and notifies observers. User actions go through
  it, which is how the sync engine learns that local state changed.
- ``commit`` persists a batch of staged values without notifying anyone.
  Only the sync engine uses it, to apply an incoming snapshot or to record
  its own bookkeeping.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .timeutil import Clock, local_now, local_date_key, utc_stamp

logger = logging.getLogger(__name__)

# Store keys
TODAY_KEY = "healthsaga-today"
METRICS_DRAFT_KEY = "healthsaga-metrics"
METRICS_HISTORY_KEY = "healthsaga-metrics-history"
REMINDER_TOGGLES_KEY = "healthsaga-reminders"
MINDFULNESS_KEY = "healthsaga-mindfulness"
SYNC_META_KEY = "healthsaga-sync-meta"
REMINDER_CACHE_KEY = "healthsaga-reminder-cache"

EXPORT_KEYS = [
    TODAY_KEY,
    METRICS_DRAFT_KEY,
    METRICS_HISTORY_KEY,
    REMINDER_TOGGLES_KEY,
    MINDFULNESS_KEY,
    SYNC_META_KEY,
]

ChangeObserver = Callable[[str], None]


class LocalStore:
    """Directory-backed JSON store, one file per key."""

    def __init__(self, data_dir: str | os.PathLike):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._observers: List[ChangeObserver] = []

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Read a key, returning ``default`` if missing or unreadable."""
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return default
        except (OSError, ValueError) as e:
            logger.warning(f"[STORE] Unreadable value for {key}, using default: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        """Persist a value and notify change observers."""
        self._write(key, value)
        for observer in list(self._observers):
            observer(key)

    def commit(self, values: Mapping[str, Any]) -> None:
        """Persist a batch of staged values without notifying observers."""
        for key, value in values.items():
            self._write(key, value)

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def subscribe(self, observer: ChangeObserver) -> Callable[[], None]:
        """Register a change observer. Returns a function that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{key}.", suffix=".tmp", dir=self.data_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def export_local_data(
    store: LocalStore,
    destination: Optional[str | os.PathLike] = None,
    clock: Clock = local_now,
) -> Path:
    """
    Write every client key to a single JSON export file.

    Args:
        store: Store to export
        destination: Target file or directory (defaults to the current directory)
        clock: Local clock used for the export stamp and default file name

    Returns:
        Path of the written export file
    """
    now = clock()
    payload: Dict[str, Any] = {
        "exportedAt": utc_stamp(now),
        "data": {key: store.get(key) for key in EXPORT_KEYS},
    }

    filename = f"healthsaga-local-export-{local_date_key(now)}.json"
    if destination is None:
        target = Path.cwd() / filename
    else:
        target = Path(destination)
        if target.is_dir():
            target = target / filename

    with open(target, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(f"[STORE] Exported {len(EXPORT_KEYS)} keys to {target}")
    return target
