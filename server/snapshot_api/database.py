"""SQLite persistence for the snapshot row, metrics log and reminder definitions."""
import os
import sqlite3
from contextlib import contextmanager
from typing import Generator
import logging

from .config import get_settings

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshot (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    recorded_at TEXT NOT NULL,
    systolic TEXT,
    diastolic TEXT,
    heart_rate TEXT,
    weight TEXT,
    respiratory_rate TEXT
);

CREATE TABLE IF NOT EXISTS reminders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    time TEXT NOT NULL,
    enabled_by_default INTEGER DEFAULT 1,
    description TEXT
);
"""

# (type, time, enabled_by_default, description)
DEFAULT_REMINDERS = [
    ("walk", "10:00", 1, "Morning walk"),
    ("walk", "14:00", 1, "Afternoon walk"),
    ("walk", "16:30", 1, "Evening walk"),
    ("hydration", "08:00", 1, "Drink water"),
    ("hydration", "10:00", 1, "Drink water"),
    ("hydration", "12:00", 1, "Drink water"),
    ("hydration", "14:00", 1, "Drink water"),
    ("hydration", "16:00", 1, "Drink water"),
    ("hydration", "18:00", 1, "Drink water"),
    ("metrics", "20:00", 1, "Record health metrics"),
    ("mindfulness", "06:00", 1, "Morning mindfulness"),
    ("mindfulness", "21:00", 1, "Evening mindfulness"),
]


class DatabaseManager:
    """
    SQLite database manager for the snapshot service.

    The file is opened in WAL mode so an interrupted write leaves the
    previously committed snapshot row intact. The schema is created and
    the reminder table seeded the first time a connection is made to a
    given path.
    """

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self._initialized_path: str | None = None

    @contextmanager
    def get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a connection to the snapshot database, initializing it if needed."""
        db_path = self.settings.db_path
        if self._initialized_path != db_path:
            self.initialize(db_path)
        yield from self._connect(db_path)

    def initialize(self, db_path: str) -> None:
        """Create tables and seed reminder definitions if the table is empty."""
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        conn = sqlite3.connect(db_path)
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)

            count = conn.execute("SELECT COUNT(*) FROM reminders").fetchone()[0]
            if count == 0:
                conn.executemany(
                    """
                    INSERT INTO reminders (type, time, enabled_by_default, description)
                    VALUES (?, ?, ?, ?)
                    """,
                    DEFAULT_REMINDERS,
                )
                log.info(f"[SNAPSHOT DB] Seeded {len(DEFAULT_REMINDERS)} default reminders")
            conn.commit()
        finally:
            conn.close()

        self._initialized_path = db_path
        log.info(f"[SNAPSHOT DB] Ready at {db_path}")

    def _connect(self, db_path: str) -> Generator[sqlite3.Connection, None, None]:
        """
        Open a connection, commit on success and roll back on error.
        """
        conn = sqlite3.connect(db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row  # Enable dict-like row access
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# Singleton instance
db_manager = DatabaseManager()
