"""
Pytest fixtures for HealthSaga tests.
"""
import sys
import random
import pytest
from datetime import datetime, timedelta
from pathlib import Path
from dotenv import load_dotenv

# Ensure src/ is on sys.path so tests can import healthsaga_client.
ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# Load environment variables
load_dotenv()

import httpx
from fastapi.testclient import TestClient

from healthsaga_client.api import SnapshotApiClient
from healthsaga_client.mindfulness import MeditationExercise
from healthsaga_client.store import LocalStore
from server.snapshot_api.config import Settings
from server.snapshot_api.database import db_manager
from server.snapshot_api.main import app


class FakeClock:
    """Settable local wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """Local clock fixed at 2024-01-02 09:30."""
    return FakeClock(datetime(2024, 1, 2, 9, 30))


@pytest.fixture
def store(tmp_path):
    """Empty local store in a temporary directory."""
    return LocalStore(tmp_path / "client")


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def exercises():
    """Small catalog covering both slots and the anytime tag."""
    return [
        MeditationExercise(id="m1", name="Morning One", time_of_day=("morning",)),
        MeditationExercise(id="m2", name="Morning Two", time_of_day=("morning",)),
        MeditationExercise(id="e1", name="Evening One", time_of_day=("evening",)),
        MeditationExercise(id="e2", name="Evening Two", time_of_day=("evening",)),
        MeditationExercise(id="a1", name="Anytime", time_of_day=("anytime",)),
    ]


# ============================================================================
# Snapshot Service Fixtures
# ============================================================================

@pytest.fixture
def server_db(tmp_path, monkeypatch):
    """Point the snapshot service at a fresh SQLite file."""
    settings = Settings(db_path=str(tmp_path / "server" / "healthsaga.db"))
    monkeypatch.setattr(db_manager, "settings", settings)
    return settings


@pytest.fixture
def api_client(server_db):
    """HTTP test client for the snapshot service."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def asgi_api(server_db):
    """Snapshot API client that talks to the in-process service."""
    return SnapshotApiClient(
        "http://testserver", transport=httpx.ASGITransport(app=app)
    )


@pytest.fixture
def mock_api():
    """Factory for snapshot API clients whose requests are answered by a handler."""
    def _make(handler) -> SnapshotApiClient:
        return SnapshotApiClient("http://testserver", transport=httpx.MockTransport(handler))
    return _make
