"""
Tests for the Synchronization Engine.

End-to-end cases drive the real snapshot service in-process through
httpx.ASGITransport; failure cases use httpx.MockTransport.

Usage:
    pytest tests/test_sync_engine.py -v
"""
import asyncio
import json
import httpx
import pytest

from healthsaga_client.daily_state import DailyRecord, DailyStateManager
from healthsaga_client.metrics_history import MetricsEntry
from healthsaga_client.store import (
    METRICS_HISTORY_KEY,
    MINDFULNESS_KEY,
    REMINDER_TOGGLES_KEY,
    SYNC_META_KEY,
    TODAY_KEY,
)
from healthsaga_client.sync import SyncEngine, SyncMeta, SyncStatus


REMOTE_STAMP = "2024-01-02T10:00:00Z"
OLD_STAMP = "2023-12-01T00:00:00.000Z"


def remote_snapshot(today_date="2024-01-02"):
    return {
        "today": DailyRecord(date=today_date, hydration_ounces=40, meditation_count=2).to_dict(),
        "reminderToggles": [{"time": "7:00 AM", "label": "Sunrise walk", "enabled": False}],
        "mindfulnessState": {"date": today_date, "slot": "morning", "remainingIds": [], "currentId": "m1"},
        "metricsHistory": [{"recordedAt": "2024-01-02T07:00:00.000Z", "weight": "70"}],
    }


def seed_local(store, hydration=24):
    """Write local records without going through change observers."""
    store.commit({TODAY_KEY: DailyRecord(date="2024-01-02", hydration_ounces=hydration).to_dict()})


def set_meta(store, updated_at="", last_synced_at=""):
    store.commit({SYNC_META_KEY: SyncMeta(updated_at, last_synced_at).to_dict()})


def local_values(store):
    keys = [TODAY_KEY, REMINDER_TOGGLES_KEY, MINDFULNESS_KEY, METRICS_HISTORY_KEY, SYNC_META_KEY]
    return {key: store.get(key) for key in keys}


# ============================================================================
# End-to-End Against the Snapshot Service
# ============================================================================


class TestSyncEndToEnd:
    """Full protocol against the in-process service."""

    @pytest.mark.asyncio
    async def test_empty_remote_receives_local_snapshot(self, store, clock, asgi_api):
        seed_local(store, hydration=24)
        engine = SyncEngine(store, asgi_api, clock)

        status = await engine.sync()

        assert status == SyncStatus.SUCCESS
        remote = await asgi_api.get_snapshot()
        assert remote.data == engine.build_snapshot()
        assert remote.data["today"]["hydrationOunces"] == 24
        meta = engine.meta()
        assert meta.last_synced_at
        assert remote.updated_at == meta.updated_at

    @pytest.mark.asyncio
    async def test_first_run_adopts_remote_verbatim(self, store, clock, asgi_api):
        await asgi_api.post_snapshot(REMOTE_STAMP, remote_snapshot())
        engine = SyncEngine(store, asgi_api, clock)

        status = await engine.sync()

        assert status == SyncStatus.SUCCESS
        assert engine.build_snapshot() == remote_snapshot()
        assert engine.meta() == SyncMeta(updated_at=REMOTE_STAMP, last_synced_at=REMOTE_STAMP)

    @pytest.mark.asyncio
    async def test_newer_remote_replaces_local(self, store, clock, asgi_api):
        await asgi_api.post_snapshot(REMOTE_STAMP, remote_snapshot())
        seed_local(store, hydration=8)
        set_meta(store, updated_at="2024-01-01T09:00:00Z")
        engine = SyncEngine(store, asgi_api, clock)

        await engine.sync()

        assert engine.daily.load().hydration_ounces == 40
        assert engine.toggles.items() == remote_snapshot()["reminderToggles"]
        assert store.get(METRICS_HISTORY_KEY) == remote_snapshot()["metricsHistory"]
        assert engine.meta().updated_at == REMOTE_STAMP
        assert engine.meta().last_synced_at

    @pytest.mark.asyncio
    async def test_newer_remote_for_another_day_keeps_local_today(self, store, clock, asgi_api):
        await asgi_api.post_snapshot(REMOTE_STAMP, remote_snapshot(today_date="2024-01-01"))
        seed_local(store, hydration=16)
        set_meta(store, updated_at="2024-01-01T09:00:00Z")
        engine = SyncEngine(store, asgi_api, clock)

        await engine.sync()

        assert engine.daily.load().hydration_ounces == 16
        assert engine.toggles.items() == remote_snapshot()["reminderToggles"]
        assert engine.meta().updated_at == REMOTE_STAMP

    @pytest.mark.asyncio
    async def test_newer_local_is_pushed(self, store, clock, asgi_api):
        await asgi_api.post_snapshot(OLD_STAMP, remote_snapshot())
        engine = SyncEngine(store, asgi_api, clock)
        engine.daily.add_hydration()

        status = await engine.sync()

        assert status == SyncStatus.SUCCESS
        remote = await asgi_api.get_snapshot()
        assert remote.data == engine.build_snapshot()
        assert remote.updated_at == engine.meta().updated_at
        assert engine.daily.load().hydration_ounces == 8

    @pytest.mark.asyncio
    async def test_second_device_picks_up_changes(self, tmp_path, clock, asgi_api):
        from healthsaga_client.store import LocalStore

        phone = SyncEngine(LocalStore(tmp_path / "phone"), asgi_api, clock)
        phone.daily.increment_meditation()
        await phone.sync()

        laptop = SyncEngine(LocalStore(tmp_path / "laptop"), asgi_api, clock)
        await laptop.sync()

        assert laptop.daily.load().meditation_count == 1
        assert laptop.meta().updated_at == phone.meta().updated_at

    @pytest.mark.asyncio
    async def test_metric_push_appends_remote_log(self, store, clock, asgi_api, api_client):
        engine = SyncEngine(store, asgi_api, clock)

        pushed = await engine.push_metric(
            MetricsEntry(recorded_at="2024-01-02T08:00:00.000Z", heart_rate="64")
        )

        assert pushed is True
        rows = api_client.get("/api/metrics").json()
        assert len(rows) == 1
        assert rows[0]["heartRate"] == "64"
        assert rows[0]["recordedAt"] == "2024-01-02T08:00:00.000Z"


# ============================================================================
# Local Change Tracking
# ============================================================================


class TestChangeTracking:
    """updatedAt bookkeeping and observer suppression on apply."""

    def test_local_mutation_advances_updated_at(self, store, clock, mock_api):
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(500)), clock)
        assert engine.meta().updated_at == ""

        engine.daily.add_hydration()
        first = engine.meta().updated_at
        clock.advance(minutes=1)
        engine.toggles.toggle(0)

        assert first
        assert engine.meta().updated_at > first

    def test_non_snapshot_keys_do_not_advance(self, store, clock, mock_api):
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(500)), clock)

        store.set("healthsaga-metrics", {"weight": "7"})

        assert engine.meta().updated_at == ""

    def test_updated_at_never_moves_backward(self, store, clock, mock_api):
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(500)), clock)
        set_meta(store, updated_at="2999-01-01T00:00:00.000Z")

        engine.daily.add_hydration()

        assert engine.meta().updated_at == "2999-01-01T00:00:00.000Z"

    def test_apply_does_not_mark_local_change(self, store, clock, mock_api):
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(500)), clock)
        seen = []
        store.subscribe(seen.append)

        engine.apply_snapshot(remote_snapshot(), REMOTE_STAMP, REMOTE_STAMP)

        assert seen == []
        assert engine.meta().updated_at == REMOTE_STAMP

    def test_close_stops_tracking(self, store, clock, mock_api):
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(500)), clock)
        engine.close()

        DailyStateManager(store, clock).add_hydration()

        assert engine.meta().updated_at == ""


# ============================================================================
# Failure Handling
# ============================================================================


class TestSyncFailures:
    """Transport failures leave local data untouched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("read timed out"),
    ])
    async def test_transport_failure_sets_error(self, store, clock, mock_api, failure):
        def handler(request):
            raise failure

        seed_local(store)
        set_meta(store, updated_at=OLD_STAMP)
        before = local_values(store)
        engine = SyncEngine(store, mock_api(handler), clock)

        status = await engine.sync()

        assert status == SyncStatus.ERROR
        assert engine.last_error
        assert engine.status_message.startswith("Sync issue")
        assert local_values(store) == before

    @pytest.mark.asyncio
    async def test_server_error_sets_error(self, store, clock, mock_api):
        seed_local(store)
        before = local_values(store)
        engine = SyncEngine(store, mock_api(lambda r: httpx.Response(503)), clock)

        assert await engine.sync() == SyncStatus.ERROR
        assert "503" in engine.last_error
        assert local_values(store) == before

    @pytest.mark.asyncio
    async def test_failed_push_keeps_meta(self, store, clock, mock_api):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(404)
            return httpx.Response(500)

        set_meta(store, updated_at=OLD_STAMP)
        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.sync() == SyncStatus.ERROR
        assert engine.meta() == SyncMeta(updated_at=OLD_STAMP)

    @pytest.mark.asyncio
    async def test_error_then_success(self, store, clock, mock_api):
        responses = [httpx.ConnectError("down")]

        def handler(request):
            if responses:
                raise responses.pop()
            if request.method == "GET":
                return httpx.Response(200, json={"updatedAt": "", "data": None})
            return httpx.Response(200, json={"updatedAt": json.loads(request.content)["updatedAt"]})

        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.sync() == SyncStatus.ERROR
        assert await engine.sync() == SyncStatus.SUCCESS
        assert engine.last_error == ""

    @pytest.mark.asyncio
    async def test_local_write_failure_does_not_latch_syncing(self, store, clock, asgi_api):
        await asgi_api.post_snapshot(REMOTE_STAMP, remote_snapshot())
        set_meta(store, updated_at=OLD_STAMP)
        engine = SyncEngine(store, asgi_api, clock)
        real_commit = store.commit

        def failing_commit(values):
            raise OSError("disk full")

        store.commit = failing_commit
        assert await engine.sync() == SyncStatus.ERROR
        assert "disk full" in engine.last_error

        store.commit = real_commit
        assert await engine.sync() == SyncStatus.SUCCESS
        assert engine.meta().updated_at == REMOTE_STAMP
        assert DailyStateManager(store, clock).load().hydration_ounces == 40

    @pytest.mark.asyncio
    async def test_metric_push_failure_is_swallowed(self, store, clock, mock_api):
        def handler(request):
            raise httpx.ConnectError("offline")

        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.push_metric(MetricsEntry(recorded_at=OLD_STAMP, weight="70")) is False


# ============================================================================
# Protocol Edge Cases
# ============================================================================


class RecordingHandler:
    """MockTransport handler serving a fixed GET response and recording POSTs."""

    def __init__(self, get_response):
        self.get_response = get_response
        self.posts = []
        self.gets = 0

    async def __call__(self, request):
        await asyncio.sleep(0)
        if request.method == "GET":
            self.gets += 1
            return self.get_response()
        body = json.loads(request.content)
        self.posts.append(body)
        return httpx.Response(200, json={"updatedAt": body["updatedAt"]})


class TestProtocolEdges:

    @pytest.mark.asyncio
    async def test_not_found_pushes_local(self, store, clock, mock_api):
        handler = RecordingHandler(lambda: httpx.Response(404))
        seed_local(store, hydration=24)
        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.sync() == SyncStatus.SUCCESS
        assert len(handler.posts) == 1
        assert handler.posts[0]["data"]["today"]["hydrationOunces"] == 24
        assert handler.posts[0]["updatedAt"] == engine.meta().updated_at

    @pytest.mark.asyncio
    async def test_malformed_remote_json_pushes_local(self, store, clock, mock_api):
        handler = RecordingHandler(lambda: httpx.Response(200, content=b"{not json"))
        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.sync() == SyncStatus.SUCCESS
        assert len(handler.posts) == 1

    @pytest.mark.asyncio
    async def test_remote_without_stamp_is_not_newer(self, store, clock, mock_api):
        handler = RecordingHandler(
            lambda: httpx.Response(200, json={"updatedAt": "", "data": remote_snapshot()})
        )
        seed_local(store, hydration=8)
        set_meta(store, updated_at=OLD_STAMP)
        engine = SyncEngine(store, mock_api(handler), clock)

        assert await engine.sync() == SyncStatus.SUCCESS
        assert len(handler.posts) == 1
        assert engine.daily.load().hydration_ounces == 8

    @pytest.mark.asyncio
    async def test_equal_stamps_push_local(self, store, clock, mock_api):
        handler = RecordingHandler(
            lambda: httpx.Response(200, json={"updatedAt": OLD_STAMP, "data": remote_snapshot()})
        )
        set_meta(store, updated_at=OLD_STAMP)
        engine = SyncEngine(store, mock_api(handler), clock)

        await engine.sync()

        assert len(handler.posts) == 1
        assert handler.posts[0]["updatedAt"] == OLD_STAMP

    @pytest.mark.asyncio
    async def test_concurrent_sync_requests_are_ignored(self, store, clock, mock_api):
        handler = RecordingHandler(lambda: httpx.Response(404))
        engine = SyncEngine(store, mock_api(handler), clock)

        results = await asyncio.gather(engine.sync(), engine.sync())

        assert handler.gets == 1
        assert len(handler.posts) == 1
        assert SyncStatus.SYNCING in results
        assert engine.status == SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_change_during_push_keeps_newer_stamp(self, store, clock, mock_api):
        engine = SyncEngine(store, None, clock)

        async def handler(request):
            if request.method == "GET":
                return httpx.Response(404)
            clock.advance(minutes=5)
            engine.daily.add_hydration()
            body = json.loads(request.content)
            return httpx.Response(200, json={"updatedAt": body["updatedAt"]})

        engine.api = mock_api(handler)
        engine.daily.add_hydration()
        pushed_stamp = engine.meta().updated_at

        await engine.sync()

        assert engine.meta().updated_at > pushed_stamp
        assert engine.meta().last_synced_at
