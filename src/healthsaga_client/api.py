"""
HTTP client for the snapshot service.

Wraps ``httpx.AsyncClient`` with a bounded timeout. Transport failures,
timeouts and non-2xx responses surface as ``SyncError``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """A request to the snapshot service failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RemoteSnapshot:
    """Snapshot of record as fetched. ``data`` is None when there is nothing usable."""

    updated_at: str
    data: Optional[Dict[str, Any]]
    found: bool = True


class SnapshotApiClient:
    """Async client for the ``/api`` endpoints of the snapshot service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise SyncError(f"{method} {path} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SyncError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _check(response: httpx.Response, what: str) -> None:
        if not response.is_success:
            raise SyncError(
                f"{what} failed ({response.status_code})", status_code=response.status_code
            )

    async def get_snapshot(self) -> RemoteSnapshot:
        """
        Fetch the snapshot of record.

        A 404 or an unparsable body is reported as an empty remote rather
        than an error.
        """
        response = await self._request("GET", "/api/snapshot")
        if response.status_code == 404:
            return RemoteSnapshot(updated_at="", data=None, found=False)
        self._check(response, "Snapshot fetch")

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"[SYNC] Remote snapshot is not valid JSON: {e}")
            return RemoteSnapshot(updated_at="", data=None)

        if not isinstance(payload, dict):
            return RemoteSnapshot(updated_at="", data=None)

        updated_at = payload.get("updatedAt")
        data = payload.get("data")
        return RemoteSnapshot(
            updated_at=updated_at if isinstance(updated_at, str) else "",
            data=data if isinstance(data, dict) else None,
        )

    async def post_snapshot(self, updated_at: str, data: Dict[str, Any]) -> str:
        """Replace the snapshot of record. Returns the stamp it was stored under."""
        response = await self._request(
            "POST", "/api/snapshot", json={"updatedAt": updated_at, "data": data}
        )
        self._check(response, "Snapshot push")
        try:
            return response.json().get("updatedAt") or updated_at
        except (ValueError, AttributeError):
            return updated_at

    async def post_metrics(self, entry: Dict[str, Any]) -> None:
        response = await self._request("POST", "/api/metrics", json=entry)
        self._check(response, "Metrics push")

    async def get_reminders(self, date: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", "/api/reminders", params={"date": date})
        self._check(response, "Reminder fetch")
        try:
            payload = response.json()
        except ValueError as e:
            raise SyncError(f"Reminder response is not valid JSON: {e}") from e
        if not isinstance(payload, list):
            raise SyncError("Reminder response is not a list")
        return payload
