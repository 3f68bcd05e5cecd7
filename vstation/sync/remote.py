"""
Remote persistence API.

The engine only sees the RemoteStore protocol. Every adapter raises
SyncFailure when the store is unreachable or rejects a call; callers
decide whether to retry.

Usage:
    async with HttpRemoteStore(RemoteApiConfig(base_url="https://station.example")) as remote:
        snapshot = await remote.fetch_snapshot("u1", "hazwaste-lab")
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger
from pydantic import BaseModel

from vstation.core.errors import SyncFailure
from vstation.core.models import BehaviorEvent, ProgressSnapshot


@runtime_checkable
class RemoteStore(Protocol):
    """Remote side of progress sync and behavior logging."""

    async def fetch_snapshot(self, user_id: str, workstation_id: str) -> ProgressSnapshot | None: ...

    async def push_snapshot(self, snapshot: ProgressSnapshot) -> None: ...

    async def append_behavior_events(self, events: list[BehaviorEvent]) -> None: ...


def idempotency_key(snapshot: ProgressSnapshot) -> str:
    """Same snapshot version, same key; retried pushes are safe."""
    return f"{snapshot.user_id}:{snapshot.workstation_id}:{snapshot.updated_at}"


class RemoteApiConfig(BaseModel):
    """Configuration for the HTTP remote store."""

    base_url: str = "http://localhost:8000"
    api_key: str | None = None
    timeout_seconds: float = 10.0

    # Endpoints
    progress_endpoint: str = "/api/v1/progress"
    behavior_logs_endpoint: str = "/api/v1/behavior-logs"

    @classmethod
    def from_settings(cls, settings: Any) -> "RemoteApiConfig":
        return cls(
            base_url=settings.remote_api_base_url,
            api_key=settings.remote_api_key or None,
            timeout_seconds=settings.remote_timeout_seconds,
        )


class HttpRemoteStore:
    """RemoteStore over the platform's REST API."""

    def __init__(self, config: RemoteApiConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or RemoteApiConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpRemoteStore":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["X-API-Key"] = self.config.api_key

            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._ensure_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Remote store unreachable ({method} {url}): {e}")
            raise SyncFailure(f"Remote store unreachable: {e}") from e

    # =========================================================================
    # Progress
    # =========================================================================

    async def fetch_snapshot(self, user_id: str, workstation_id: str) -> ProgressSnapshot | None:
        url = f"{self.config.progress_endpoint}/{user_id}/{workstation_id}"
        response = await self._request("GET", url)

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise SyncFailure(f"Fetch rejected: HTTP {response.status_code}", response.status_code)
        return ProgressSnapshot.model_validate(response.json())

    async def push_snapshot(self, snapshot: ProgressSnapshot) -> None:
        url = f"{self.config.progress_endpoint}/{snapshot.user_id}/{snapshot.workstation_id}"
        response = await self._request(
            "PUT",
            url,
            json=snapshot.model_dump(mode="json"),
            headers={"Idempotency-Key": idempotency_key(snapshot)},
        )

        if response.status_code not in (200, 201, 204):
            raise SyncFailure(f"Push rejected: HTTP {response.status_code}", response.status_code)
        logger.debug(f"Pushed snapshot {idempotency_key(snapshot)}")

    # =========================================================================
    # Behavior Logs
    # =========================================================================

    async def append_behavior_events(self, events: list[BehaviorEvent]) -> None:
        if not events:
            return
        response = await self._request(
            "POST",
            self.config.behavior_logs_endpoint,
            json={"events": [e.model_dump(mode="json") for e in events]},
        )
        if response.status_code not in (200, 201, 202, 204):
            raise SyncFailure(f"Behavior log upload rejected: HTTP {response.status_code}", response.status_code)
