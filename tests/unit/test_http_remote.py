"""
Unit tests for the HTTP remote store, using httpx.MockTransport.
"""

import json

import httpx
import pytest

from vstation.core.errors import SyncFailure
from vstation.core.models import BehaviorEvent, BehaviorKind
from vstation.sync import HttpRemoteStore, RemoteApiConfig, RemoteStore


class FakeApi:
    """Minimal progress API that records requests."""

    def __init__(self, status_override=None):
        self.rows = {}
        self.requests = []
        self.status_override = status_override

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        if request.url.path.startswith("/api/v1/progress/"):
            key = tuple(request.url.path.rsplit("/", 2)[-2:])
            if request.method == "GET":
                if key not in self.rows:
                    return httpx.Response(404)
                return httpx.Response(200, json=self.rows[key])
            if request.method == "PUT":
                self.rows[key] = json.loads(request.content)
                return httpx.Response(204)
        if request.url.path == "/api/v1/behavior-logs":
            return httpx.Response(202)
        return httpx.Response(405)


def make_store(api, api_key=None):
    config = RemoteApiConfig(base_url="https://station.test", api_key=api_key)
    return HttpRemoteStore(config, transport=httpx.MockTransport(api))


class TestHttpRemoteStore:
    """Tests for request shapes and failure mapping."""

    def test_satisfies_protocol(self):
        assert isinstance(HttpRemoteStore(), RemoteStore)

    @pytest.mark.asyncio
    async def test_push_then_fetch(self, snapshot_factory):
        api = FakeApi()
        snapshot = snapshot_factory(updated_at=99, progress_percent=25)

        async with make_store(api, api_key="secret") as store:
            assert await store.fetch_snapshot("u1", "hazwaste-lab") is None
            await store.push_snapshot(snapshot)
            assert await store.fetch_snapshot("u1", "hazwaste-lab") == snapshot

        put = api.requests[1]
        assert put.method == "PUT"
        assert put.headers["Idempotency-Key"] == "u1:hazwaste-lab:99"
        assert put.headers["X-API-Key"] == "secret"

    @pytest.mark.asyncio
    async def test_rejected_push_raises_sync_failure(self, snapshot_factory):
        async with make_store(FakeApi(status_override=503)) as store:
            with pytest.raises(SyncFailure) as exc_info:
                await store.push_snapshot(snapshot_factory(updated_at=1))

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_unreachable_raises_sync_failure(self, snapshot_factory):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = HttpRemoteStore(RemoteApiConfig(base_url="https://station.test"), transport=httpx.MockTransport(refuse))
        try:
            with pytest.raises(SyncFailure):
                await store.fetch_snapshot("u1", "hazwaste-lab")
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_behavior_events_batch(self):
        api = FakeApi()
        events = [BehaviorEvent(session_id="s1", kind=BehaviorKind.HINT_VIEW)]

        async with make_store(api) as store:
            await store.append_behavior_events([])
            await store.append_behavior_events(events)

        assert len(api.requests) == 1
        body = json.loads(api.requests[0].content)
        assert body["events"][0]["kind"] == "hint_view"
