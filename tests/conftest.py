"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from vstation.core.errors import SyncFailure
from vstation.core.models import ProgressSnapshot, SavedData


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (local SQLite / aiosqlite)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ============================================================================
# Shared builders
# ============================================================================


def make_snapshot(
    user_id="u1",
    workstation_id="hazwaste-lab",
    updated_at=0,
    progress_percent=0.0,
    execution=None,
    **kwargs,
):
    """Build a ProgressSnapshot with sensible defaults."""
    return ProgressSnapshot(
        user_id=user_id,
        workstation_id=workstation_id,
        progress_percent=progress_percent,
        saved_data=SavedData(execution=execution),
        updated_at=updated_at,
        **kwargs,
    )


class FakeRemoteStore:
    """In-memory RemoteStore that can be switched offline."""

    def __init__(self):
        self.snapshots = {}
        self.events = []
        self.online = True
        self.push_calls = 0
        self.fetch_calls = 0

    def _check(self):
        if not self.online:
            raise SyncFailure("remote offline")

    async def fetch_snapshot(self, user_id, workstation_id):
        self.fetch_calls += 1
        self._check()
        return self.snapshots.get((user_id, workstation_id))

    async def push_snapshot(self, snapshot):
        self.push_calls += 1
        self._check()
        current = self.snapshots.get(snapshot.key)
        if current is None or snapshot.updated_at > current.updated_at:
            self.snapshots[snapshot.key] = snapshot

    async def append_behavior_events(self, events):
        self._check()
        self.events.extend(events)


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def local_cache(tmp_path):
    from vstation.sync import LocalCache

    cache = LocalCache(tmp_path / "progress.db")
    yield cache
    cache.close()


@pytest.fixture
def hazardous_answer():
    """Reference answer with two hazard characteristics."""
    return {"result": "hazardous", "characteristics": ["toxicity", "corrosivity"]}
