"""
Snapshot reconciliation.

Local and remote copies of a progress record are merged by a pure
last-writer-wins rule on `updated_at`. Equal timestamps are broken by a
digest of the canonical JSON form, which keeps the merge commutative.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vstation.core.models import ProgressSnapshot


class Winner(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    NONE = "none"


@dataclass
class Reconciliation:
    snapshot: ProgressSnapshot | None
    winner: Winner

    @property
    def local_stale(self) -> bool:
        return self.winner == Winner.REMOTE

    @property
    def remote_stale(self) -> bool:
        return self.winner == Winner.LOCAL


def snapshot_digest(snapshot: ProgressSnapshot) -> str:
    canonical = json.dumps(snapshot.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _order_key(snapshot: ProgressSnapshot) -> tuple[int, str]:
    return (snapshot.updated_at, snapshot_digest(snapshot))


def choose(local: ProgressSnapshot | None, remote: ProgressSnapshot | None) -> Reconciliation:
    """Pick the authoritative snapshot and report which side it came from."""
    if local is None and remote is None:
        return Reconciliation(None, Winner.NONE)
    if remote is None:
        return Reconciliation(local, Winner.LOCAL)
    if local is None:
        return Reconciliation(remote, Winner.REMOTE)

    local_key = _order_key(local)
    remote_key = _order_key(remote)
    if local_key == remote_key:
        return Reconciliation(local, Winner.NONE)
    if local_key > remote_key:
        return Reconciliation(local, Winner.LOCAL)
    return Reconciliation(remote, Winner.REMOTE)


def reconcile(a: ProgressSnapshot | None, b: ProgressSnapshot | None) -> ProgressSnapshot | None:
    """Last-writer-wins merge; reconcile(a, b) == reconcile(b, a)."""
    return choose(a, b).snapshot


def has_unfinished_progress(snapshot: ProgressSnapshot | None) -> bool:
    """
    True only for an in-progress execution that has moved.

    A fresh execution (stage 0, no stage data) never triggers a resume
    prompt.
    """
    if snapshot is None:
        return False
    execution: dict[str, Any] | None = snapshot.saved_data.execution
    if not execution:
        return False
    if execution.get("status") != "in_progress":
        return False
    advanced = (execution.get("current_stage") or 0) > 0
    has_data = any(bool(v) for v in (execution.get("stage_data") or {}).values())
    return advanced or has_data
