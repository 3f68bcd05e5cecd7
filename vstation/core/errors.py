"""
Error taxonomy shared by all engine components.

None of these are fatal to the host: validation problems go back to the
caller with field detail, sync failures are logged and retried, duplicates
collapse into no-op successes.
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for engine errors."""


class ValidationError(EngineError):
    """Raised when a submission is missing required data or fails a format rule."""

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors: dict[str, str] = errors or {}

    @classmethod
    def from_pydantic(cls, exc: Any, message: str = "Invalid input") -> "ValidationError":
        """Build from a pydantic ValidationError, keyed by dotted field path."""
        errors: dict[str, str] = {}
        for item in exc.errors():
            loc = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
            errors[loc] = item.get("msg", "invalid")
        return cls(message, errors)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        detail = ", ".join(f"{k}: {v}" for k, v in sorted(self.errors.items()))
        return f"{base} ({detail})"


class NotFoundError(EngineError):
    """Raised when an execution, competition, achievement or workstation id is unknown."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"Unknown {kind}: {identifier}")
        self.kind = kind
        self.identifier = identifier


class SyncFailure(EngineError):
    """Raised by remote adapters when the store is unreachable or rejects a write."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DuplicateSubmission(EngineError):
    """Raised by stores when a unique (owner, target) pair already exists."""

    def __init__(self, message: str, existing: Any = None):
        super().__init__(message)
        self.existing = existing
