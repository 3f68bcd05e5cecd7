"""
Task executions and stage submissions.

A task is a fixed sequence of stages. Submissions are applied in the order
they arrive; a valid submission stores its data and advances the
execution's current stage. Invalid submissions are recorded and raised as
ValidationError so the learner can fix the fields and resubmit.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from vstation.core.errors import NotFoundError, ValidationError
from vstation.core.models import Difficulty, ProgressSnapshot, SavedData, new_id, now_ms

REQUIRED_FIELD_PENALTY = 20


class StageType(str, Enum):
    TASK_RECEIPT = "task_receipt"
    PLAN_DESIGN = "plan_design"
    OPERATION = "operation"
    RECORD_FILLING = "record_filling"
    REPORT_GENERATION = "report_generation"
    SIMULATION = "simulation"


STANDARD_STAGE_ORDER: list[StageType] = [
    StageType.TASK_RECEIPT,
    StageType.PLAN_DESIGN,
    StageType.OPERATION,
    StageType.RECORD_FILLING,
    StageType.REPORT_GENERATION,
]


class ExecutionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class StageDefinition:
    id: str
    type: StageType
    name: str = ""
    required_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskDefinition:
    id: str
    workstation_id: str
    name: str
    stages: tuple[StageDefinition, ...]
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    base_xp: int = 100

    def stage_index(self, stage_id: str) -> int:
        for index, stage in enumerate(self.stages):
            if stage.id == stage_id:
                return index
        raise NotFoundError("stage", stage_id)


@dataclass
class StageSubmission:
    stage_id: str
    data: dict[str, Any]
    valid: bool
    score: int
    errors: dict[str, str] = field(default_factory=dict)
    submitted_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "data": self.data,
            "valid": self.valid,
            "score": self.score,
            "errors": self.errors,
            "submitted_at": self.submitted_at,
        }


@dataclass
class TaskExecution:
    """One learner's run through a task."""

    id: str
    session_id: str
    task_id: str
    user_id: str | None = None
    workstation_id: str | None = None
    started_at: int = field(default_factory=now_ms)
    current_stage: int = 0
    status: ExecutionStatus = ExecutionStatus.IN_PROGRESS
    stage_data: dict[str, dict[str, Any]] = field(default_factory=dict)
    submissions: list[StageSubmission] = field(default_factory=list)
    completed_at: int | None = None

    @property
    def attempts(self) -> int:
        return len(self.submissions)

    @property
    def first_try(self) -> bool:
        """True when no stage submission was ever rejected."""
        return all(s.valid for s in self.submissions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "workstation_id": self.workstation_id,
            "started_at": self.started_at,
            "current_stage": self.current_stage,
            "status": self.status.value,
            "stage_data": self.stage_data,
            "submissions": [s.to_dict() for s in self.submissions],
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskExecution":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            task_id=data["task_id"],
            user_id=data.get("user_id"),
            workstation_id=data.get("workstation_id"),
            started_at=data.get("started_at", 0),
            current_stage=data.get("current_stage", 0),
            status=ExecutionStatus(data.get("status", ExecutionStatus.IN_PROGRESS.value)),
            stage_data={k: dict(v) for k, v in (data.get("stage_data") or {}).items()},
            submissions=[StageSubmission(**s) for s in data.get("submissions", [])],
            completed_at=data.get("completed_at"),
        )


def validate_stage_order(stages: Iterable[StageDefinition]) -> bool:
    """Standard stages must appear in strictly increasing canonical order; others are ignored."""
    standard = [STANDARD_STAGE_ORDER.index(s.type) for s in stages if s.type in STANDARD_STAGE_ORDER]
    return all(a < b for a, b in zip(standard, standard[1:]))


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return not value
    return False


def validate_submission(stage: StageDefinition, data: Mapping[str, Any]) -> StageSubmission:
    """Check required fields; score is 100 minus 20 per missing field."""
    errors = {name: "required field is missing" for name in stage.required_fields if _is_blank(data.get(name))}
    score = 100 if not errors else max(0, 100 - len(errors) * REQUIRED_FIELD_PENALTY)
    return StageSubmission(stage_id=stage.id, data=dict(data), valid=not errors, score=score, errors=errors)


def _stages(*specs: tuple[str, StageType, tuple[str, ...]]) -> tuple[StageDefinition, ...]:
    return tuple(StageDefinition(id=sid, type=stype, name=sid.replace("_", " "), required_fields=req) for sid, stype, req in specs)


PRESET_TASKS: list[TaskDefinition] = [
    TaskDefinition(
        id="env-water-001",
        workstation_id="env-monitoring",
        name="Surface water routine monitoring",
        difficulty=Difficulty.BEGINNER,
        base_xp=100,
        stages=_stages(
            ("receipt", StageType.TASK_RECEIPT, ("confirmed",)),
            ("plan", StageType.PLAN_DESIGN, ("sampling_points", "parameters")),
            ("operate", StageType.OPERATION, ("container", "preservation")),
            ("record", StageType.RECORD_FILLING, ("sample_id", "sampling_date", "ph_value")),
            ("report", StageType.REPORT_GENERATION, ("conclusion",)),
        ),
    ),
    TaskDefinition(
        id="env-air-001",
        workstation_id="env-monitoring",
        name="Ambient air particulate sampling",
        difficulty=Difficulty.INTERMEDIATE,
        base_xp=150,
        stages=_stages(
            ("receipt", StageType.TASK_RECEIPT, ("confirmed",)),
            ("plan", StageType.PLAN_DESIGN, ("sampler", "flow_rate")),
            ("simulate", StageType.SIMULATION, ()),
            ("record", StageType.RECORD_FILLING, ("filter_mass_before", "filter_mass_after", "volume")),
            ("report", StageType.REPORT_GENERATION, ("concentration", "conclusion")),
        ),
    ),
]


class TaskFlow:
    """
    Runs task executions.

    Usage:
        flow = TaskFlow()
        execution = flow.start_task("sess-1", "env-water-001", user_id="u1")
        flow.submit_stage(execution.id, "receipt", {"confirmed": True})
    """

    def __init__(self, tasks: Iterable[TaskDefinition] | None = None):
        self.tasks: dict[str, TaskDefinition] = {t.id: t for t in (PRESET_TASKS if tasks is None else tasks)}
        for task in self.tasks.values():
            if not validate_stage_order(task.stages):
                raise ValidationError("Stages out of order", {"task": task.id})
        self._executions: dict[str, TaskExecution] = {}

    def get_task(self, task_id: str) -> TaskDefinition:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def get_execution(self, execution_id: str) -> TaskExecution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise NotFoundError("execution", execution_id)
        return execution

    def start_task(self, session_id: str, task_id: str, user_id: str | None = None) -> TaskExecution:
        task = self.get_task(task_id)
        execution = TaskExecution(
            id=new_id("exec"),
            session_id=session_id,
            task_id=task_id,
            user_id=user_id,
            workstation_id=task.workstation_id,
        )
        self._executions[execution.id] = execution
        logger.debug(f"Started execution {execution.id} for task {task_id}")
        return execution

    def restore_execution(self, data: Mapping[str, Any]) -> TaskExecution:
        """Reload an execution from a saved snapshot, replacing any in-memory copy."""
        execution = TaskExecution.from_dict(data)
        self.get_task(execution.task_id)
        self._executions[execution.id] = execution
        return execution

    def submit_stage(self, execution_id: str, stage_id: str, data: Mapping[str, Any]) -> StageSubmission:
        """
        Validate and apply one stage submission.

        Raises:
            NotFoundError: unknown execution or stage
            ValidationError: required fields missing, or the execution is not in progress
        """
        execution = self.get_execution(execution_id)
        if execution.status != ExecutionStatus.IN_PROGRESS:
            raise ValidationError(
                "Execution is not in progress",
                {"execution": f"{execution_id} is {execution.status.value}"},
            )

        task = self.get_task(execution.task_id)
        index = task.stage_index(stage_id)
        submission = validate_submission(task.stages[index], data)
        execution.submissions.append(submission)

        if not submission.valid:
            logger.debug(f"Stage {stage_id} rejected: {sorted(submission.errors)}")
            raise ValidationError(f"Stage {stage_id} is incomplete", submission.errors)

        execution.stage_data[stage_id] = submission.data
        execution.current_stage = max(execution.current_stage, index + 1)
        return submission

    def complete_task(self, execution_id: str) -> TaskExecution:
        execution = self.get_execution(execution_id)
        execution.status = ExecutionStatus.COMPLETED
        execution.completed_at = now_ms()
        logger.info(f"Execution {execution_id} completed ({execution.attempts} submissions)")
        return execution

    def abandon_task(self, execution_id: str) -> TaskExecution:
        execution = self.get_execution(execution_id)
        execution.status = ExecutionStatus.ABANDONED
        return execution

    def progress_percent(self, execution_id: str) -> float:
        execution = self.get_execution(execution_id)
        total = len(self.get_task(execution.task_id).stages)
        return 100.0 * min(execution.current_stage, total) / total if total else 0.0

    # =========================================================================
    # Progress snapshots
    # =========================================================================

    def _completed_task_ids(self, user_id: str | None, workstation_id: str) -> set[str]:
        return {
            e.task_id
            for e in self._executions.values()
            if e.status == ExecutionStatus.COMPLETED and e.user_id == user_id and e.workstation_id == workstation_id
        }

    def snapshot(
        self,
        execution_id: str,
        session: Mapping[str, Any] | None = None,
        completed_tasks: int | None = None,
        total_tasks: int | None = None,
    ) -> ProgressSnapshot:
        """
        Build the workstation progress record for an execution.

        completed_tasks defaults to the tasks this flow has seen completed
        by the same learner at the same workstation; total_tasks defaults to
        the workstation's task count. The in-progress execution contributes
        its stage fraction of one task to progress_percent.

        Raises:
            NotFoundError: unknown execution
            ValidationError: the execution has no user
        """
        execution = self.get_execution(execution_id)
        if execution.user_id is None:
            raise ValidationError("Execution has no user", {"user_id": "required to save progress"})

        task = self.get_task(execution.task_id)
        workstation_id = execution.workstation_id or task.workstation_id
        if completed_tasks is None:
            completed_tasks = len(self._completed_task_ids(execution.user_id, workstation_id))
        if total_tasks is None:
            total_tasks = sum(1 for t in self.tasks.values() if t.workstation_id == workstation_id)

        progress = 0.0
        if total_tasks > 0:
            done = float(completed_tasks)
            if execution.status == ExecutionStatus.IN_PROGRESS and task.stages:
                done += min(execution.current_stage, len(task.stages)) / len(task.stages)
            progress = min(100.0, 100.0 * done / total_tasks)

        # Stage the learner resumes at
        last_stage_id = None
        if task.stages:
            last_stage_id = task.stages[min(execution.current_stage, len(task.stages) - 1)].id

        return ProgressSnapshot(
            user_id=execution.user_id,
            workstation_id=workstation_id,
            progress_percent=progress,
            completed_tasks=completed_tasks,
            total_tasks=total_tasks,
            last_task_id=execution.task_id,
            last_stage_id=last_stage_id,
            saved_data=SavedData(
                execution=execution.to_dict(),
                session=dict(session) if session is not None else None,
            ),
        )

    def snapshot_provider(
        self,
        execution_id: str,
        session: Callable[[], Mapping[str, Any] | None] | None = None,
    ) -> Callable[[], ProgressSnapshot]:
        """Return a callable for ProgressSyncCoordinator.set_current()."""

        def provide() -> ProgressSnapshot:
            return self.snapshot(execution_id, session=session() if session is not None else None)

        return provide

    def restore_from_snapshot(self, snapshot: ProgressSnapshot | None) -> TaskExecution | None:
        """Reload the execution stored in a progress snapshot, if any."""
        if snapshot is None or not snapshot.saved_data.execution:
            return None
        execution = self.restore_execution(snapshot.saved_data.execution)
        logger.debug(f"Restored execution {execution.id} at stage {execution.current_stage}")
        return execution
