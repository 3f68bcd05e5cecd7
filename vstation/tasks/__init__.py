"""Task executions and stage validation."""

from .flow import (
    PRESET_TASKS,
    STANDARD_STAGE_ORDER,
    ExecutionStatus,
    StageDefinition,
    StageSubmission,
    StageType,
    TaskDefinition,
    TaskExecution,
    TaskFlow,
    validate_stage_order,
    validate_submission,
)

__all__ = [
    "PRESET_TASKS",
    "STANDARD_STAGE_ORDER",
    "ExecutionStatus",
    "StageDefinition",
    "StageSubmission",
    "StageType",
    "TaskDefinition",
    "TaskExecution",
    "TaskFlow",
    "validate_stage_order",
    "validate_submission",
]
