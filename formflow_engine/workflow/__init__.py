"""Workflow models, the step optimizer and workflow persistence."""

from .history import HistoryRecord, detect_platform, workflow_from_history
from .models import (
    ClickElementStep,
    ElementFingerprint,
    ExecutionOptions,
    ExecutionResult,
    FillFieldStep,
    KeyPressStep,
    NavigateStep,
    RecordedAction,
    SavedWorkflow,
    SelectOptionStep,
    WorkflowStep,
)
from .optimizer import StepOptimizer, optimize_actions
from .store import WorkflowStore

__all__ = [
    "ClickElementStep",
    "ElementFingerprint",
    "ExecutionOptions",
    "ExecutionResult",
    "FillFieldStep",
    "KeyPressStep",
    "NavigateStep",
    "RecordedAction",
    "SavedWorkflow",
    "SelectOptionStep",
    "WorkflowStep",
    "StepOptimizer",
    "optimize_actions",
    "WorkflowStore",
    "HistoryRecord",
    "detect_platform",
    "workflow_from_history",
]
