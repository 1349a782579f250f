"""Core primitives shared by every component."""

from .errors import (
    FormflowError,
    OracleError,
    PageUnavailableError,
    RecordingStateError,
    StepExecutionError,
    WorkflowNotFoundError,
)
from .types import LiveElement, PageState

__all__ = [
    "FormflowError",
    "OracleError",
    "PageUnavailableError",
    "RecordingStateError",
    "StepExecutionError",
    "WorkflowNotFoundError",
    "LiveElement",
    "PageState",
]
