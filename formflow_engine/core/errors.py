"""Custom exception hierarchy for the engine."""

from __future__ import annotations


class FormflowError(RuntimeError):
    """Base exception for engine-specific failures."""


class PageUnavailableError(FormflowError):
    """Raised when no working page handle can be obtained."""


class WorkflowNotFoundError(FormflowError):
    """Raised when a workflow id is not present in the store."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow {workflow_id} not found")
        self.workflow_id = workflow_id


class RecordingStateError(FormflowError):
    """Raised when a recording session is started or stopped out of order."""


class StepExecutionError(FormflowError):
    """Raised when a single replay step cannot be carried out."""

    def __init__(self, message: str, *, step_index: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.step_index = step_index
        self.reason = reason or "step_failed"

    def as_dict(self) -> dict:
        payload = {"message": str(self), "reason": self.reason}
        if self.step_index is not None:
            payload["step_index"] = self.step_index
        return payload


class OracleError(FormflowError):
    """Raised when the answering service fails or returns nothing usable."""
