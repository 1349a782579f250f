"""Recorded action, workflow step and saved workflow models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

UTC = timezone.utc
TEXT_EXCERPT_LIMIT = 100

ActionType = Literal["click", "input", "select", "keypress", "navigation"]
StepAction = Literal["fill_field", "click_element", "select_option", "key_press", "navigate"]
Speed = Literal["fast", "normal", "slow"]


def _now() -> datetime:
    return datetime.now(UTC)


def workflow_id(prefix: str = "workflow") -> str:
    """Return a timestamp-derived workflow identifier with a random suffix."""

    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S_%f")
    return f"{prefix}_{timestamp}_{uuid4().hex[:8]}"


class ElementFingerprint(BaseModel):
    """Structural description of a DOM element captured at record time."""

    tag: str = ""
    id: str = ""
    class_list: List[str] = Field(default_factory=list)
    text: str = ""
    name: str = ""
    type: str = ""
    placeholder: str = ""
    xpath: str = ""

    @field_validator("text")
    @classmethod
    def _truncate_text(cls, value: str) -> str:
        return (value or "").strip()[:TEXT_EXCERPT_LIMIT]

    @field_validator("class_list", mode="before")
    @classmethod
    def _split_classes(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [token for token in value.split() if token]
        return [str(token) for token in value if token]

    @classmethod
    def from_page_payload(cls, payload: Dict[str, Any] | None) -> "ElementFingerprint":
        payload = payload or {}
        return cls(
            tag=str(payload.get("tagName") or payload.get("tag") or "").lower(),
            id=str(payload.get("id") or ""),
            class_list=payload.get("className") or payload.get("class_list") or [],
            text=str(payload.get("textContent") or payload.get("text") or ""),
            name=str(payload.get("name") or ""),
            type=str(payload.get("type") or ""),
            placeholder=str(payload.get("placeholder") or ""),
            xpath=str(payload.get("xpath") or ""),
        )

    def identifiers(self) -> str:
        """Lowercased name/id/placeholder blob used for keyword matching."""

        return " ".join([self.name, self.id, self.placeholder]).lower()


class RecordedAction(BaseModel):
    """One captured UI event. Immutable once appended to a session log."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    type: ActionType
    element: ElementFingerprint = Field(default_factory=ElementFingerprint)
    data: Optional[Dict[str, Any]] = None
    url: str = ""


class _StepBase(BaseModel):
    step_index: int
    element: ElementFingerprint = Field(default_factory=ElementFingerprint)
    data: Dict[str, Any] = Field(default_factory=dict)
    timing: float = 0.0
    description: str = ""


class FillFieldStep(_StepBase):
    action: Literal["fill_field"] = "fill_field"

    @property
    def value(self) -> str:
        return str(self.data.get("value") or "")


class ClickElementStep(_StepBase):
    action: Literal["click_element"] = "click_element"


class SelectOptionStep(_StepBase):
    action: Literal["select_option"] = "select_option"

    @property
    def selected_value(self) -> str:
        return str(self.data.get("selectedValue") or "")

    @property
    def selected_text(self) -> str:
        return str(self.data.get("selectedText") or "")


class KeyPressStep(_StepBase):
    action: Literal["key_press"] = "key_press"

    @property
    def key(self) -> str:
        return str(self.data.get("key") or "")


class NavigateStep(_StepBase):
    action: Literal["navigate"] = "navigate"

    @property
    def to_url(self) -> str:
        return str(self.data.get("toUrl") or "")


WorkflowStep = Annotated[
    Union[FillFieldStep, ClickElementStep, SelectOptionStep, KeyPressStep, NavigateStep],
    Field(discriminator="action"),
]


class SavedWorkflow(BaseModel):
    """Persisted ordered sequence of semantic steps."""

    id: str = Field(default_factory=workflow_id)
    name: str
    platform: str = "other"
    application_type: str = "recorded"
    steps: List[WorkflowStep] = Field(default_factory=list)
    recorded_at: datetime = Field(default_factory=_now)
    duration: float = 0.0
    action_count: int = 0
    optimized_action_count: int = 0
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    usage_count: int = Field(default=0, ge=0)
    last_used: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("workflow name cannot be empty")
        return value.strip()

    def record_outcome(self, success: bool, *, when: datetime | None = None) -> None:
        """Fold one execution outcome into the running success average."""

        self.usage_count += 1
        outcome = 1.0 if success else 0.0
        rate = (self.success_rate * (self.usage_count - 1) + outcome) / self.usage_count
        self.success_rate = min(max(rate, 0.0), 1.0)
        self.last_used = when or _now()


class ExecutionOptions(BaseModel):
    use_profile_data: bool = True
    speed: Speed = "fast"


ExecutionStatus = Literal["completed", "partially_completed", "aborted"]


class ExecutionResult(BaseModel):
    """Outcome of one replay run."""

    success: bool
    status: ExecutionStatus
    executed_steps: int = 0
    total_steps: int = 0
    message: str = ""
    failed_steps: List[Dict[str, Any]] = Field(default_factory=list)
    cancelled: bool = False


__all__ = [
    "ActionType",
    "StepAction",
    "Speed",
    "ElementFingerprint",
    "RecordedAction",
    "FillFieldStep",
    "ClickElementStep",
    "SelectOptionStep",
    "KeyPressStep",
    "NavigateStep",
    "WorkflowStep",
    "SavedWorkflow",
    "ExecutionOptions",
    "ExecutionStatus",
    "ExecutionResult",
    "workflow_id",
]
