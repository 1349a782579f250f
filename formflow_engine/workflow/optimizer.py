"""Turns a raw recorded event log into ordered semantic workflow steps."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Type

from .models import (
    ActionType,
    ClickElementStep,
    FillFieldStep,
    KeyPressStep,
    NavigateStep,
    RecordedAction,
    SelectOptionStep,
    WorkflowStep,
)

DEBOUNCE_MS = 100.0

STEP_TYPES: Dict[ActionType, Type] = {
    "input": FillFieldStep,
    "click": ClickElementStep,
    "select": SelectOptionStep,
    "keypress": KeyPressStep,
    "navigation": NavigateStep,
}


def _describe_fill(action: RecordedAction) -> str:
    element = action.element
    data = action.data or {}
    return f"Fill {element.name or element.type or 'field'}: {data.get('value') or ''}"


def _describe_click(action: RecordedAction) -> str:
    element = action.element
    target = element.text or element.id or " ".join(element.class_list)
    return f"Click {element.tag}: {target}"


def _describe_select(action: RecordedAction) -> str:
    data = action.data or {}
    return f"Select: {data.get('selectedText') or data.get('selectedValue') or ''}"


def _describe_key(action: RecordedAction) -> str:
    return f"Press key: {(action.data or {}).get('key') or ''}"


def _describe_navigation(action: RecordedAction) -> str:
    return f"Navigate to: {(action.data or {}).get('toUrl') or action.url}"


DESCRIBERS: Dict[ActionType, Callable[[RecordedAction], str]] = {
    "input": _describe_fill,
    "click": _describe_click,
    "select": _describe_select,
    "keypress": _describe_key,
    "navigation": _describe_navigation,
}


class StepOptimizer:
    """Pure transform from RecordedAction[] to WorkflowStep[].

    Identical input always yields identical output: the optimizer holds no
    state between calls and reads no clock.
    """

    def __init__(self, *, debounce_ms: float = DEBOUNCE_MS) -> None:
        self.debounce_ms = float(debounce_ms)

    def optimize(self, actions: Sequence[RecordedAction], *, session_start: float = 0.0) -> List[WorkflowStep]:
        steps: List[WorkflowStep] = []
        for position, action in enumerate(actions):
            if position > 0 and self._is_bounce(actions[position - 1], action):
                continue
            step_cls = STEP_TYPES[action.type]
            steps.append(
                step_cls(
                    step_index=len(steps),
                    element=action.element,
                    data=dict(action.data or {}),
                    timing=action.timestamp - session_start,
                    description=DESCRIBERS[action.type](action),
                )
            )
        return steps

    def _is_bounce(self, previous: RecordedAction, current: RecordedAction) -> bool:
        # compares against the raw predecessor, dropped or not
        return previous.type == current.type and (current.timestamp - previous.timestamp) < self.debounce_ms


def optimize_actions(actions: Sequence[RecordedAction], *, session_start: float = 0.0) -> List[WorkflowStep]:
    return StepOptimizer().optimize(actions, session_start=session_start)


__all__ = ["StepOptimizer", "optimize_actions", "DEBOUNCE_MS"]
