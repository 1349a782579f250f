"""Derives saved workflows from the step history of a finished agent run."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from .models import (
    ClickElementStep,
    ElementFingerprint,
    FillFieldStep,
    KeyPressStep,
    NavigateStep,
    SavedWorkflow,
    SelectOptionStep,
    WorkflowStep,
    workflow_id,
)

ESTIMATED_MS_PER_RECORD = 2000


class ActionOutcome(BaseModel):
    """Result text of one action plus the element it touched, when known."""

    extracted_content: str = ""
    element: Optional[ElementFingerprint] = None


class HistoryRecord(BaseModel):
    url: str = ""
    results: List[ActionOutcome] = Field(default_factory=list)


_StepFactory = Callable[[re.Match, int, ElementFingerprint, str], WorkflowStep]


def _fill(match: re.Match, index: int, element: ElementFingerprint, text: str) -> WorkflowStep:
    value = match.group("value")
    return FillFieldStep(
        step_index=index,
        element=element,
        data={"value": value, "index": int(match.group("index"))},
        description=text,
    )


def _click(match: re.Match, index: int, element: ElementFingerprint, text: str) -> WorkflowStep:
    return ClickElementStep(
        step_index=index,
        element=element,
        data={"index": int(match.group("index"))},
        description=text,
    )


def _navigate(match: re.Match, index: int, element: ElementFingerprint, text: str) -> WorkflowStep:
    return NavigateStep(step_index=index, element=element, data={"toUrl": match.group("url")}, description=text)


def _keys(match: re.Match, index: int, element: ElementFingerprint, text: str) -> WorkflowStep:
    return KeyPressStep(step_index=index, element=element, data={"key": match.group("key").strip()}, description=text)


def _select(match: re.Match, index: int, element: ElementFingerprint, text: str) -> WorkflowStep:
    option = match.group("option")
    return SelectOptionStep(
        step_index=index,
        element=element,
        data={"selectedText": option, "selectedValue": option},
        description=text,
    )


HISTORY_PATTERNS: Sequence[Tuple[re.Pattern, _StepFactory]] = (
    (re.compile(r"Input (?P<quote>['\"])(?P<value>.*)(?P=quote) into index (?P<index>\d+)"), _fill),
    (re.compile(r"Clicked.*with index (?P<index>\d+)"), _click),
    (re.compile(r"Navigated to (?P<url>\S+)"), _navigate),
    (re.compile(r"Sent keys: (?P<key>.+)"), _keys),
    (re.compile(r"Selected option ['\"]?(?P<option>[^'\"]+?)['\"]?(?: (?:in|from) .*)?$"), _select),
)


def step_from_outcome(outcome: ActionOutcome, index: int) -> Optional[WorkflowStep]:
    text = (outcome.extracted_content or "").strip()
    if not text:
        return None
    for pattern, factory in HISTORY_PATTERNS:
        match = pattern.search(text)
        if match:
            return factory(match, index, outcome.element or ElementFingerprint(), text)
    return None


def detect_platform(urls: Sequence[str]) -> str:
    joined = " ".join(url.lower() for url in urls if url)
    for needle, platform in (
        ("linkedin.com", "linkedin"),
        ("indeed.com", "indeed"),
        ("glassdoor.com", "glassdoor"),
        ("workday", "workday"),
        ("greenhouse", "greenhouse"),
    ):
        if needle in joined:
            return platform
    return "other"


def workflow_from_history(
    records: Sequence[HistoryRecord | Dict[str, Any]],
    *,
    platform: str,
    application_type: str,
    name: str | None = None,
) -> SavedWorkflow:
    """Build a SavedWorkflow from recognised action results.

    Raises ``ValueError`` when no record yields a replayable step.
    """

    parsed = [record if isinstance(record, HistoryRecord) else HistoryRecord.model_validate(record) for record in records]
    steps: List[WorkflowStep] = []
    for record in parsed:
        for outcome in record.results:
            step = step_from_outcome(outcome, len(steps))
            if step is not None:
                step.timing = float(len(steps) * ESTIMATED_MS_PER_RECORD)
                steps.append(step)
    if not steps:
        raise ValueError("No replayable steps found in history")
    return SavedWorkflow(
        id=workflow_id(f"{platform}_{application_type}"),
        name=name or f"{platform} {application_type} - Auto Generated",
        platform=platform,
        application_type=application_type,
        steps=steps,
        duration=float(len(parsed) * ESTIMATED_MS_PER_RECORD),
        action_count=sum(len(record.results) for record in parsed),
        optimized_action_count=len(steps),
    )


__all__ = [
    "ActionOutcome",
    "HistoryRecord",
    "HISTORY_PATTERNS",
    "step_from_outcome",
    "detect_platform",
    "workflow_from_history",
]
