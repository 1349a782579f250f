"""Turns observed element descriptions into prioritised question fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from formflow_engine.answers.concepts import concept_hash

CATEGORIES = ("standard", "experience", "education", "salary", "essay")
QUESTION_INPUT_TYPES = ("text", "email", "tel")

FieldCategorizer = Callable[[Dict[str, Any]], str]
FieldHasher = Callable[[str], str]

CATEGORY_KEYWORDS = (
    ("experience", ("experience", "years")),
    ("education", ("degree", "education")),
    ("salary", ("salary", "compensation")),
    ("essay", ("why", "tell us")),
)


@dataclass
class FormField:
    token: str
    category: str
    text: str
    hash: str
    is_question: bool
    priority: int
    tag: str = ""
    required: bool = False
    element: Dict[str, Any] = field(default_factory=dict)


def _tag(data: Dict[str, Any]) -> str:
    return str(data.get("tagName") or data.get("tag") or "").upper()


def categorize_field(data: Dict[str, Any]) -> str:
    text = f"{data.get('textContent') or ''} {data.get('placeholder') or ''}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "standard"


def is_question_field(data: Dict[str, Any]) -> bool:
    tag = _tag(data)
    if tag in ("TEXTAREA", "SELECT"):
        return True
    return tag == "INPUT" and str(data.get("type") or "").lower() in QUESTION_INPUT_TYPES


def field_priority(data: Dict[str, Any]) -> int:
    priority = 1
    if data.get("required"):
        priority += 2
    if _tag(data) == "TEXTAREA":
        priority += 1
    return priority


def field_text(data: Dict[str, Any]) -> str:
    return str(data.get("textContent") or data.get("placeholder") or data.get("name") or "").strip()


def extract_form_fields(
    elements: Iterable[Dict[str, Any]],
    categorizer: FieldCategorizer = categorize_field,
    hasher: FieldHasher = concept_hash,
) -> List[FormField]:
    """Build fields sorted by priority, highest first; ties keep page order.

    ``hasher`` keys each field by its question text, so fields that ask the
    same thing in different words share a hash.
    """

    fields: List[FormField] = []
    for position, data in enumerate(elements):
        text = field_text(data)
        fields.append(
            FormField(
                token=str(data.get("token") or data.get("id") or f"{_tag(data).lower()}_{position}"),
                category=categorizer(data),
                text=text,
                hash=hasher(text),
                is_question=is_question_field(data),
                priority=field_priority(data),
                tag=_tag(data),
                required=bool(data.get("required")),
                element=dict(data),
            )
        )
    return sorted(fields, key=lambda item: item.priority, reverse=True)


def group_by_category(fields: Iterable[FormField]) -> Dict[str, List[FormField]]:
    groups: Dict[str, List[FormField]] = {category: [] for category in CATEGORIES}
    for item in fields:
        groups.setdefault(item.category, []).append(item)
    return {category: members for category, members in groups.items() if members}


__all__ = [
    "CATEGORIES",
    "FieldCategorizer",
    "FieldHasher",
    "FormField",
    "categorize_field",
    "is_question_field",
    "field_priority",
    "extract_form_fields",
    "group_by_category",
]
