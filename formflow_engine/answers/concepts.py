"""Concept tagging and hashing of natural-language form questions.

Two questions that share the same set of concept tags share one cache slot,
so "Are you authorized to work in the US?" and "Do you have work
authorization?" resolve to the same stored answer.
"""

from __future__ import annotations

import base64
import re
from typing import Callable, Iterable, List, Sequence, Tuple

DEFAULT_CONCEPT = "general"

ConceptExtractor = Callable[[str], Sequence[str]]

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

PROGRAMMING_TERMS = ("java", "python", "javascript")

# (tag, any-of keywords, all-of keyword groups)
CONCEPT_RULES: Tuple[Tuple[str, Tuple[str, ...], Tuple[Tuple[str, ...], ...]], ...] = (
    ("experience", ("experience", "years"), ()),
    ("work_authorization", ("authorized", "legal", "work"), ()),
    ("visa_sponsorship", ("sponsor", "visa"), ()),
    ("education", ("degree", "bachelor", "education"), ()),
    ("compensation", ("salary", "compensation", "pay"), ()),
    ("availability", ("start", "available", "notice"), ()),
    ("location_preference", ("remote", "onsite", "relocate"), ()),
    ("why_interested", ("why",), (("interested", "apply"),)),
    ("why_qualified", ("why",), (("qualified", "fit"),)),
)


def normalize_question(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""

    lowered = (text or "").lower()
    stripped = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()


def extract_concepts(normalized: str) -> List[str]:
    concepts: List[str] = []
    for tag, any_of, all_of in CONCEPT_RULES:
        if not any(keyword in normalized for keyword in any_of):
            continue
        if not all(any(keyword in normalized for keyword in group) for group in all_of):
            continue
        concepts.append(tag)
        if tag == "experience" and any(term in normalized for term in PROGRAMMING_TERMS):
            concepts.append("programming_experience")
    return concepts or [DEFAULT_CONCEPT]


def encode_key(parts: Iterable[str]) -> str:
    """URL-safe, unpadded base64 of the parts joined by ``_``."""

    joined = "_".join(parts)
    return base64.urlsafe_b64encode(joined.encode("utf-8")).decode("ascii").rstrip("=")


def concept_hash(question: str, extractor: ConceptExtractor = extract_concepts) -> str:
    tags = sorted(set(extractor(normalize_question(question))) or {DEFAULT_CONCEPT})
    return encode_key(tags)


__all__ = [
    "DEFAULT_CONCEPT",
    "ConceptExtractor",
    "CONCEPT_RULES",
    "normalize_question",
    "extract_concepts",
    "encode_key",
    "concept_hash",
]
