"""Deterministic canned answers for common application questions."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

PROFILE_DEFAULTS: Dict[str, str] = {
    "experience_years": "5+ years",
    "salary_expectation": "Competitive",
    "start_date": "Immediate",
    "willing_to_relocate": "Yes",
    "remote_work": "Yes",
    "technical_skills": "software development",
    "summary": "I am a dedicated professional with strong technical skills.",
}

# Consulted in order; the first phrase contained in the lowercased question wins.
QUESTION_PATTERNS: Sequence[Tuple[str, str]] = (
    ("bachelor", "Yes"),
    ("degree", "Yes"),
    ("authorized to work", "Yes"),
    ("require sponsorship", "No"),
    ("need visa", "No"),
    ("years of experience", "{experience_years}"),
    ("salary expectation", "{salary_expectation}"),
    ("compensation", "{salary_expectation}"),
    ("start date", "{start_date}"),
    ("available to start", "{start_date}"),
    ("notice period", "2 weeks"),
    ("willing to relocate", "{willing_to_relocate}"),
    ("remote work", "{remote_work}"),
    ("commute", "Yes"),
    ("onsite", "Yes"),
    (
        "why interested",
        "I am excited about this opportunity because it aligns with my {experience_years} of experience "
        "in {technical_skills} and my career goals.",
    ),
    (
        "why qualified",
        "My background in {technical_skills} and {experience_years} of professional experience make me "
        "well-suited for this role.",
    ),
    ("tell us about yourself", "{summary}"),
)

# Keyword table for form fields that never reach the cache or the oracle.
FIELD_TEMPLATES: Sequence[Tuple[str, str]] = (
    ("bachelor", "Yes"),
    ("degree", "Yes"),
    ("authorized", "Yes"),
    ("sponsorship", "No"),
    ("visa", "No"),
    ("experience", "{experience_years}"),
    ("salary", "{salary_expectation}"),
    ("start", "{start_date}"),
    ("available", "Immediately available"),
    ("relocate", "{willing_to_relocate}"),
    ("remote", "{remote_work}"),
    ("commute", "Yes"),
    ("onsite", "Yes"),
    ("why interested", "I am excited about this opportunity because it aligns with my {experience_years} of experience."),
    ("why qualify", "My background in {technical_skills} makes me well-suited for this role."),
)

DEFAULT_FIELD_ANSWER = "Yes"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

CONTEXT_PLACEHOLDERS: Sequence[Tuple[str, str]] = (
    ("[Company Name]", "company_name"),
    ("[Position]", "job_title"),
    ("[Industry]", "industry"),
)

CONTEXT_KEYS = ("company_name", "job_title", "industry", "platform")
_CONTEXT_ALIASES = {"companyName": "company_name", "jobTitle": "job_title"}


def fill_template(template: str, profile: Mapping[str, Any] | None) -> str:
    """Substitute ``{field}`` placeholders with profile values or defaults."""

    profile = profile or {}

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        value = profile.get(key)
        if value:
            return str(value)
        return PROFILE_DEFAULTS.get(key, match.group(0))

    return _PLACEHOLDER.sub(_replace, template)


def pattern_answer(question: str, profile: Mapping[str, Any] | None = None) -> Optional[str]:
    normalized = (question or "").lower()
    for phrase, template in QUESTION_PATTERNS:
        if phrase in normalized:
            return fill_template(template, profile)
    return None


def field_template_answer(text: str, profile: Mapping[str, Any] | None = None) -> str:
    normalized = (text or "").lower()
    for keyword, template in FIELD_TEMPLATES:
        if keyword in normalized:
            return fill_template(template, profile)
    return DEFAULT_FIELD_ANSWER


def sanitize_context(context: Mapping[str, Any] | None) -> Dict[str, str]:
    """Keep only the non-sensitive context keys worth persisting."""

    sanitized: Dict[str, str] = {}
    for key, value in (context or {}).items():
        canonical = _CONTEXT_ALIASES.get(key, key)
        if canonical in CONTEXT_KEYS and value:
            sanitized[canonical] = str(value)
    return sanitized


def personalize(response: str, context: Mapping[str, Any] | None) -> str:
    if not context:
        return response
    values = sanitize_context(context)
    for placeholder, key in CONTEXT_PLACEHOLDERS:
        if values.get(key):
            response = response.replace(placeholder, values[key])
    return response


__all__ = [
    "PROFILE_DEFAULTS",
    "QUESTION_PATTERNS",
    "FIELD_TEMPLATES",
    "DEFAULT_FIELD_ANSWER",
    "fill_template",
    "pattern_answer",
    "field_template_answer",
    "sanitize_context",
    "personalize",
]
