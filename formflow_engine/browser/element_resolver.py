"""Re-targets recorded element fingerprints against a live page snapshot."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Sequence

from formflow_engine.core.types import LiveElement, PageState
from formflow_engine.workflow.models import ElementFingerprint

TEXT_PROBE_LENGTH = 50

Matcher = Callable[[ElementFingerprint, LiveElement], bool]


def match_by_id(fingerprint: ElementFingerprint, element: LiveElement) -> bool:
    return bool(fingerprint.id) and element.element_id == fingerprint.id


def match_by_name(fingerprint: ElementFingerprint, element: LiveElement) -> bool:
    return bool(fingerprint.name) and element.name == fingerprint.name


def match_by_text(fingerprint: ElementFingerprint, element: LiveElement) -> bool:
    probe = fingerprint.text[:TEXT_PROBE_LENGTH]
    if not probe:
        return False
    return probe in element.text


DEFAULT_MATCHERS: Sequence[Matcher] = (match_by_id, match_by_name, match_by_text)


class ElementResolver:
    """Ordered matcher chain; the first matcher with any hit wins.

    Within a matcher the snapshot is scanned in ascending element index, so
    the same fingerprint and snapshot always resolve to the same element.
    """

    def __init__(self, matchers: Iterable[Matcher] | None = None) -> None:
        self.matchers: List[Matcher] = list(matchers) if matchers is not None else list(DEFAULT_MATCHERS)

    def resolve(self, fingerprint: ElementFingerprint, snapshot: PageState) -> Optional[LiveElement]:
        elements = snapshot.ordered()
        for matcher in self.matchers:
            for element in elements:
                if matcher(fingerprint, element):
                    return element
        return None


__all__ = [
    "ElementResolver",
    "Matcher",
    "DEFAULT_MATCHERS",
    "match_by_id",
    "match_by_name",
    "match_by_text",
]
