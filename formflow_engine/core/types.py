"""Shared type declarations for the formflow engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, TypedDict

FORM_TAGS = ("input", "textarea", "select")


@dataclass
class LiveElement:
    """One interactive element from the current page snapshot.

    Handles are resolved fresh on every lookup and never persisted.
    """

    index: int
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    interactable: bool = True

    @property
    def element_id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def name(self) -> str:
        return self.attributes.get("name", "")

    @property
    def placeholder(self) -> str:
        return self.attributes.get("placeholder", "")

    def is_form_control(self) -> bool:
        return self.tag.lower() in FORM_TAGS

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "LiveElement":
        attributes = payload.get("attributes") or {}
        return cls(
            index=int(payload.get("index", 0)),
            tag=str(payload.get("tag") or "").lower(),
            attributes={str(key): str(value or "") for key, value in attributes.items()},
            text=str(payload.get("text") or "").strip(),
            interactable=bool(payload.get("interactable", True)),
        )


@dataclass
class PageState:
    """Snapshot of the page returned by ``PageController.get_state``."""

    url: str = ""
    elements: Dict[int, LiveElement] = field(default_factory=dict)

    def ordered(self) -> List[LiveElement]:
        return [self.elements[index] for index in sorted(self.elements)]


class DropdownOption(TypedDict):
    text: str
    value: str


class KeyValueStore(Protocol):
    """Persistent store of opaque JSON documents."""

    async def get(self, key: str) -> Any:
        """Return the stored document or None."""

    async def set(self, key: str, value: Any) -> None:
        """Persist a document under ``key``."""

    async def remove(self, key: str) -> None:
        """Delete ``key`` if present."""


class PageController(Protocol):
    """Page-control capability the engine depends on but does not implement."""

    async def url(self) -> str:
        """Return the current location."""

    async def get_state(self) -> PageState:
        """Return a fresh snapshot of interactive elements."""

    async def evaluate(self, script: str, args: Any = None) -> Any:
        """Run ``script`` in the page and return serialisable data."""

    async def input_text_element_node(self, use_vision: bool, element: LiveElement, text: str) -> None:
        ...

    async def click_element_node(self, use_vision: bool, element: LiveElement) -> None:
        ...

    async def select_dropdown_option(self, index: int, text: str) -> None:
        ...

    async def get_dropdown_options(self, index: int) -> List[DropdownOption]:
        ...

    async def send_keys(self, keys: str) -> None:
        ...

    async def navigate_to(self, url: str) -> None:
        ...

    async def wait_for_page_load_state(self, timeout_ms: int) -> None:
        ...

    async def take_screenshot(self) -> Optional[bytes]:
        ...


class PageProvider(Protocol):
    """Hands out the page currently under automation."""

    async def get_current_page(self) -> PageController:
        """Return a working page or raise ``PageUnavailableError``."""


class ProfileProvider(Protocol):
    """Source of the flat auto-fill map (semantic field name -> value)."""

    async def get_auto_fill_data(self) -> Optional[Dict[str, str]]:
        ...


class Oracle(Protocol):
    """External natural-language answering service."""

    async def answer_batch(self, prompt: str, count: int) -> List[str]:
        """Return ``count`` answers for a prompt holding ``count`` numbered questions."""
