from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from formflow_engine.browser import page_scripts
from formflow_engine.core.errors import PageUnavailableError
from formflow_engine.core.types import DropdownOption, LiveElement, PageState


def make_element(index: int, tag: str, text: str = "", interactable: bool = True, **attributes: str) -> LiveElement:
    return LiveElement(index=index, tag=tag, attributes=dict(attributes), text=text, interactable=interactable)


class FakePage:
    """In-memory page that records every call made against it.

    ``evaluate`` answers from ``responses`` keyed by script; a list value is
    consumed one item per call and its last item repeats.
    """

    def __init__(self, elements: Sequence[LiveElement] = (), url: str = "https://example.com/start") -> None:
        self.current_url = url
        self.elements: Dict[int, LiveElement] = {element.index: element for element in elements}
        self.responses: Dict[str, Any] = {}
        self.dropdown_options: Dict[int, List[DropdownOption]] = {}
        self.fail_on: Dict[int, Exception] = {}
        self.calls: List[tuple] = []
        self.evaluated: List[tuple] = []
        self.filled_tokens: Dict[str, str] = {}

    async def url(self) -> str:
        return self.current_url

    async def get_state(self) -> PageState:
        return PageState(url=self.current_url, elements=dict(self.elements))

    async def evaluate(self, script: str, args: Any = None) -> Any:
        self.evaluated.append((script, args))
        if script == page_scripts.FILL_BY_TOKEN and script not in self.responses:
            self.filled_tokens[args["token"]] = args["value"]
            return True
        response = self.responses.get(script)
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else (response[0] if response else None)
        if isinstance(response, Exception):
            raise response
        return response

    async def input_text_element_node(self, use_vision: bool, element: LiveElement, text: str) -> None:
        self._maybe_fail(element.index)
        self.calls.append(("input", element.index, text))

    async def click_element_node(self, use_vision: bool, element: LiveElement) -> None:
        self._maybe_fail(element.index)
        self.calls.append(("click", element.index))

    async def select_dropdown_option(self, index: int, text: str) -> None:
        self._maybe_fail(index)
        self.calls.append(("select", index, text))

    async def get_dropdown_options(self, index: int) -> List[DropdownOption]:
        return list(self.dropdown_options.get(index, []))

    async def send_keys(self, keys: str) -> None:
        self.calls.append(("keys", keys))

    async def navigate_to(self, url: str) -> None:
        self.calls.append(("navigate", url))
        self.current_url = url

    async def wait_for_page_load_state(self, timeout_ms: int) -> None:
        self.calls.append(("wait", timeout_ms))

    async def take_screenshot(self) -> Optional[bytes]:
        return None

    def _maybe_fail(self, index: int) -> None:
        error = self.fail_on.get(index)
        if error is not None:
            raise error


class FakePageProvider:
    def __init__(self, page: FakePage | None = None) -> None:
        self.page = page
        self.requests = 0

    async def get_current_page(self) -> FakePage:
        self.requests += 1
        if self.page is None:
            raise PageUnavailableError("no page attached")
        return self.page


class FakeOracle:
    def __init__(self, replies: Sequence[str] = (), error: Exception | None = None) -> None:
        self.replies = list(replies)
        self.error = error
        self.prompts: List[str] = []

    async def answer_batch(self, prompt: str, count: int) -> List[str]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.replies[:count]


class FakeProfile:
    def __init__(self, data: Dict[str, str] | None = None) -> None:
        self.data = data

    async def get_auto_fill_data(self) -> Optional[Dict[str, str]]:
        return dict(self.data) if self.data is not None else None


PROFILE = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "experience_years": "7 years",
    "current_title": "Engineer",
    "current_company": "Analytical Engines",
    "technical_skills": "Python, SQL",
    "salary_expectation": "120000",
    "willing_to_relocate": "No",
    "remote_work": "Yes",
}


async def never_sleep(_: float) -> None:
    return None
