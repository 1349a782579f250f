"""Playwright-backed implementation of the page-control collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from playwright.async_api import Page, async_playwright

from formflow_engine.core.errors import PageUnavailableError
from formflow_engine.core.types import DropdownOption, LiveElement, PageState

from . import page_scripts

logger = logging.getLogger(__name__)

ACTION_TIMEOUT_MS = 5000


def _index_selector(index: int) -> str:
    return f'[data-formflow-index="{index}"]'


class PlaywrightPageController:
    """Adapts a Playwright ``Page`` to the engine's page-control protocol.

    Elements are addressed by the ``data-formflow-index`` attribute stamped
    by the most recent ``get_state`` call.
    """

    def __init__(self, page: Page, *, action_timeout_ms: int = ACTION_TIMEOUT_MS) -> None:
        self.page = page
        self.action_timeout_ms = action_timeout_ms

    async def url(self) -> str:
        return self.page.url

    async def get_state(self) -> PageState:
        payload = await self.page.evaluate(page_scripts.SNAPSHOT_STATE)
        elements = {}
        for item in payload or []:
            element = LiveElement.from_payload(item)
            elements[element.index] = element
        return PageState(url=self.page.url, elements=elements)

    async def evaluate(self, script: str, args: Any = None) -> Any:
        if args is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, args)

    async def input_text_element_node(self, use_vision: bool, element: LiveElement, text: str) -> None:
        await self.page.fill(_index_selector(element.index), text, timeout=self.action_timeout_ms)

    async def click_element_node(self, use_vision: bool, element: LiveElement) -> None:
        await self.page.click(_index_selector(element.index), timeout=self.action_timeout_ms)

    async def select_dropdown_option(self, index: int, text: str) -> None:
        await self.page.select_option(_index_selector(index), label=text, timeout=self.action_timeout_ms)

    async def get_dropdown_options(self, index: int) -> List[DropdownOption]:
        options = await self.page.eval_on_selector_all(
            f"{_index_selector(index)} option",
            "(nodes) => nodes.map((node) => ({ text: node.text.trim(), value: node.value }))",
        )
        return [DropdownOption(text=str(option["text"]), value=str(option["value"])) for option in options]

    async def send_keys(self, keys: str) -> None:
        await self.page.keyboard.press(keys)

    async def navigate_to(self, url: str) -> None:
        await self.page.goto(url, wait_until="load")

    async def wait_for_page_load_state(self, timeout_ms: int) -> None:
        await self.page.wait_for_load_state("load", timeout=timeout_ms)

    async def take_screenshot(self) -> Optional[bytes]:
        return await self.page.screenshot(full_page=False)


@dataclass
class BrowserSession:
    """Holds Playwright session objects for reuse."""

    playwright: Any
    browser: Any
    context: Any
    page: Any

    async def close(self) -> None:
        try:
            await self.page.close()
        finally:
            try:
                await self.context.close()
            finally:
                try:
                    await self.browser.close()
                finally:
                    await self.playwright.stop()


class PlaywrightPageProvider:
    """Lazily launches Chromium and hands out the single automated page."""

    def __init__(self, *, headless: bool = True, slow_mo: int = 0, start_url: str | None = None) -> None:
        self.headless = headless
        self.slow_mo = slow_mo
        self.start_url = start_url
        self._session: BrowserSession | None = None
        self._controller: PlaywrightPageController | None = None

    async def get_current_page(self) -> PlaywrightPageController:
        try:
            session = await self._ensure_session()
        except Exception as exc:  # noqa: BLE001
            raise PageUnavailableError(f"could not start browser: {exc}") from exc
        if session.page.is_closed():
            raise PageUnavailableError("automated page was closed")
        if self._controller is None or self._controller.page is not session.page:
            self._controller = PlaywrightPageController(session.page)
        return self._controller

    async def _ensure_session(self) -> BrowserSession:
        if self._session:
            return self._session
        playwright = await async_playwright().start()
        browser = await playwright.chromium.launch(
            headless=self.headless,
            slow_mo=self.slow_mo,
            args=["--disable-gpu", "--disable-dev-shm-usage", "--no-sandbox"],
        )
        context = await browser.new_context()
        page = await context.new_page()
        if self.start_url:
            await page.goto(self.start_url, wait_until="load")
        self._session = BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
        logger.info("chromium session started (headless=%s)", self.headless)
        return self._session

    async def shutdown(self) -> None:
        session = self._session
        if session:
            try:
                await session.close()
            finally:
                self._session = None
                self._controller = None


__all__ = ["PlaywrightPageController", "PlaywrightPageProvider", "BrowserSession"]
