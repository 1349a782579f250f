"""Answers form questions that appear while a page mutates.

The page-side observer buffers descriptions of new or changed form controls;
a host-side ticker drains that buffer once per ``poll_interval`` and resolves
each batch through templates, the question cache and, last, the oracle.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Set

from formflow_engine.answers.oracle import build_batch_prompt
from formflow_engine.answers.question_cache import QuestionCache
from formflow_engine.answers.rate_limiter import RateLimiter
from formflow_engine.answers.templates import field_template_answer
from formflow_engine.browser import page_scripts
from formflow_engine.core.types import Oracle, PageController, PageProvider, ProfileProvider

from .form_fields import FieldCategorizer, FormField, categorize_field, extract_form_fields, group_by_category

logger = logging.getLogger(__name__)


class ChangeWatcher:
    def __init__(
        self,
        page_provider: PageProvider,
        cache: QuestionCache,
        *,
        rate_limiter: RateLimiter | None = None,
        oracle: Oracle | None = None,
        profile_provider: ProfileProvider | None = None,
        poll_interval: float = 1.0,
        retry_delay: float = 2.0,
        categorizer: FieldCategorizer = categorize_field,
        context: Mapping[str, Any] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.page_provider = page_provider
        self.cache = cache
        self.rate_limiter = rate_limiter or RateLimiter()
        self.oracle = oracle
        self.profile_provider = profile_provider
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        self.categorizer = categorizer
        self.context: Dict[str, Any] = dict(context or {})
        self._sleep = sleep or asyncio.sleep
        self._container = "body"
        self._active = False
        self._processing = False
        self._answered: Set[str] = set()
        self._poll_task: asyncio.Task | None = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def answered_hashes(self) -> Set[str]:
        return set(self._answered)

    async def start(self, container: str = "body") -> bool:
        if self._active:
            return True
        try:
            page = await self.page_provider.get_current_page()
            result = await page.evaluate(page_scripts.OBSERVER_INSTALL, {"container": container}) or {}
        except Exception:  # noqa: BLE001
            logger.warning("failed to start form observation", exc_info=True)
            return False
        if not result.get("installed"):
            logger.warning("container %s not found for form observer", container)
            return False
        self._container = container
        self._active = True
        self._answered.clear()
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("watching %s for form changes", container)
        return True

    async def stop(self) -> None:
        self._active = False
        tasks = [task for task in (self._poll_task, *self._tasks) if task is not None]
        self._poll_task = None
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        try:
            page = await self.page_provider.get_current_page()
            await page.evaluate(page_scripts.OBSERVER_UNINSTALL)
        except Exception:  # noqa: BLE001
            logger.debug("observer uninstall failed", exc_info=True)
        logger.info("form observation stopped")

    async def poll_once(self) -> int:
        """Drain and process one batch; returns the number of answers written.

        While an earlier batch is still being processed the page buffer is
        left untouched so its fields are picked up by a later tick.
        """

        if self._processing:
            logger.info("previous batch still processing; deferring drain")
            return 0
        self._processing = True
        try:
            page = await self.page_provider.get_current_page()
            payload = await page.evaluate(page_scripts.OBSERVER_DRAIN) or {}
            if not payload.get("installed", True) and self._active:
                await page.evaluate(page_scripts.OBSERVER_INSTALL, {"container": self._container})
            elements = payload.get("fields") or []
            if not elements:
                return 0
            return await self.process_batch(page, elements)
        finally:
            self._processing = False

    async def process_batch(self, page: PageController, elements: Sequence[Dict[str, Any]]) -> int:
        fields = extract_form_fields(elements, self.categorizer, self.cache.hash_question)
        pending: List[FormField] = []
        seen: Set[str] = set()
        for item in fields:
            if not item.is_question or item.hash in self._answered or item.hash in seen:
                continue
            seen.add(item.hash)
            pending.append(item)
        if not pending:
            return 0
        logger.info("processing %d new questions", len(pending))
        profile = await self._load_profile()
        written = 0
        for category, group in group_by_category(pending).items():
            try:
                written += await self._process_group(page, category, group, profile)
            except Exception:  # noqa: BLE001
                logger.warning("failed to process question group %s", category, exc_info=True)
        return written

    async def resolve_questions(
        self,
        category: str,
        questions: Sequence[str],
        profile: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> Optional[List[str]]:
        """Answer ``questions`` of one category, or None when the oracle budget is spent."""

        if category == "standard":
            return [field_template_answer(question, profile) for question in questions]

        context = self.context if context is None else context
        answers: List[Optional[str]] = []
        for question in questions:
            answers.append(await self.cache.lookup(question, context, profile))
        missing = [position for position, answer in enumerate(answers) if answer is None]
        if not missing:
            return [answer or "" for answer in answers]

        replies: List[str] = []
        if self.oracle is not None:
            if not self.rate_limiter.can_proceed():
                logger.warning("rate limit reached, delaying %d %s questions", len(missing), category)
                return None
            prompt = build_batch_prompt([questions[position] for position in missing], profile)
            try:
                replies = await self.oracle.answer_batch(prompt, len(missing))
            except Exception:  # noqa: BLE001
                logger.warning("oracle batch call failed, using templates", exc_info=True)
                replies = []

        fresh: List[Dict[str, Any]] = []
        for offset, position in enumerate(missing):
            reply = (replies[offset] if offset < len(replies) else "") or ""
            reply = reply.strip()
            if reply:
                answers[position] = reply
                fresh.append({"question": questions[position], "response": reply, "context": context})
            else:
                answers[position] = field_template_answer(questions[position], profile)
        if fresh:
            await self.cache.put_many(fresh)
        return [answer or "" for answer in answers]

    async def _process_group(
        self,
        page: PageController,
        category: str,
        group: List[FormField],
        profile: Mapping[str, Any] | None,
    ) -> int:
        answers = await self.resolve_questions(category, [item.text for item in group], profile)
        if answers is None:
            self._schedule_retry(category, group)
            return 0
        written = 0
        for item, answer in zip(group, answers):
            if not answer:
                continue
            try:
                filled = await page.evaluate(page_scripts.FILL_BY_TOKEN, {"token": item.token, "value": answer})
            except Exception:  # noqa: BLE001
                logger.warning("failed to fill field %s", item.token, exc_info=True)
                continue
            if filled:
                self._answered.add(item.hash)
                written += 1
        return written

    def _schedule_retry(self, category: str, group: List[FormField]) -> None:
        task = asyncio.create_task(self._retry_later(category, group))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _retry_later(self, category: str, group: List[FormField]) -> None:
        await self._sleep(self.retry_delay)
        remaining = [item for item in group if item.hash not in self._answered]
        if not remaining:
            return
        try:
            page = await self.page_provider.get_current_page()
            await self._process_group(page, category, remaining, await self._load_profile())
        except Exception:  # noqa: BLE001
            logger.warning("deferred %s batch failed", category, exc_info=True)

    async def _poll_loop(self) -> None:
        while self._active:
            await self._sleep(self.poll_interval)
            task = asyncio.create_task(self._tick())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _tick(self) -> None:
        try:
            await self.poll_once()
        except Exception:  # noqa: BLE001
            logger.debug("form change poll failed", exc_info=True)

    async def _load_profile(self) -> Optional[Mapping[str, Any]]:
        if self.profile_provider is None:
            return None
        try:
            return await self.profile_provider.get_auto_fill_data()
        except Exception:  # noqa: BLE001
            logger.warning("profile data unavailable for answers", exc_info=True)
            return None


__all__ = ["ChangeWatcher"]
