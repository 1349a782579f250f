"""Sequential replay of saved workflows against the current page."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, assert_never

from formflow_engine.browser.element_resolver import ElementResolver
from formflow_engine.core.errors import StepExecutionError
from formflow_engine.core.types import LiveElement, PageController, PageProvider, ProfileProvider
from formflow_engine.workflow.models import (
    ClickElementStep,
    ElementFingerprint,
    ExecutionOptions,
    ExecutionResult,
    FillFieldStep,
    KeyPressStep,
    NavigateStep,
    SelectOptionStep,
    WorkflowStep,
)
from formflow_engine.workflow.store import WorkflowStore

logger = logging.getLogger(__name__)

BASE_DELAYS_MS: Dict[str, float] = {"fast": 100.0, "normal": 300.0, "slow": 800.0}
JITTER_MS = 200.0

# keyword in name/id/placeholder -> auto-fill key
PROFILE_KEYWORDS = (
    (("email",), "email"),
    (("phone",), "phone"),
    (("first", "fname"), "first_name"),
    (("last", "lname"), "last_name"),
)


def profile_value_for(fingerprint: ElementFingerprint, profile: Mapping[str, Any] | None) -> Optional[str]:
    if not profile:
        return None
    identifiers = fingerprint.identifiers()
    for keywords, key in PROFILE_KEYWORDS:
        if any(keyword in identifiers for keyword in keywords):
            value = profile.get(key)
            return str(value) if value else None
    return None


class Executor:
    """Replays workflow steps strictly in order, skipping steps that cannot run.

    Only a missing workflow or an unobtainable page aborts a run; every other
    failure is recorded against its step and the run continues.
    """

    def __init__(
        self,
        page_provider: PageProvider,
        store: WorkflowStore,
        *,
        resolver: ElementResolver | None = None,
        profile_provider: ProfileProvider | None = None,
        base_delays_ms: Mapping[str, float] | None = None,
        jitter_ms: float = JITTER_MS,
        use_vision: bool = False,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.page_provider = page_provider
        self.store = store
        self.resolver = resolver or ElementResolver()
        self.profile_provider = profile_provider
        self.base_delays_ms = dict(BASE_DELAYS_MS)
        self.base_delays_ms.update(base_delays_ms or {})
        self.jitter_ms = jitter_ms
        self.use_vision = use_vision
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._cancelled = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Stop the current run before its next step."""

        self._cancelled = True

    async def execute(self, workflow_id: str, options: ExecutionOptions | None = None) -> ExecutionResult:
        options = options or ExecutionOptions()
        workflow = await self.store.get(workflow_id)
        if workflow is None:
            return ExecutionResult(success=False, status="aborted", message=f"Workflow {workflow_id} not found")
        try:
            page = await self.page_provider.get_current_page()
        except Exception as exc:  # noqa: BLE001
            logger.warning("cannot replay %s: page unavailable", workflow_id, exc_info=True)
            return ExecutionResult(
                success=False,
                status="aborted",
                total_steps=len(workflow.steps),
                message=f"Page unavailable: {exc}",
            )

        profile = await self._load_profile() if options.use_profile_data else None
        logger.info("executing workflow %s (%d steps, speed=%s)", workflow.name, len(workflow.steps), options.speed)

        self._cancelled = False
        self._running = True
        executed = 0
        cancelled = False
        failed: List[Dict[str, Any]] = []
        try:
            for step in workflow.steps:
                if self._cancelled:
                    cancelled = True
                    break
                try:
                    await self._execute_step(page, step, profile)
                    executed += 1
                except StepExecutionError as err:
                    logger.warning("step %d skipped: %s", step.step_index, err)
                    failed.append(err.as_dict())
                except Exception as exc:  # noqa: BLE001
                    logger.warning("step %d failed: %s", step.step_index, exc, exc_info=True)
                    failed.append(
                        StepExecutionError(str(exc), step_index=step.step_index, reason="action_failed").as_dict()
                    )
                await self._pace(options.speed)
        finally:
            self._running = False

        total = len(workflow.steps)
        success = executed == total
        try:
            await self.store.record_execution(workflow_id, success)
        except Exception:  # noqa: BLE001
            logger.warning("failed to update stats for %s", workflow_id, exc_info=True)

        message = f"Executed {executed}/{total} steps"
        if cancelled:
            message += " (cancelled)"
        return ExecutionResult(
            success=success,
            status="completed" if success else "partially_completed",
            executed_steps=executed,
            total_steps=total,
            message=message,
            failed_steps=failed,
            cancelled=cancelled,
        )

    async def _execute_step(self, page: PageController, step: WorkflowStep, profile: Mapping[str, Any] | None) -> None:
        match step:
            case FillFieldStep():
                element = await self._resolve(page, step)
                value = profile_value_for(step.element, profile) or step.value
                await page.input_text_element_node(self.use_vision, element, value)
            case ClickElementStep():
                element = await self._resolve(page, step)
                await page.click_element_node(self.use_vision, element)
            case SelectOptionStep():
                element = await self._resolve(page, step)
                await page.select_dropdown_option(element.index, await self._option_text(page, element, step))
            case KeyPressStep():
                if not step.key:
                    raise StepExecutionError("no key recorded", step_index=step.step_index, reason="missing_payload")
                await page.send_keys(step.key)
            case NavigateStep():
                if not step.to_url:
                    raise StepExecutionError("no target url", step_index=step.step_index, reason="missing_payload")
                await page.navigate_to(step.to_url)
            case _:
                assert_never(step)

    async def _resolve(self, page: PageController, step: WorkflowStep) -> LiveElement:
        state = await page.get_state()
        element = self.resolver.resolve(step.element, state)
        if element is None:
            raise StepExecutionError(
                f"element not found for step {step.step_index}: {step.description}",
                step_index=step.step_index,
                reason="element_not_found",
            )
        return element

    async def _option_text(self, page: PageController, element: LiveElement, step: SelectOptionStep) -> str:
        wanted = [value.lower() for value in (step.selected_text, step.selected_value) if value]
        if not wanted:
            raise StepExecutionError("no option recorded", step_index=step.step_index, reason="missing_payload")
        options = await page.get_dropdown_options(element.index)
        if not options:
            return step.selected_text or step.selected_value
        for option in options:
            if option["text"].strip().lower() in wanted or option["value"].strip().lower() in wanted:
                return option["text"]
        raise StepExecutionError(
            f"option {wanted[0]!r} not available", step_index=step.step_index, reason="option_not_found"
        )

    async def _load_profile(self) -> Optional[Mapping[str, Any]]:
        if self.profile_provider is None:
            return None
        try:
            return await self.profile_provider.get_auto_fill_data()
        except Exception:  # noqa: BLE001
            logger.warning("profile data unavailable; replaying recorded values", exc_info=True)
            return None

    async def _pace(self, speed: str) -> None:
        base = self.base_delays_ms.get(speed, self.base_delays_ms["fast"])
        delay_ms = base + self._rng.uniform(0, self.jitter_ms)
        await self._sleep(delay_ms / 1000.0)


__all__ = ["Executor", "BASE_DELAYS_MS", "profile_value_for"]
