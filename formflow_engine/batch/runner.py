"""Orchestration boundary for "apply this whole form now" style calls."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from formflow_engine.answers.oracle import OpenAIOracle
from formflow_engine.answers.question_cache import QuestionCache
from formflow_engine.answers.rate_limiter import RateLimiter
from formflow_engine.answers.templates import field_template_answer
from formflow_engine.config_loader import section
from formflow_engine.core.errors import RecordingStateError
from formflow_engine.core.types import KeyValueStore, LiveElement, Oracle, PageController, PageProvider, ProfileProvider
from formflow_engine.observer.change_watcher import ChangeWatcher
from formflow_engine.observer.form_fields import categorize_field
from formflow_engine.profile.resume import StoredProfileProvider
from formflow_engine.recording.recorder import Recorder, RecordingStartResult, RecordingStopResult
from formflow_engine.replay.executor import Executor
from formflow_engine.storage.kv_store import InMemoryStore, JsonFileStore
from formflow_engine.utils.logging_utils import configure_from_settings
from formflow_engine.workflow.models import ExecutionOptions, ExecutionResult
from formflow_engine.workflow.optimizer import StepOptimizer
from formflow_engine.workflow.store import WorkflowStore

logger = logging.getLogger(__name__)

NAVIGATION_TEXTS = ("next", "continue", "proceed", "review")
SUBMIT_TEXTS = ("submit", "apply", "send application")
SETTLE_BY_MODE = {"aggressive": 0.5, "smart": 1.0, "conservative": 2.0}

# (group, identifier keywords, auto-fill key or literal answer)
FIELD_RULES: Sequence[Tuple[str, Tuple[str, ...], str]] = (
    ("personal", ("firstname", "first_name", "fname"), "first_name"),
    ("personal", ("lastname", "last_name", "lname"), "last_name"),
    ("personal", ("email",), "email"),
    ("personal", ("phone", "mobile"), "phone"),
    ("professional", ("experience", "years"), "experience_years"),
    ("professional", ("title",), "current_title"),
    ("professional", ("company",), "current_company"),
    ("standard", ("degree", "bachelor", "authorized"), "=Yes"),
    ("standard", ("sponsorship", "visa"), "=No"),
    ("standard", ("relocate",), "willing_to_relocate|Yes"),
    ("standard", ("remote",), "remote_work|Yes"),
    ("standard", ("commute", "onsite"), "=Yes"),
)


def _identifiers(element: LiveElement) -> str:
    return " ".join([element.name, element.element_id, element.placeholder, element.text]).lower()


def detect_field_value(
    element: LiveElement,
    profile: Mapping[str, Any],
    *,
    groups: Iterable[str] | None = None,
) -> Optional[str]:
    """Pick a value for ``element`` from the keyword rules, or None."""

    allowed = set(groups) if groups is not None else None
    identifiers = _identifiers(element)
    for group, keywords, source in FIELD_RULES:
        if allowed is not None and group not in allowed:
            continue
        if not any(keyword in identifiers for keyword in keywords):
            continue
        if source.startswith("="):
            return source[1:]
        key, _, fallback = source.partition("|")
        value = profile.get(key)
        return str(value) if value else (fallback or None)
    return None


@dataclass
class FillReport:
    success: bool
    fields_processed: int = 0
    fields_filled: int = 0
    skipped: int = 0
    timed_out: bool = False
    errors: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchApplyReport:
    success: bool
    pages: int = 0
    fields_processed: int = 0
    buttons_clicked: int = 0
    questions_answered: int = 0
    submitted: bool = False
    errors: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BatchRunner:
    """Holds one Recorder, Executor, ChangeWatcher and QuestionCache together."""

    def __init__(
        self,
        page_provider: PageProvider,
        *,
        recorder: Recorder,
        executor: Executor,
        watcher: ChangeWatcher,
        cache: QuestionCache,
        workflows: WorkflowStore,
        profile_provider: ProfileProvider | None = None,
        clock: Callable[[], float] | None = None,
        page_settle_ms: int = 1500,
        fast_fill_timeout_seconds: float = 30,
        max_steps: int = 10,
        container: str = "body",
    ) -> None:
        self.page_provider = page_provider
        self.recorder = recorder
        self.executor = executor
        self.watcher = watcher
        self.cache = cache
        self.workflows = workflows
        self.profile_provider = profile_provider
        self._clock = clock or time.monotonic
        self.page_settle_ms = page_settle_ms
        self.fast_fill_timeout_seconds = fast_fill_timeout_seconds
        self.max_steps = max_steps
        self.container = container

    # Recording ---------------------------------------------------------
    async def start_recording(self, name: str | None = None) -> RecordingStartResult:
        if self.recorder.is_recording:
            error = RecordingStateError("A recording session is already active")
            logger.warning("%s", error)
            session = self.recorder.session
            return RecordingStartResult(
                success=False,
                session_id=session.session_id if session else None,
                already_recording=True,
                message=str(error),
            )
        return await self.recorder.start(name)

    async def stop_recording(self, name: str | None = None) -> RecordingStopResult:
        return await self.recorder.stop(name)

    # Replay ------------------------------------------------------------
    async def execute_workflow(self, workflow_id: str, options: ExecutionOptions | None = None) -> ExecutionResult:
        return await self.executor.execute(workflow_id, options)

    def cancel_execution(self) -> None:
        self.executor.cancel()

    # Fast paths --------------------------------------------------------
    async def fast_form_fill(
        self,
        field_types: Sequence[str] | None = None,
        use_templates: bool = True,
        timeout_seconds: float | None = None,
    ) -> FillReport:
        """Fill every interactable form control that the keyword rules recognise.

        The budget is checked before each field; fields left when it runs out
        are counted as skipped. Succeeds when fewer than half of the attempted
        fields raised errors.
        """

        profile = await self._load_profile()
        if not profile:
            return FillReport(success=False, message="No resume data available for fast fill")
        try:
            page = await self.page_provider.get_current_page()
            state = await page.get_state()
        except Exception as exc:  # noqa: BLE001
            logger.warning("fast fill could not read the page", exc_info=True)
            return FillReport(success=False, message=f"Cannot access page elements: {exc}")

        groups = set(field_types) if field_types else {"personal", "professional", "standard"}
        if not use_templates:
            groups.discard("standard")
        candidates = [element for element in state.ordered() if element.is_form_control() and element.interactable]

        budget = self.fast_fill_timeout_seconds if timeout_seconds is None else timeout_seconds
        report = FillReport(success=False)
        started = self._clock()
        for position, element in enumerate(candidates):
            if self._clock() - started > budget:
                report.timed_out = True
                report.skipped = len(candidates) - position
                logger.info("fast fill budget exhausted; skipping %d fields", report.skipped)
                break
            value = detect_field_value(element, profile, groups=groups)
            if not value:
                continue
            report.fields_processed += 1
            try:
                await self._fill(page, element, value)
                report.fields_filled += 1
            except Exception as exc:  # noqa: BLE001
                report.errors.append(f"Field {element.index}: {exc}")
        report.elapsed_ms = (self._clock() - started) * 1000.0
        report.success = len(report.errors) < report.fields_processed / 2
        report.message = f"Fast fill completed: {report.fields_filled} fields in {report.elapsed_ms:.0f}ms"
        return report

    async def batch_apply(
        self,
        mode: str = "smart",
        platform: str = "other",
        auto_submit: bool = False,
        skip_ai_questions: bool = True,
        max_steps: int | None = None,
    ) -> BatchApplyReport:
        profile = await self._load_profile()
        if not profile:
            return BatchApplyReport(success=False, message="No resume data found. Please set up your resume first.")
        try:
            page = await self.page_provider.get_current_page()
        except Exception as exc:  # noqa: BLE001
            return BatchApplyReport(success=False, message=f"Batch application failed: {exc}")

        steps = self.max_steps if max_steps is None else max_steps
        logger.info("batch apply on %s (mode=%s, max_steps=%d)", platform, mode, steps)
        settle_ms = int(self.page_settle_ms * SETTLE_BY_MODE.get(mode, 1.0))
        report = BatchApplyReport(success=False)
        started = self._clock()
        aborted = False
        for _ in range(max(steps, 0)):
            report.pages += 1
            try:
                state = await page.get_state()
                await self._rapid_fill(page, state.ordered(), profile, report)
                await self._answer_free_text(page, profile, report, use_oracle=not skip_ai_questions)
                if not await self._click_first(page, NAVIGATION_TEXTS, report, exclude=SUBMIT_TEXTS):
                    break
                await page.wait_for_page_load_state(settle_ms)
            except Exception as exc:  # noqa: BLE001
                logger.warning("batch apply stopped on page %d", report.pages, exc_info=True)
                report.errors.append(f"Page {report.pages}: {exc}")
                aborted = True
                break
        if auto_submit and not aborted:
            try:
                report.submitted = await self._click_first(page, SUBMIT_TEXTS, report)
            except Exception as exc:  # noqa: BLE001
                logger.warning("batch apply could not submit", exc_info=True)
                report.errors.append(f"Submit: {exc}")
        report.elapsed_ms = (self._clock() - started) * 1000.0
        report.success = not report.errors
        report.message = (
            f"Batch application completed in {report.elapsed_ms:.0f}ms: {report.fields_processed} fields, "
            f"{report.buttons_clicked} buttons, {report.questions_answered} questions"
        )
        return report

    # Questions ---------------------------------------------------------
    async def start_watching(self, container: str | None = None) -> bool:
        return await self.watcher.start(container or self.container)

    async def stop_watching(self) -> None:
        await self.watcher.stop()

    async def answer_questions(
        self,
        questions: Sequence[str],
        context: Mapping[str, Any] | None = None,
    ) -> Dict[str, str]:
        """Resolve question texts through templates, the cache and the oracle.

        When the oracle budget is spent the affected questions fall back to
        templates instead of waiting.
        """

        profile = await self._load_profile()
        grouped: Dict[str, List[str]] = {}
        for question in questions:
            grouped.setdefault(categorize_field({"textContent": question}), []).append(question)
        answers: Dict[str, str] = {}
        for category, texts in grouped.items():
            resolved = await self.watcher.resolve_questions(category, texts, profile, context)
            if resolved is None:
                resolved = [field_template_answer(text, profile) for text in texts]
            answers.update(zip(texts, resolved))
        return {question: answers[question] for question in questions}

    # Helpers -----------------------------------------------------------
    async def _rapid_fill(
        self,
        page: PageController,
        elements: Sequence[LiveElement],
        profile: Mapping[str, Any],
        report: BatchApplyReport,
    ) -> None:
        for element in elements:
            if not element.is_form_control() or not element.interactable or element.tag == "textarea":
                continue
            value = detect_field_value(element, profile)
            if not value:
                continue
            try:
                await self._fill(page, element, value)
                report.fields_processed += 1
            except Exception as exc:  # noqa: BLE001
                report.errors.append(f"Field {element.index}: {exc}")

    async def _answer_free_text(
        self,
        page: PageController,
        profile: Mapping[str, Any],
        report: BatchApplyReport,
        *,
        use_oracle: bool,
    ) -> None:
        state = await page.get_state()
        targets = [
            (element, element.text or element.placeholder or element.attributes.get("aria-label", ""))
            for element in state.ordered()
            if element.tag == "textarea" and element.interactable
        ]
        targets = [(element, question) for element, question in targets if question]
        if not targets:
            return
        if use_oracle:
            resolved = await self.answer_questions([question for _, question in targets])
        else:
            resolved = {}
            for _, question in targets:
                cached = await self.cache.lookup(question, None, profile)
                resolved[question] = cached or field_template_answer(question, profile)
        for element, question in targets:
            try:
                await page.input_text_element_node(False, element, resolved[question])
                report.questions_answered += 1
            except Exception as exc:  # noqa: BLE001
                report.errors.append(f"Question {element.index}: {exc}")

    async def _click_first(
        self,
        page: PageController,
        texts: Sequence[str],
        report: BatchApplyReport,
        *,
        exclude: Sequence[str] = (),
    ) -> bool:
        state = await page.get_state()
        for element in state.ordered():
            if element.tag != "button" or not element.interactable:
                continue
            label = element.text.lower()
            if any(text in label for text in exclude) or not any(text in label for text in texts):
                continue
            try:
                await page.click_element_node(False, element)
            except Exception as exc:  # noqa: BLE001
                report.errors.append(f"Button {element.index}: {exc}")
                continue
            report.buttons_clicked += 1
            return True
        return False

    async def _fill(self, page: PageController, element: LiveElement, value: str) -> None:
        if element.tag == "select":
            await page.select_dropdown_option(element.index, value)
        else:
            await page.input_text_element_node(False, element, value)

    async def _load_profile(self) -> Optional[Mapping[str, Any]]:
        if self.profile_provider is None:
            return None
        try:
            return await self.profile_provider.get_auto_fill_data()
        except Exception:  # noqa: BLE001
            logger.warning("profile data unavailable", exc_info=True)
            return None


def _build_store(settings: Dict[str, Any]) -> KeyValueStore:
    storage = section(settings, "storage")
    if storage.get("backend", "json") == "memory":
        return InMemoryStore()
    return JsonFileStore(Path(storage.get("root", ".formflow")))


def _build_oracle(settings: Dict[str, Any]) -> Optional[Oracle]:
    oracle_config = section(settings, "oracle")
    if oracle_config.get("provider", "openai") != "openai":
        return None
    if not os.getenv(str(oracle_config.get("api_key_env", "OPENAI_API_KEY"))):
        logger.info("no oracle API key configured; questions use cache and templates only")
        return None
    return OpenAIOracle.from_settings(oracle_config)


def build_runner(
    settings: Dict[str, Any] | None,
    page_provider: PageProvider,
    *,
    store: KeyValueStore | None = None,
    oracle: Oracle | None = None,
    profile_provider: ProfileProvider | None = None,
) -> BatchRunner:
    """Factory for BatchRunner that reads component limits from settings."""

    settings = settings or {}
    configure_from_settings(settings)
    kv_store = store or _build_store(settings)
    workflows = WorkflowStore(kv_store)
    profiles = profile_provider or StoredProfileProvider(kv_store)

    executor_config = section(settings, "executor")
    cache_config = section(settings, "cache")
    rate_config = section(settings, "rate_limit")
    watcher_config = section(settings, "watcher")
    recorder_config = section(settings, "recorder")
    batch_config = section(settings, "batch")

    cache = QuestionCache(
        kv_store,
        storage_key=str(cache_config.get("storage_key", "question_cache")),
        max_entries=int(cache_config.get("max_entries", 1000)),
        ttl_seconds=float(cache_config.get("ttl_days", 30)) * 24 * 60 * 60,
        recency_decay=float(cache_config.get("recency_decay_seconds", 7 * 24 * 60 * 60)),
    )
    recorder = Recorder(
        page_provider,
        workflows,
        optimizer=StepOptimizer(debounce_ms=float(recorder_config.get("debounce_ms", 100))),
        poll_interval=float(recorder_config.get("poll_interval", 1.0)),
    )
    executor = Executor(
        page_provider,
        workflows,
        profile_provider=profiles,
        base_delays_ms=executor_config.get("base_delays_ms"),
        jitter_ms=float(executor_config.get("jitter_ms", 200)),
        use_vision=bool(executor_config.get("use_vision", False)),
    )
    watcher = ChangeWatcher(
        page_provider,
        cache,
        rate_limiter=RateLimiter(
            max_requests=int(rate_config.get("max_requests", 10)),
            window_seconds=float(rate_config.get("window_seconds", 60)),
        ),
        oracle=oracle if oracle is not None else _build_oracle(settings),
        profile_provider=profiles,
        poll_interval=float(watcher_config.get("poll_interval", 1.0)),
        retry_delay=float(watcher_config.get("retry_delay", 2.0)),
    )
    return BatchRunner(
        page_provider,
        recorder=recorder,
        executor=executor,
        watcher=watcher,
        cache=cache,
        workflows=workflows,
        profile_provider=profiles,
        page_settle_ms=int(batch_config.get("page_settle_ms", 1500)),
        fast_fill_timeout_seconds=float(batch_config.get("fast_fill_timeout_seconds", 30)),
        max_steps=int(batch_config.get("max_steps", 10)),
        container=str(watcher_config.get("container", "body")),
    )


__all__ = ["BatchRunner", "BatchApplyReport", "FillReport", "build_runner", "detect_field_value"]
