"""Records a human's interaction with the current page into a saved workflow."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from formflow_engine.browser import page_scripts
from formflow_engine.core.errors import PageUnavailableError
from formflow_engine.core.types import PageController, PageProvider
from formflow_engine.workflow.history import detect_platform
from formflow_engine.workflow.models import ElementFingerprint, RecordedAction, SavedWorkflow
from formflow_engine.workflow.optimizer import StepOptimizer
from formflow_engine.workflow.store import WorkflowStore

logger = logging.getLogger(__name__)

NAMED_KEYS = ("Tab", "Enter", "Escape")


def _epoch_ms() -> float:
    return time.time() * 1000.0


@dataclass
class RecordingSession:
    """Append-only action log of one recording run."""

    session_id: str
    started_at: float
    name: Optional[str] = None
    last_url: str = ""
    actions: List[RecordedAction] = field(default_factory=list)
    visited_urls: List[str] = field(default_factory=list)

    def relative(self, epoch_ms: float) -> float:
        """Convert a page timestamp to ms since session start, never going backwards."""

        offset = max(float(epoch_ms) - self.started_at, 0.0)
        if self.actions:
            offset = max(offset, self.actions[-1].timestamp)
        return offset

    def append(self, action: RecordedAction) -> None:
        self.actions.append(action)
        if action.url and action.url not in self.visited_urls:
            self.visited_urls.append(action.url)

    def duration_ms(self, now_ms: float) -> float:
        return max(now_ms - self.started_at, 0.0)


@dataclass
class RecordingStartResult:
    success: bool
    session_id: Optional[str] = None
    already_recording: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "session_id": self.session_id,
            "already_recording": self.already_recording,
            "message": self.message,
        }


@dataclass
class RecordingStopResult:
    success: bool
    workflow: Optional[SavedWorkflow] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "workflow": self.workflow.model_dump(mode="json") if self.workflow else None,
            "message": self.message,
        }


class Recorder:
    """Owns at most one recording session at a time."""

    def __init__(
        self,
        page_provider: PageProvider,
        store: WorkflowStore,
        *,
        optimizer: StepOptimizer | None = None,
        poll_interval: float = 1.0,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.page_provider = page_provider
        self.store = store
        self.optimizer = optimizer or StepOptimizer()
        self.poll_interval = poll_interval
        self._clock = clock or _epoch_ms
        self._sleep = sleep or asyncio.sleep
        self._session: RecordingSession | None = None
        self._poll_task: asyncio.Task | None = None

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    async def start(self, name: str | None = None) -> RecordingStartResult:
        if self._session is not None:
            return RecordingStartResult(
                success=True,
                session_id=self._session.session_id,
                already_recording=True,
                message="Recording already in progress",
            )
        try:
            page = await self.page_provider.get_current_page()
            url = await page.url()
            await self._install(page)
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not start recording: %s", exc, exc_info=True)
            return RecordingStartResult(success=False, message=f"Failed to start recording: {exc}")

        session = RecordingSession(
            session_id=f"recording_{uuid.uuid4().hex[:12]}",
            started_at=self._clock(),
            name=name,
            last_url=url,
        )
        if url:
            session.visited_urls.append(url)
        self._session = session
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("recording started: %s", session.session_id)
        return RecordingStartResult(success=True, session_id=session.session_id, message="Recording started")

    async def stop(self, name: str | None = None) -> RecordingStopResult:
        session = self._session
        if session is None:
            return RecordingStopResult(success=False, message="Not currently recording")

        await self._cancel_polling()
        try:
            page = await self.page_provider.get_current_page()
            await self._drain(page, session)
            await page.evaluate(page_scripts.RECORDER_UNINSTALL)
        except Exception:  # noqa: BLE001
            logger.warning("final drain failed; keeping actions captured so far", exc_info=True)
        self._session = None
        ended_at = self._clock()

        if not session.actions:
            logger.info("recording %s ended with no actions", session.session_id)
            return RecordingStopResult(success=False, message="No actions recorded")

        steps = self.optimizer.optimize(session.actions)
        workflow = SavedWorkflow(
            name=name or session.name or f"Recorded Workflow {datetime.now(timezone.utc):%Y-%m-%d}",
            platform=detect_platform(session.visited_urls),
            application_type="recorded",
            steps=steps,
            duration=session.duration_ms(ended_at),
            action_count=len(session.actions),
            optimized_action_count=len(steps),
        )
        try:
            await self.store.save(workflow)
        except Exception as exc:  # noqa: BLE001
            logger.warning("failed to persist recorded workflow", exc_info=True)
            return RecordingStopResult(success=False, workflow=workflow, message=f"Failed to save workflow: {exc}")
        logger.info(
            "recording %s saved as %s (%d actions -> %d steps)",
            session.session_id,
            workflow.id,
            len(session.actions),
            len(steps),
        )
        return RecordingStopResult(
            success=True,
            workflow=workflow,
            message=f"Recorded {len(steps)} steps",
        )

    def status(self) -> Dict[str, Any]:
        session = self._session
        return {
            "is_recording": session is not None,
            "session_id": session.session_id if session else None,
            "duration_ms": session.duration_ms(self._clock()) if session else 0.0,
            "action_count": len(session.actions) if session else 0,
        }

    async def poll_once(self) -> int:
        """Drain captured page events and detect location changes.

        Returns the number of actions appended to the session.
        """

        session = self._session
        if session is None:
            return 0
        page = await self.page_provider.get_current_page()
        return await self._drain(page, session)

    async def _drain(self, page: PageController, session: RecordingSession) -> int:
        payload = await page.evaluate(page_scripts.RECORDER_DRAIN) or {}
        appended = 0
        for raw in payload.get("actions") or []:
            action = self._to_action(raw, session)
            if action is not None:
                session.append(action)
                appended += 1

        current_url = str(payload.get("url") or "") or await page.url()
        if current_url and current_url != session.last_url:
            session.append(
                RecordedAction(
                    timestamp=session.relative(self._clock()),
                    type="navigation",
                    element=ElementFingerprint(),
                    data={"fromUrl": session.last_url, "toUrl": current_url},
                    url=current_url,
                )
            )
            session.last_url = current_url
            appended += 1
        if not payload.get("installed", False):
            await self._install(page)
        return appended

    def _to_action(self, raw: Dict[str, Any], session: RecordingSession) -> Optional[RecordedAction]:
        try:
            return RecordedAction(
                timestamp=session.relative(float(raw.get("timestamp") or self._clock())),
                type=raw.get("type"),
                element=ElementFingerprint.from_page_payload(raw.get("element")),
                data=raw.get("data"),
                url=str(raw.get("url") or ""),
            )
        except (ValidationError, TypeError, ValueError):
            logger.debug("dropping unrecognised page event %r", raw, exc_info=True)
            return None

    async def _install(self, page: PageController) -> None:
        await page.evaluate(page_scripts.RECORDER_INSTALL, {"keys": list(NAMED_KEYS)})

    async def _poll_loop(self) -> None:
        while self._session is not None:
            await self._sleep(self.poll_interval)
            try:
                await self.poll_once()
            except PageUnavailableError:
                logger.warning("page unavailable during recording poll")
            except Exception:  # noqa: BLE001
                logger.debug("recording poll failed", exc_info=True)

    async def _cancel_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["Recorder", "RecordingSession", "RecordingStartResult", "RecordingStopResult", "NAMED_KEYS"]
