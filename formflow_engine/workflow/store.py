"""Persistence of saved workflows in the key-value store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from formflow_engine.core.errors import WorkflowNotFoundError
from formflow_engine.core.types import KeyValueStore

from .history import detect_platform
from .models import SavedWorkflow, workflow_id

logger = logging.getLogger(__name__)

WORKFLOWS_KEY = "recorded_workflows"
EXPORT_VERSION = "1.0"
GENERIC_WORKFLOW_ID = "generic_fast_apply"


class WorkflowStore:
    """CRUD over the ``recorded_workflows`` document.

    The whole collection is read and rewritten on each mutation, so
    concurrent writers resolve as last-writer-wins.
    """

    def __init__(self, store: KeyValueStore, *, key: str = WORKFLOWS_KEY) -> None:
        self.store = store
        self.key = key

    async def list_workflows(self) -> List[SavedWorkflow]:
        raw = await self.store.get(self.key)
        if not raw:
            return []
        if not isinstance(raw, list):
            logger.warning("ignoring %s: expected a list, got %s", self.key, type(raw).__name__)
            return []
        workflows: List[SavedWorkflow] = []
        for entry in raw:
            try:
                workflows.append(SavedWorkflow.model_validate(entry))
            except ValidationError:
                entry_id = entry.get("id") if isinstance(entry, dict) else None
                logger.warning("skipping malformed workflow entry %s", entry_id, exc_info=True)
        return workflows

    async def get(self, workflow_id: str) -> Optional[SavedWorkflow]:
        for workflow in await self.list_workflows():
            if workflow.id == workflow_id:
                return workflow
        return None

    async def require(self, workflow_id: str) -> SavedWorkflow:
        workflow = await self.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def save(self, workflow: SavedWorkflow) -> SavedWorkflow:
        workflows = await self.list_workflows()
        for position, existing in enumerate(workflows):
            if existing.id == workflow.id:
                workflows[position] = workflow
                break
        else:
            workflows.append(workflow)
        await self._write(workflows)
        logger.info("saved workflow %s (%d steps)", workflow.id, len(workflow.steps))
        return workflow

    async def delete(self, workflow_id: str) -> bool:
        workflows = await self.list_workflows()
        remaining = [workflow for workflow in workflows if workflow.id != workflow_id]
        if len(remaining) == len(workflows):
            return False
        await self._write(remaining)
        return True

    async def duplicate(self, workflow_id: str) -> SavedWorkflow:
        original = await self.require(workflow_id)
        copy = original.model_copy(
            deep=True,
            update={
                "id": workflow_id_for_copy(),
                "name": f"{original.name} (Copy)",
                "recorded_at": datetime.now(timezone.utc),
                "usage_count": 0,
                "success_rate": 1.0,
                "last_used": None,
            },
        )
        return await self.save(copy)

    async def record_execution(self, workflow_id: str, success: bool) -> Optional[SavedWorkflow]:
        workflow = await self.get(workflow_id)
        if workflow is None:
            return None
        workflow.record_outcome(success)
        return await self.save(workflow)

    async def for_platform(self, platform: str) -> List[SavedWorkflow]:
        workflows = [workflow for workflow in await self.list_workflows() if workflow.platform == platform]
        return sorted(workflows, key=lambda workflow: (workflow.success_rate, workflow.usage_count), reverse=True)

    async def optimal_for_url(
        self,
        url: str,
        fallback_id: str | None = GENERIC_WORKFLOW_ID,
    ) -> Optional[SavedWorkflow]:
        """Best-rated workflow for the platform behind ``url``.

        Falls back to the workflow stored under ``fallback_id`` when the
        platform has none.
        """

        ranked = await self.for_platform(detect_platform([url]))
        if ranked:
            return ranked[0]
        if fallback_id is None:
            return None
        return await self.get(fallback_id)

    async def seed(self, workflows: Iterable[SavedWorkflow]) -> int:
        """Add bundled workflows whose ids are not stored yet; never overwrites."""

        existing = await self.list_workflows()
        known = {workflow.id for workflow in existing}
        added: List[SavedWorkflow] = []
        for workflow in workflows:
            if workflow.id not in known:
                known.add(workflow.id)
                added.append(workflow)
        if added:
            await self._write(existing + added)
            logger.info("seeded %d bundled workflows", len(added))
        return len(added)

    async def export_workflows(self) -> Dict[str, Any]:
        workflows = await self.list_workflows()
        total_uses = sum(workflow.usage_count for workflow in workflows)
        average = sum(workflow.success_rate for workflow in workflows) / len(workflows) if workflows else 0.0
        return {
            "version": EXPORT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "entries": [workflow.model_dump(mode="json") for workflow in workflows],
            "stats": {
                "total_workflows": len(workflows),
                "total_uses": total_uses,
                "average_success_rate": average,
            },
        }

    async def import_workflows(self, document: Dict[str, Any]) -> int:
        """Merge exported workflows into the store; imported ids overwrite."""

        entries = (document or {}).get("entries")
        if not isinstance(entries, list):
            raise ValueError("Invalid workflow export: missing entries list")
        workflows = {workflow.id: workflow for workflow in await self.list_workflows()}
        imported = 0
        for entry in entries:
            try:
                workflow = SavedWorkflow.model_validate(entry)
            except ValidationError:
                logger.warning("skipping invalid imported workflow", exc_info=True)
                continue
            workflows[workflow.id] = workflow
            imported += 1
        await self._write(list(workflows.values()))
        return imported

    async def _write(self, workflows: List[SavedWorkflow]) -> None:
        await self.store.set(self.key, [workflow.model_dump(mode="json") for workflow in workflows])


def workflow_id_for_copy() -> str:
    return workflow_id("workflow_copy")


__all__ = ["WorkflowStore", "WORKFLOWS_KEY", "EXPORT_VERSION", "GENERIC_WORKFLOW_ID"]
