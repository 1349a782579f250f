"""Key-value stores holding opaque JSON documents."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict

from formflow_engine.utils.file_ops import write_text

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Process-local store. Documents are deep-copied on the way in and out."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """Stores every key as one JSON file under ``root``.

    Writes are last-writer-wins; there is no locking across processes.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def _path_for(self, key: str) -> Path:
        safe = "".join(char if char.isalnum() or char in "-_" else "_" for char in key)
        return self.root / f"{safe}.json"

    async def get(self, key: str) -> Any:
        path = self._path_for(key)
        if not path.exists():
            return None
        async with self._lock:
            raw = path.read_text(encoding="utf-8")
        return json.loads(raw) if raw.strip() else None

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        async with self._lock:
            write_text(self._path_for(key), payload)
        logger.debug("stored key %s", key)

    async def remove(self, key: str) -> None:
        path = self._path_for(key)
        async with self._lock:
            if path.exists():
                path.unlink()


__all__ = ["InMemoryStore", "JsonFileStore"]
