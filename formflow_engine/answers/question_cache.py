"""Concept-keyed cache of question answers with TTL and capacity eviction."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from formflow_engine.core.types import KeyValueStore
from formflow_engine.storage.kv_store import InMemoryStore

from .concepts import ConceptExtractor, concept_hash, extract_concepts
from .templates import pattern_answer, personalize, sanitize_context

logger = logging.getLogger(__name__)

CACHE_KEY = "question_cache"
EXPORT_VERSION = "1.0"
MAX_ENTRIES = 1000
TTL_SECONDS = 30 * 24 * 60 * 60
RECENCY_DECAY_SECONDS = 7 * 24 * 60 * 60
QUESTION_TEXT_LIMIT = 200


class CachedAnswer(BaseModel):
    hash: str
    question_text: str
    response: str
    confidence: float = 1.0
    timestamp: float
    last_used: float
    use_count: int = 1
    context: Dict[str, str] = Field(default_factory=dict)

    @field_validator("question_text")
    @classmethod
    def _truncate(cls, value: str) -> str:
        return value[:QUESTION_TEXT_LIMIT]


CacheInput = Union[Tuple[str, str], Mapping[str, Any]]


class QuestionCache:
    """Maps concept hashes of questions to previously produced answers.

    Storage failures are logged and treated as misses; the cache never
    raises on read or write.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        storage_key: str = CACHE_KEY,
        max_entries: int = MAX_ENTRIES,
        ttl_seconds: float = TTL_SECONDS,
        recency_decay: float = RECENCY_DECAY_SECONDS,
        clock: Callable[[], float] | None = None,
        concept_extractor: ConceptExtractor = extract_concepts,
    ) -> None:
        self.store = store or InMemoryStore()
        self.storage_key = storage_key
        self.max_entries = max_entries
        self.ttl_seconds = float(ttl_seconds)
        self.recency_decay = float(recency_decay)
        self._clock = clock or time.time
        self.concept_extractor = concept_extractor
        self._entries: Dict[str, CachedAnswer] = {}
        self._loaded = False

    def __len__(self) -> int:
        return len(self._entries)

    def hash_question(self, question: str) -> str:
        return concept_hash(question, self.concept_extractor)

    async def get(self, question: str, context: Mapping[str, Any] | None = None) -> Optional[str]:
        await self._ensure_loaded()
        key = self.hash_question(question)
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if self._expired(entry, now):
            del self._entries[key]
            await self._persist()
            return None
        entry.last_used = now
        entry.use_count += 1
        await self._persist()
        logger.info("cache hit for question: %s", question[:50])
        return personalize(entry.response, context)

    async def put(
        self,
        question: str,
        answer: str,
        confidence: float = 1.0,
        context: Mapping[str, Any] | None = None,
    ) -> CachedAnswer:
        await self._ensure_loaded()
        entry = self._build_entry(question, answer, confidence, context)
        self._entries[entry.hash] = entry
        if len(self._entries) > self.max_entries:
            self._cleanup()
        await self._persist()
        return entry

    async def put_many(self, entries: Iterable[CacheInput]) -> int:
        """Insert several answers with a single persistence write."""

        await self._ensure_loaded()
        count = 0
        for item in entries:
            if isinstance(item, Mapping):
                entry = self._build_entry(
                    str(item.get("question") or ""),
                    str(item.get("response") or item.get("answer") or ""),
                    float(item.get("confidence") or 1.0),
                    item.get("context"),
                )
            else:
                question, answer = item
                entry = self._build_entry(question, answer, 1.0, None)
            self._entries[entry.hash] = entry
            count += 1
        if len(self._entries) > self.max_entries:
            self._cleanup()
        await self._persist()
        logger.info("batch cached %d responses", count)
        return count

    def pattern_answer(self, question: str, profile: Mapping[str, Any] | None = None) -> Optional[str]:
        return pattern_answer(question, profile)

    async def lookup(
        self,
        question: str,
        context: Mapping[str, Any] | None = None,
        profile: Mapping[str, Any] | None = None,
    ) -> Optional[str]:
        """Resolve from the pattern table, then the entry cache. Never calls the oracle."""

        canned = self.pattern_answer(question, profile)
        if canned is not None:
            return canned
        return await self.get(question, context)

    def stats(self) -> Dict[str, Any]:
        entries = list(self._entries.values())
        if not entries:
            return {
                "total_entries": 0,
                "total_uses": 0,
                "average_confidence": 0.0,
                "oldest_entry": None,
                "newest_entry": None,
                "most_used_question": "None",
                "cache_size": 0,
            }
        most_used = max(entries, key=lambda entry: entry.use_count)
        return {
            "total_entries": len(entries),
            "total_uses": sum(entry.use_count for entry in entries),
            "average_confidence": sum(entry.confidence for entry in entries) / len(entries),
            "oldest_entry": min(entry.timestamp for entry in entries),
            "newest_entry": max(entry.timestamp for entry in entries),
            "most_used_question": most_used.question_text,
            "cache_size": len(entries),
        }

    async def export_cache(self) -> Dict[str, Any]:
        await self._ensure_loaded()
        return {
            "version": EXPORT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "entries": [entry.model_dump(mode="json") for entry in self._entries.values()],
            "stats": self.stats(),
        }

    async def import_cache(self, document: Mapping[str, Any] | str) -> bool:
        try:
            data = json.loads(document) if isinstance(document, str) else dict(document)
            raw_entries = data.get("entries")
            if not isinstance(raw_entries, list):
                return False
            entries = [CachedAnswer.model_validate(raw) for raw in raw_entries]
        except (ValueError, TypeError, ValidationError):
            logger.warning("failed to import question cache", exc_info=True)
            return False
        self._entries = {entry.hash: entry for entry in entries}
        self._loaded = True
        await self._persist()
        logger.info("imported %d cached responses", len(self._entries))
        return True

    async def clear(self) -> None:
        self._entries.clear()
        self._loaded = True
        try:
            await self.store.remove(self.storage_key)
        except Exception:  # noqa: BLE001
            logger.warning("failed to clear question cache storage", exc_info=True)
        logger.info("question cache cleared")

    def score(self, entry: CachedAnswer, now: float) -> float:
        return entry.use_count - (now - entry.last_used) / self.recency_decay

    def _build_entry(
        self,
        question: str,
        answer: str,
        confidence: float,
        context: Mapping[str, Any] | None,
    ) -> CachedAnswer:
        now = self._clock()
        return CachedAnswer(
            hash=self.hash_question(question),
            question_text=question,
            response=answer,
            confidence=confidence,
            timestamp=now,
            last_used=now,
            use_count=1,
            context=sanitize_context(context),
        )

    def _expired(self, entry: CachedAnswer, now: float) -> bool:
        return now - entry.timestamp > self.ttl_seconds

    def _cleanup(self) -> None:
        now = self._clock()
        valid = {key: entry for key, entry in self._entries.items() if not self._expired(entry, now)}
        if len(valid) > self.max_entries:
            ranked: List[Tuple[str, CachedAnswer]] = sorted(
                valid.items(), key=lambda item: (self.score(item[1], now), item[1].last_used)
            )
            for key, _ in ranked[: len(valid) - self.max_entries]:
                del valid[key]
        dropped = len(self._entries) - len(valid)
        self._entries = valid
        logger.info("cache cleanup dropped %d entries, %d remain", dropped, len(valid))

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            raw = await self.store.get(self.storage_key)
        except Exception:  # noqa: BLE001
            logger.warning("failed to load question cache", exc_info=True)
            return
        for item in raw or []:
            try:
                entry = CachedAnswer.model_validate(item)
            except ValidationError:
                logger.warning("skipping malformed cache entry", exc_info=True)
                continue
            self._entries[entry.hash] = entry
        logger.info("loaded %d cached responses", len(self._entries))

    async def _persist(self) -> None:
        payload = [entry.model_dump(mode="json") for entry in self._entries.values()]
        try:
            await self.store.set(self.storage_key, payload)
        except Exception:  # noqa: BLE001
            logger.warning("failed to save question cache", exc_info=True)


__all__ = ["CachedAnswer", "QuestionCache", "CACHE_KEY", "MAX_ENTRIES", "TTL_SECONDS"]
