import itertools
import json

import pytest

from formflow_engine.answers.concepts import concept_hash, extract_concepts, normalize_question
from formflow_engine.answers.question_cache import QuestionCache
from formflow_engine.answers.templates import field_template_answer, pattern_answer, personalize
from formflow_engine.storage.kv_store import InMemoryStore

DAY = 24 * 60 * 60


class TickingClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _identity(normalized: str):
    return [normalized]


@pytest.mark.asyncio
async def test_rephrased_question_shares_cached_answer() -> None:
    cache = QuestionCache()

    assert await cache.get("Are you authorized to work in the US?") is None

    await cache.put("Are you authorized to work in the US?", "Yes")

    assert await cache.get("Do you have work authorization?") == "Yes"


def test_concept_tags_and_hash():
    normalized = normalize_question("  How many YEARS of Python experience?! ")

    assert normalized == "how many years of python experience"
    assert extract_concepts(normalized) == ["experience", "programming_experience"]
    assert extract_concepts("what is your favourite colour") == ["general"]
    assert concept_hash("Desired salary?") == concept_hash("What compensation do you expect")


@pytest.mark.asyncio
async def test_hit_updates_usage_and_persists() -> None:
    store = InMemoryStore()
    clock = TickingClock()
    cache = QuestionCache(store, clock=clock)
    await cache.put("What is your expected salary?", "100k")

    clock.now += 60
    await cache.get("Desired salary?")

    persisted = await store.get("question_cache")
    assert persisted[0]["use_count"] == 2
    assert persisted[0]["last_used"] == clock.now


@pytest.mark.asyncio
async def test_entries_expire_after_ttl() -> None:
    clock = TickingClock()
    cache = QuestionCache(clock=clock, ttl_seconds=30 * DAY)
    await cache.put("When can you start?", "In two weeks")

    clock.now += 31 * DAY

    assert await cache.get("When can you start?") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_capacity_evicts_lowest_scored_entry() -> None:
    counter = itertools.count(1_000_000.0, 1.0)
    cache = QuestionCache(clock=lambda: next(counter), max_entries=1000, concept_extractor=_identity)
    await cache.put_many((f"question {position}", f"answer {position}") for position in range(1000))
    await cache.get("question 0")

    await cache.put("question 1000", "answer 1000")

    assert len(cache) <= 1000
    assert await cache.get("question 0") == "answer 0"
    assert await cache.get("question 1") is None
    assert await cache.get("question 1000") == "answer 1000"


@pytest.mark.asyncio
async def test_put_many_accepts_mappings_and_sanitises_context() -> None:
    store = InMemoryStore()
    cache = QuestionCache(store)

    count = await cache.put_many(
        [
            {
                "question": "Why are you interested in this company?",
                "response": "I admire [Company Name].",
                "confidence": 0.8,
                "context": {"companyName": "Acme", "ssn": "000"},
            },
            ("How many years of experience?", "7"),
        ]
    )

    assert count == 2
    persisted = {entry["question_text"]: entry for entry in await store.get("question_cache")}
    assert persisted["Why are you interested in this company?"]["context"] == {"company_name": "Acme"}
    answer = await cache.get("Why are you interested in joining?", {"company_name": "Globex"})
    assert answer == "I admire Globex."


@pytest.mark.asyncio
async def test_lookup_consults_patterns_before_entries() -> None:
    cache = QuestionCache()
    await cache.put("How many years of experience do you have?", "cached")

    answer = await cache.lookup("How many years of experience do you have?", profile={"experience_years": "9 years"})

    assert answer == "9 years"


@pytest.mark.asyncio
async def test_export_import_round_trip_and_stats() -> None:
    source = QuestionCache()
    await source.put("Are you willing to relocate?", "No", confidence=0.5)
    await source.put("Highest degree obtained?", "BSc", confidence=1.0)

    exported = await source.export_cache()
    target = QuestionCache()

    assert await target.import_cache(json.dumps(exported)) is True
    stats = target.stats()
    assert stats["total_entries"] == 2
    assert stats["average_confidence"] == pytest.approx(0.75)
    assert await target.get("Do you hold a degree?") == "BSc"


@pytest.mark.asyncio
async def test_import_rejects_malformed_documents() -> None:
    cache = QuestionCache()

    assert await cache.import_cache("not json") is False
    assert await cache.import_cache({"entries": "nope"}) is False
    assert cache.stats()["most_used_question"] == "None"


@pytest.mark.asyncio
async def test_clear_removes_storage_key() -> None:
    store = InMemoryStore()
    cache = QuestionCache(store)
    await cache.put("Notice period?", "2 weeks")

    await cache.clear()

    assert len(cache) == 0
    assert await store.get("question_cache") is None


class ExplodingStore:
    async def get(self, key):
        raise OSError("disk gone")

    async def set(self, key, value):
        raise OSError("disk gone")

    async def remove(self, key):
        raise OSError("disk gone")


@pytest.mark.asyncio
async def test_storage_failures_fail_open() -> None:
    cache = QuestionCache(ExplodingStore())

    await cache.put("Expected salary?", "Competitive")

    assert await cache.get("Expected salary?") == "Competitive"


def test_templates_fill_from_profile_with_defaults():
    assert pattern_answer("Do you have a Bachelor's degree?") == "Yes"
    assert pattern_answer("Will you require sponsorship?") == "No"
    assert pattern_answer("How many years of experience?", {"experience_years": "3 years"}) == "3 years"
    assert pattern_answer("What is your notice period?") == "2 weeks"
    assert pattern_answer("Favourite animal?") is None
    assert field_template_answer("Expected salary", {}) == "Competitive"
    assert field_template_answer("Anything else?") == "Yes"


def test_personalize_replaces_known_placeholders_only():
    text = "Joining [Company Name] as [Position] in [Industry]."

    assert personalize(text, {"jobTitle": "Engineer"}) == "Joining [Company Name] as Engineer in [Industry]."
    assert personalize(text, None) == text
