from types import SimpleNamespace

import pytest

from formflow_engine.answers.oracle import OpenAIOracle, build_batch_prompt, parse_numbered_answers
from formflow_engine.core.errors import OracleError
from formflow_engine.profile.resume import ResumeData, StaticProfileProvider, StoredProfileProvider
from formflow_engine.storage.kv_store import InMemoryStore


class FakeCompletions:
    def __init__(self, content=None, error=None) -> None:
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_parse_numbered_answers_by_position():
    text = "1. Seven years\n\n2) Yes, immediately\n"

    assert parse_numbered_answers(text, 3) == ["Seven years", "Yes, immediately", ""]


def test_batch_prompt_numbers_questions_and_embeds_profile():
    prompt = build_batch_prompt(["Why us?", "Why now?"], {"first_name": "Ada"})

    assert "1. Why us?\n2. Why now?" in prompt
    assert '"first_name": "Ada"' in prompt


@pytest.mark.asyncio
async def test_openai_oracle_sends_one_request_per_batch() -> None:
    completions = FakeCompletions("1. Mission\n2. Growth")
    oracle = OpenAIOracle(model="gpt-test", client=_client(completions))

    answers = await oracle.answer_batch("prompt", 2)

    assert answers == ["Mission", "Growth"]
    assert completions.requests[0]["model"] == "gpt-test"
    assert completions.requests[0]["messages"] == [{"role": "user", "content": "prompt"}]


@pytest.mark.asyncio
async def test_openai_oracle_wraps_failures() -> None:
    failing = OpenAIOracle(client=_client(FakeCompletions(error=RuntimeError("timeout"))))
    empty = OpenAIOracle(client=_client(FakeCompletions("")))

    with pytest.raises(OracleError):
        await failing.answer_batch("prompt", 1)
    with pytest.raises(OracleError):
        await empty.answer_batch("prompt", 1)


def _resume() -> ResumeData:
    return ResumeData.model_validate(
        {
            "personal_info": {
                "first_name": "Ada",
                "last_name": "Lovelace",
                "email": "ada@example.com",
                "address": {"city": "London", "country": "UK"},
            },
            "professional": {
                "current_title": "Engineer",
                "total_experience": "7 years",
                "education": [{"degree": "BSc Mathematics", "school": "UCL"}],
                "skills": {"technical": ["Python", "SQL"]},
                "salary_expectations": {"minimum": 100000, "maximum": 120000},
                "availability": {"remote": True, "relocation": False},
            },
        }
    )


@pytest.mark.asyncio
async def test_stored_profile_flattens_resume() -> None:
    provider = StoredProfileProvider(InMemoryStore())
    assert await provider.get_auto_fill_data() is None

    await provider.save(_resume())
    data = await provider.get_auto_fill_data()

    assert data["first_name"] == "Ada"
    assert data["city"] == "London"
    assert data["experience_years"] == "7 years"
    assert data["degree"] == "BSc Mathematics"
    assert data["technical_skills"] == "Python, SQL"
    assert data["salary_expectation"] == "100000-120000"
    assert data["remote_work"] == "Yes"
    assert data["willing_to_relocate"] == "No"


@pytest.mark.asyncio
async def test_invalid_stored_resume_reads_as_missing() -> None:
    provider = StoredProfileProvider(InMemoryStore({"resume_data": {"personal_info": {"first_name": "Ada"}}}))

    assert await provider.get_auto_fill_data() is None


@pytest.mark.asyncio
async def test_static_profile_returns_copies() -> None:
    provider = StaticProfileProvider({"email": "a@b.c"})
    data = await provider.get_auto_fill_data()
    data["email"] = "changed"

    assert (await provider.get_auto_fill_data())["email"] == "a@b.c"
    assert await StaticProfileProvider(None).get_auto_fill_data() is None
