import random

import pytest

from formflow_engine.core.errors import StepExecutionError
from formflow_engine.replay.executor import Executor, profile_value_for
from formflow_engine.storage.kv_store import InMemoryStore
from formflow_engine.workflow.models import (
    ClickElementStep,
    ElementFingerprint,
    ExecutionOptions,
    FillFieldStep,
    KeyPressStep,
    SavedWorkflow,
    SelectOptionStep,
)
from formflow_engine.workflow.store import WorkflowStore
from tests.fakes import FakePage, FakePageProvider, FakeProfile, make_element, never_sleep


def _page() -> FakePage:
    return FakePage(
        [
            make_element(0, "input", name="email"),
            make_element(1, "select", id="country"),
            make_element(2, "button", text="Submit application"),
        ]
    )


def _workflow(**overrides) -> SavedWorkflow:
    steps = [
        FillFieldStep(step_index=0, element=ElementFingerprint(tag="input", name="email"), data={"value": "old@example.com"}),
        ClickElementStep(step_index=1, element=ElementFingerprint(tag="button", id="vanished")),
        SelectOptionStep(
            step_index=2,
            element=ElementFingerprint(tag="select", id="country"),
            data={"selectedValue": "us", "selectedText": "United States"},
        ),
        ClickElementStep(step_index=3, element=ElementFingerprint(tag="button", text="Submit")),
    ]
    return SavedWorkflow(id="wf-1", name="Apply", steps=steps, **overrides)


async def _executor(page: FakePage | None, workflow: SavedWorkflow | None = None, **kwargs):
    workflows = WorkflowStore(InMemoryStore())
    if workflow is not None:
        await workflows.save(workflow)
    executor = Executor(FakePageProvider(page), workflows, sleep=never_sleep, rng=random.Random(7), **kwargs)
    return executor, workflows


@pytest.mark.asyncio
async def test_unresolvable_step_is_skipped_and_run_continues() -> None:
    page = _page()
    executor, workflows = await _executor(page, _workflow())

    result = await executor.execute("wf-1", ExecutionOptions(use_profile_data=False))

    assert result.executed_steps == 3
    assert result.total_steps == 4
    assert result.success is False
    assert result.status == "partially_completed"
    assert result.failed_steps[0]["step_index"] == 1
    assert result.failed_steps[0]["reason"] == "element_not_found"
    assert page.calls == [
        ("input", 0, "old@example.com"),
        ("select", 1, "United States"),
        ("click", 2),
    ]
    stored = await workflows.get("wf-1")
    assert stored.usage_count == 1
    assert stored.success_rate == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_all_steps_executed_counts_as_success() -> None:
    page = _page()
    workflow = _workflow()
    workflow.steps = [workflow.steps[0], workflow.steps[3]]
    executor, workflows = await _executor(page, workflow)

    result = await executor.execute("wf-1")

    assert result.success is True
    assert result.status == "completed"
    assert (await workflows.get("wf-1")).success_rate == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_profile_data_overrides_recorded_values() -> None:
    page = _page()
    workflow = _workflow()
    workflow.steps = [workflow.steps[0]]
    executor, _ = await _executor(page, workflow, profile_provider=FakeProfile({"email": "ada@example.com"}))

    await executor.execute("wf-1", ExecutionOptions(use_profile_data=True))

    assert page.calls == [("input", 0, "ada@example.com")]


@pytest.mark.asyncio
async def test_missing_workflow_aborts_without_touching_page() -> None:
    page = _page()
    executor, _ = await _executor(page)

    result = await executor.execute("nope")

    assert result.status == "aborted"
    assert result.success is False
    assert page.calls == []


@pytest.mark.asyncio
async def test_unavailable_page_aborts_without_updating_stats() -> None:
    executor, workflows = await _executor(None, _workflow())

    result = await executor.execute("wf-1")

    assert result.status == "aborted"
    assert result.total_steps == 4
    assert (await workflows.get("wf-1")).usage_count == 0


@pytest.mark.asyncio
async def test_cancel_stops_before_next_step() -> None:
    page = _page()
    executor = None

    async def cancelling_sleep(_: float) -> None:
        executor.cancel()

    workflows = WorkflowStore(InMemoryStore())
    await workflows.save(_workflow())
    executor = Executor(FakePageProvider(page), workflows, sleep=cancelling_sleep)

    result = await executor.execute("wf-1", ExecutionOptions(use_profile_data=False))

    assert result.cancelled is True
    assert result.executed_steps == 1
    assert result.status == "partially_completed"
    assert executor.is_running is False


@pytest.mark.asyncio
async def test_missing_dropdown_option_fails_only_that_step() -> None:
    page = _page()
    page.dropdown_options[1] = [{"text": "Canada", "value": "ca"}]
    workflow = _workflow()
    workflow.steps = [workflow.steps[2], KeyPressStep(step_index=1, data={"key": "Enter"})]
    executor, _ = await _executor(page, workflow)

    result = await executor.execute("wf-1")

    assert result.executed_steps == 1
    assert result.failed_steps[0]["reason"] == "option_not_found"
    assert page.calls == [("keys", "Enter")]


@pytest.mark.asyncio
async def test_dropdown_option_matched_case_insensitively_by_value() -> None:
    page = _page()
    page.dropdown_options[1] = [{"text": "USA", "value": "US"}]
    workflow = _workflow()
    workflow.steps = [workflow.steps[2]]
    executor, _ = await _executor(page, workflow)

    result = await executor.execute("wf-1")

    assert result.success is True
    assert page.calls == [("select", 1, "USA")]


@pytest.mark.asyncio
async def test_pacing_uses_speed_base_delay_plus_jitter() -> None:
    page = _page()
    workflow = _workflow()
    workflow.steps = [workflow.steps[3]]
    delays = []

    async def record_sleep(seconds: float) -> None:
        delays.append(seconds)

    workflows = WorkflowStore(InMemoryStore())
    await workflows.save(workflow)
    executor = Executor(FakePageProvider(page), workflows, sleep=record_sleep, jitter_ms=200)

    await executor.execute("wf-1", ExecutionOptions(speed="slow"))

    assert len(delays) == 1
    assert 0.8 <= delays[0] <= 1.0


def test_profile_value_for_matches_identifier_keywords():
    profile = {"first_name": "Ada", "phone": ""}

    assert profile_value_for(ElementFingerprint(name="fname"), profile) == "Ada"
    assert profile_value_for(ElementFingerprint(placeholder="Phone"), profile) is None
    assert profile_value_for(ElementFingerprint(name="city"), profile) is None
    assert profile_value_for(ElementFingerprint(name="email"), None) is None


def test_step_execution_error_serialises_reason():
    error = StepExecutionError("boom", step_index=3, reason="element_not_found")

    assert error.as_dict() == {"message": "boom", "reason": "element_not_found", "step_index": 3}
