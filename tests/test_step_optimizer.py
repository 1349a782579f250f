from formflow_engine.workflow.models import ElementFingerprint, RecordedAction
from formflow_engine.workflow.optimizer import StepOptimizer, optimize_actions


def _action(timestamp: float, kind: str, data=None, **element) -> RecordedAction:
    return RecordedAction(timestamp=timestamp, type=kind, element=ElementFingerprint(**element), data=data)


def _session():
    return [
        _action(0, "input", {"value": "Ada"}, tag="input", name="first_name"),
        _action(500, "input", {"value": "ada@example.com"}, tag="input", name="email"),
        _action(1200, "click", tag="button", text="Next"),
        _action(2000, "select", {"selectedValue": "us", "selectedText": "United States"}, tag="select"),
        _action(2600, "keypress", {"key": "Enter"}),
    ]


def test_optimizer_maps_each_action_to_one_step_in_order():
    steps = optimize_actions(_session())

    assert [step.step_index for step in steps] == [0, 1, 2, 3, 4]
    assert [step.action for step in steps] == [
        "fill_field",
        "fill_field",
        "click_element",
        "select_option",
        "key_press",
    ]
    assert steps[0].description == "Fill first_name: Ada"
    assert steps[2].description == "Click button: Next"
    assert steps[3].description == "Select: United States"
    assert steps[4].description == "Press key: Enter"


def test_optimizer_is_deterministic():
    actions = _session()

    first = [step.model_dump() for step in optimize_actions(actions)]
    second = [step.model_dump() for step in optimize_actions(list(actions))]

    assert first == second


def test_inputs_within_debounce_window_collapse_to_one_fill():
    actions = [
        _action(1000, "input", {"value": "A"}, name="first_name"),
        _action(1050, "input", {"value": "Ad"}, name="first_name"),
    ]

    steps = optimize_actions(actions)

    assert len(steps) == 1
    assert steps[0].action == "fill_field"


def test_debounce_only_applies_to_same_action_type():
    actions = [
        _action(1000, "input", {"value": "A"}, name="q"),
        _action(1020, "click", tag="button", text="Go"),
    ]

    assert [step.action for step in optimize_actions(actions)] == ["fill_field", "click_element"]


def test_step_timing_is_relative_to_session_start():
    optimizer = StepOptimizer(debounce_ms=0)

    steps = optimizer.optimize([_action(5000, "click", tag="a", id="home")], session_start=4000)

    assert steps[0].timing == 1000
    assert steps[0].description == "Click a: home"


def test_navigation_step_carries_target_url():
    action = _action(10, "navigation", {"fromUrl": "https://a.test", "toUrl": "https://b.test"})

    steps = optimize_actions([action])

    assert steps[0].action == "navigate"
    assert steps[0].to_url == "https://b.test"
    assert steps[0].description == "Navigate to: https://b.test"
