import pytest

from formflow_engine.workflow.history import detect_platform, workflow_from_history


def _records():
    return [
        {
            "url": "https://www.linkedin.com/jobs/view/1",
            "results": [
                {"extracted_content": "Navigated to https://www.linkedin.com/jobs/apply/1"},
                {
                    "extracted_content": "Input 'Ada' into index 3",
                    "element": {"tag": "input", "name": "first_name"},
                },
            ],
        },
        {
            "url": "https://www.linkedin.com/jobs/apply/1",
            "results": [
                {"extracted_content": "Selected option 'United States' in dropdown"},
                {"extracted_content": "Clicked button with index 7: Next", "element": {"tag": "button", "text": "Next"}},
                {"extracted_content": "Sent keys: Enter"},
                {"extracted_content": "Scrolled down the page"},
            ],
        },
    ]


def test_history_results_become_ordered_steps():
    workflow = workflow_from_history(_records(), platform="linkedin", application_type="easy_apply")

    assert [step.action for step in workflow.steps] == [
        "navigate",
        "fill_field",
        "select_option",
        "click_element",
        "key_press",
    ]
    assert [step.step_index for step in workflow.steps] == [0, 1, 2, 3, 4]
    assert workflow.steps[0].to_url == "https://www.linkedin.com/jobs/apply/1"
    assert workflow.steps[1].value == "Ada"
    assert workflow.steps[1].element.name == "first_name"
    assert workflow.steps[2].selected_text == "United States"
    assert workflow.steps[3].data["index"] == 7
    assert workflow.steps[4].key == "Enter"


def test_history_workflow_metadata():
    workflow = workflow_from_history(_records(), platform="linkedin", application_type="easy_apply")

    assert workflow.name == "linkedin easy_apply - Auto Generated"
    assert workflow.duration == 4000
    assert workflow.action_count == 6
    assert workflow.optimized_action_count == 5
    assert workflow.id.startswith("linkedin_easy_apply_")


def test_history_without_recognised_actions_is_rejected():
    with pytest.raises(ValueError):
        workflow_from_history(
            [{"url": "https://example.com", "results": [{"extracted_content": "Scrolled"}]}],
            platform="other",
            application_type="manual",
        )


@pytest.mark.parametrize(
    "urls, expected",
    [
        (["https://www.indeed.com/viewjob"], "indeed"),
        (["https://acme.wd5.myworkdayjobs.com/careers"], "workday"),
        (["https://boards.greenhouse.io/acme"], "greenhouse"),
        (["https://example.com", ""], "other"),
    ],
)
def test_detect_platform(urls, expected):
    assert detect_platform(urls) == expected
