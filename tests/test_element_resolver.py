from formflow_engine.browser.element_resolver import ElementResolver, match_by_text
from formflow_engine.core.types import PageState
from formflow_engine.workflow.models import ElementFingerprint
from tests.fakes import make_element


def _snapshot(*elements):
    return PageState(url="https://example.com", elements={element.index: element for element in elements})


def test_resolver_prefers_id_over_name_and_text():
    snapshot = _snapshot(
        make_element(1, "input", text="Email", name="email"),
        make_element(4, "input", id="email-field"),
    )
    fingerprint = ElementFingerprint(tag="input", id="email-field", name="email", text="Email")

    element = ElementResolver().resolve(fingerprint, snapshot)

    assert element is not None
    assert element.index == 4


def test_resolver_falls_back_to_name_then_text():
    snapshot = _snapshot(
        make_element(2, "button", text="Continue to review"),
        make_element(3, "input", name="phone"),
    )
    resolver = ElementResolver()

    by_name = resolver.resolve(ElementFingerprint(id="missing", name="phone"), snapshot)
    by_text = resolver.resolve(ElementFingerprint(tag="button", text="Continue"), snapshot)

    assert by_name is not None and by_name.index == 3
    assert by_text is not None and by_text.index == 2


def test_resolver_returns_none_when_nothing_matches():
    snapshot = _snapshot(make_element(1, "input", name="city"))

    assert ElementResolver().resolve(ElementFingerprint(id="zip"), snapshot) is None
    assert ElementResolver().resolve(ElementFingerprint(), snapshot) is None


def test_resolver_is_deterministic_for_duplicate_matches():
    snapshot = _snapshot(
        make_element(9, "button", text="Next"),
        make_element(5, "button", text="Next"),
    )
    fingerprint = ElementFingerprint(tag="button", text="Next")
    resolver = ElementResolver()

    results = {resolver.resolve(fingerprint, snapshot).index for _ in range(5)}

    assert results == {5}


def test_resolver_accepts_custom_matchers():
    snapshot = _snapshot(make_element(1, "input", id="email"), make_element(2, "button", text="Email me"))

    element = ElementResolver([match_by_text]).resolve(ElementFingerprint(id="email", text="Email"), snapshot)

    assert element is not None and element.index == 2
