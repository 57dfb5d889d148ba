"""
Tests for loop detection.
"""

import pytest

from task_agent.agent.loop_detector import DEFAULT_LOOP_EXEMPT_TOOLS, LoopDetector, action_signature


def test_same_action_reports_on_fifth_occurrence():
    detector = LoopDetector(window=20, threshold=5, exempt=set())

    results = [detector.check("click", {"selector": "#next"}) for _ in range(5)]

    assert results == [False, False, False, False, True]


def test_cycling_below_threshold_never_loops():
    detector = LoopDetector(window=20, threshold=5, exempt=set())
    actions = ["click", "type", "scroll_to", "submit"]

    results = [detector.check(name, {}) for _ in range(4) for name in actions]

    assert not any(results)


def test_old_repeats_fall_out_of_window():
    detector = LoopDetector(window=20, threshold=5, exempt=set())

    for _ in range(4):
        assert detector.check("click", {"selector": "#a"}) is False
    for i in range(16):
        assert detector.check("click", {"selector": f"#b{i}"}) is False

    # the first "#a" is evicted as this one enters
    assert detector.check("click", {"selector": "#a"}) is False
    assert len(detector) == 20


def test_exempt_actions_are_not_recorded():
    detector = LoopDetector(window=20, threshold=5)

    for _ in range(10):
        assert detector.check("wait", {"seconds": 1}) is False

    assert len(detector) == 0
    assert "recall" in DEFAULT_LOOP_EXEMPT_TOOLS


def test_signature_ignores_argument_order():
    assert action_signature("fill", {"a": 1, "b": 2}) == action_signature("fill", {"b": 2, "a": 1})
    assert action_signature("fill", {"a": 1}) != action_signature("fill", {"a": 2})


def test_different_arguments_are_different_actions():
    detector = LoopDetector(window=20, threshold=5, exempt=set())

    results = [detector.check("click", {"selector": f"#{i}"}) for i in range(10)]

    assert not any(results)


def test_reset_clears_window():
    detector = LoopDetector(window=20, threshold=2, exempt=set())
    detector.check("click", {})
    detector.reset()

    assert detector.check("click", {}) is False


def test_invalid_configuration():
    with pytest.raises(ValueError):
        LoopDetector(window=0)
