"""Tests for walkthrough synthesis and step editing."""

from types import SimpleNamespace

import pytest

from errorlytic.services.walkthrough_synthesizer import (
    WalkthroughPlan,
    WalkthroughStep,
    append_step,
    replace_steps,
    score_difficulty,
    total_minutes,
    walkthrough_synthesizer,
)


def _fault(code, category, severity="medium"):
    return SimpleNamespace(code=code, category=category, severity=severity)


def _orders(steps):
    return [step.order for step in steps]


def test_engine_walkthrough_follows_template():
    plan = walkthrough_synthesizer.synthesize(["Engine"], [_fault("P0300", "Engine", "high")])

    assert [step.type for step in plan.steps] == ["check", "check", "replace", "retest"]
    assert _orders(plan.steps) == [1, 2, 3, 4]
    assert plan.total_estimated_minutes == 110
    assert plan.steps[0].detail.endswith("Related codes: P0300")
    assert [part.name for part in plan.parts] == ["Spark Plugs", "Ignition Coil"]
    assert plan.parts[0].qty == 4


def test_multi_category_orders_are_contiguous_and_tools_deduplicated():
    faults = [_fault("17158", "Electrical"), _fault("P0300", "Engine", "high")]
    plan = walkthrough_synthesizer.synthesize(["Electrical", "Engine"], faults)

    assert _orders(plan.steps) == list(range(1, 9))
    assert plan.steps[0].category == "Electrical"
    assert plan.steps[4].category == "Engine"
    assert plan.total_estimated_minutes == 245
    assert plan.tools.count("Multimeter") == 1
    assert plan.difficulty == "hard"


def test_category_without_template_uses_generic_procedure():
    plan = walkthrough_synthesizer.synthesize(["Air Conditioning"], [_fault("12345", "Air Conditioning")])

    assert len(plan.steps) == 5
    assert plan.steps[0].detail.startswith(
        "Thoroughly inspect the affected system for obvious signs of damage or wear (Air Conditioning)"
    )
    assert plan.parts == []
    assert plan.difficulty == "easy"


def test_empty_causes_give_empty_walkthrough():
    plan = walkthrough_synthesizer.synthesize([], [])

    assert plan.steps == []
    assert plan.total_estimated_minutes == 0
    assert plan.difficulty == "easy"


def test_severity_enum_members_are_accepted():
    severity = SimpleNamespace(value="high")
    plan = walkthrough_synthesizer.synthesize(["Brakes"], [_fault("C0608", "Brakes", severity)])
    # 4 steps + 2 for the replace step + 8 for steps of a high-severity category
    assert plan.difficulty == "medium"


def test_append_step_goes_last():
    steps = walkthrough_synthesizer.synthesize(["Engine"], []).steps
    updated = append_step(steps, {"title": "Clear codes", "detail": "", "type": "retest",
                                  "est_minutes": 5, "order": 1})

    assert _orders(updated) == [1, 2, 3, 4, 5]
    assert updated[-1].title == "Clear codes"


def test_replace_steps_sorts_by_supplied_order_then_renumbers():
    updated = replace_steps([
        {"title": "Retest", "type": "retest", "est_minutes": 10, "order": 9},
        {"title": "Unordered", "type": "check", "est_minutes": 5},
        {"title": "Check", "type": "check", "est_minutes": 20, "order": 2},
    ])

    assert [step.title for step in updated] == ["Check", "Retest", "Unordered"]
    assert _orders(updated) == [1, 2, 3]
    assert total_minutes(updated) == 35


def test_invalid_step_type_is_rejected():
    with pytest.raises(ValueError):
        replace_steps([{"title": "Bad", "type": "inspect", "est_minutes": 5}])


def test_negative_minutes_are_rejected():
    with pytest.raises(ValueError):
        WalkthroughStep(title="Bad", detail="", type="check", est_minutes=-1)


def test_plan_requires_contiguous_orders():
    step = WalkthroughStep(title="Check", detail="", type="check", est_minutes=5, order=2)
    with pytest.raises(ValueError):
        WalkthroughPlan(steps=[step], parts=[], tools=[], difficulty="easy", total_estimated_minutes=5)


def test_difficulty_thresholds():
    def steps(count, replace=0, category=None):
        return [
            WalkthroughStep(title=f"S{i}", detail="", type="replace" if i < replace else "check",
                            est_minutes=1, category=category)
            for i in range(count)
        ]

    assert score_difficulty(steps(9), set()) == "easy"
    assert score_difficulty(steps(10), set()) == "medium"
    assert score_difficulty(steps(6, replace=2), set()) == "medium"
    assert score_difficulty(steps(7, category="Engine"), {"Engine"}) == "hard"
