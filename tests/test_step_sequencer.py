"""Step sequencer and per-step navigation predicate tests."""

import pytest

from logic.steps import STEP_ORDER, SetupStep, StepSequencer, can_advance
from models.clothing import ClassificationResult
from models.profile import ProfileFields


class _Slot:
    def __init__(self, analysis=None, analyzing=False) -> None:
        self.analysis = analysis
        self.analyzing = analyzing


def _analysis(category: str = "TOP") -> ClassificationResult:
    return ClassificationResult(name="Tee", description="", category=category, color="white")


def test_advance_then_retreat_returns_to_same_step() -> None:
    sequencer = StepSequencer()
    for _ in range(3):
        sequencer.advance()
    position = sequencer.current

    sequencer.advance()
    sequencer.retreat()

    assert sequencer.current is position


def test_sequencer_stays_put_at_both_ends() -> None:
    sequencer = StepSequencer()
    assert not sequencer.can_retreat()
    assert sequencer.retreat() is SetupStep.HEIGHT

    for _ in range(len(STEP_ORDER) + 3):
        sequencer.advance()
    assert sequencer.is_last
    assert sequencer.current is SetupStep.REVIEW


def test_progress_covers_all_steps() -> None:
    sequencer = StepSequencer()
    assert sequencer.progress_fraction() == pytest.approx(1 / 7)
    for _ in range(6):
        sequencer.advance()
    assert sequencer.progress_percent() == pytest.approx(100.0)

    sequencer.reset()
    assert sequencer.index == 0


@pytest.mark.parametrize("value", [None, 0, -1, -0.5])
@pytest.mark.parametrize(
    "step, field",
    [(SetupStep.HEIGHT, "height"), (SetupStep.WEIGHT, "weight"), (SetupStep.AGE, "age")],
)
def test_numeric_steps_need_a_positive_value(step: SetupStep, field: str, value) -> None:
    fields = ProfileFields().updated(**{field: value})
    assert not can_advance(step, fields, _Slot(), _Slot())


def test_numeric_steps_accept_positive_values() -> None:
    fields = ProfileFields().updated(height="180", weight=75.5, age=30)
    assert can_advance(SetupStep.HEIGHT, fields, _Slot(), _Slot())
    assert can_advance(SetupStep.WEIGHT, fields, _Slot(), _Slot())
    assert can_advance(SetupStep.AGE, fields, _Slot(), _Slot())


def test_dressing_style_and_review_always_advance() -> None:
    fields = ProfileFields()
    assert can_advance(SetupStep.DRESSING_STYLE, fields, _Slot(), _Slot())
    assert can_advance(SetupStep.REVIEW, fields, _Slot(), _Slot())


def test_upload_steps_need_a_finished_analysis() -> None:
    fields = ProfileFields()
    assert not can_advance(SetupStep.UPLOAD_TOP, fields, _Slot(), _Slot())
    assert not can_advance(SetupStep.UPLOAD_TOP, fields, _Slot(_analysis(), analyzing=True), _Slot())
    assert can_advance(SetupStep.UPLOAD_TOP, fields, _Slot(_analysis()), _Slot())
    assert not can_advance(SetupStep.UPLOAD_BOTTOM, fields, _Slot(_analysis()), _Slot())
    assert can_advance(SetupStep.UPLOAD_BOTTOM, fields, _Slot(), _Slot(_analysis("BOTTOM")))


def test_unknown_step_is_rejected() -> None:
    with pytest.raises(ValueError):
        can_advance("shoes", ProfileFields(), _Slot(), _Slot())


def test_field_updates_coerce_and_reject_garbage() -> None:
    fields = ProfileFields().updated(height="172.5", age="31", dressing_style="streetwear")
    assert fields.height == 172.5
    assert fields.age == 31
    assert fields.dressing_style.value == "STREETWEAR"

    with pytest.raises(ValueError):
        fields.updated(height="tall")
    with pytest.raises(ValueError):
        fields.updated(age=30.5)
    with pytest.raises(ValueError):
        fields.updated(shoe_size=42)
    assert fields.height == 172.5
