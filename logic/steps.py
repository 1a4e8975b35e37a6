"""Setup wizard steps and the position tracker that walks them."""

from __future__ import annotations

from enum import Enum
from typing import Any, Tuple

from models.profile import ProfileFields


class SetupStep(str, Enum):
    HEIGHT = "height"
    WEIGHT = "weight"
    AGE = "age"
    DRESSING_STYLE = "dressing_style"
    UPLOAD_TOP = "upload_top"
    UPLOAD_BOTTOM = "upload_bottom"
    REVIEW = "review"


STEP_ORDER: Tuple[SetupStep, ...] = (
    SetupStep.HEIGHT,
    SetupStep.WEIGHT,
    SetupStep.AGE,
    SetupStep.DRESSING_STYLE,
    SetupStep.UPLOAD_TOP,
    SetupStep.UPLOAD_BOTTOM,
    SetupStep.REVIEW,
)


def _slot_analyzed(slot: Any) -> bool:
    return slot.analysis is not None and not slot.analyzing


def can_advance(step: SetupStep, fields: ProfileFields, top_slot: Any, bottom_slot: Any) -> bool:
    """Whether the user may leave ``step`` forwards given the current answers."""

    if step is SetupStep.HEIGHT:
        return ProfileFields.is_positive(fields.height)
    if step is SetupStep.WEIGHT:
        return ProfileFields.is_positive(fields.weight)
    if step is SetupStep.AGE:
        return ProfileFields.is_positive(fields.age)
    if step is SetupStep.DRESSING_STYLE:
        return True
    if step is SetupStep.UPLOAD_TOP:
        return _slot_analyzed(top_slot)
    if step is SetupStep.UPLOAD_BOTTOM:
        return _slot_analyzed(bottom_slot)
    if step is SetupStep.REVIEW:
        # Submission has its own gate.
        return True
    raise ValueError(f"Unknown setup step {step!r}")


class StepSequencer:
    """Tracks the current position in :data:`STEP_ORDER`.

    The sequencer never refuses a move for lack of valid answers; callers are
    expected to disable the forward control when :func:`can_advance` is false.
    It only refuses to move past either end, and does so silently.
    """

    def __init__(self, steps: Tuple[SetupStep, ...] = STEP_ORDER) -> None:
        if not steps:
            raise ValueError("A step sequence needs at least one step")
        self.steps = steps
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> SetupStep:
        return self.steps[self._index]

    @property
    def is_last(self) -> bool:
        return self._index == len(self.steps) - 1

    def advance(self) -> SetupStep:
        if not self.is_last:
            self._index += 1
        return self.current

    def retreat(self) -> SetupStep:
        if self.can_retreat():
            self._index -= 1
        return self.current

    def can_retreat(self) -> bool:
        return self._index > 0

    def progress_fraction(self) -> float:
        return (self._index + 1) / len(self.steps)

    def progress_percent(self) -> float:
        return self.progress_fraction() * 100

    def reset(self) -> None:
        self._index = 0


__all__ = ["SetupStep", "STEP_ORDER", "StepSequencer", "can_advance"]
