"""Aggregate checks run on the wizard state right before submission."""

from __future__ import annotations

from typing import Any, List

from models.profile import ProfileFields


def _slot_complete(slot: Any) -> bool:
    return slot.file is not None and slot.analysis is not None and not slot.analyzing


def is_complete(fields: ProfileFields, top_slot: Any, bottom_slot: Any) -> bool:
    """True only when every answer and both analysed uploads are present.

    Stricter than any single step check: it re-validates the whole state so
    that edits made after moving back are caught.
    """

    return fields.is_filled and _slot_complete(top_slot) and _slot_complete(bottom_slot)


def find_state_corruption(top_slot: Any, bottom_slot: Any) -> List[str]:
    """List structural inconsistencies no sequence of user actions should produce."""

    problems: List[str] = []
    for slot in (top_slot, bottom_slot):
        if slot.analysis is not None and slot.file is None:
            problems.append(f"{slot.name}: analysis without a file")
        if slot.preview is not None and slot.file is None:
            problems.append(f"{slot.name}: preview without a file")
        if slot.analysis is not None and slot.analyzing:
            problems.append(f"{slot.name}: analysis while still analyzing")
        if slot.analysis is not None and slot.error is not None:
            problems.append(f"{slot.name}: analysis and error both set")
    return problems


def missing_requirements(fields: ProfileFields, top_slot: Any, bottom_slot: Any) -> List[str]:
    """Human-readable list of what still blocks submission."""

    missing: List[str] = []
    for name in ("height", "weight", "age"):
        if not ProfileFields.is_positive(getattr(fields, name)):
            missing.append(name)
    for slot in (top_slot, bottom_slot):
        if not _slot_complete(slot):
            missing.append(f"{slot.name} clothing")
    return missing


__all__ = ["find_state_corruption", "is_complete", "missing_requirements"]
