"""Completion evaluator and corruption detection tests."""

import asyncio

import pytest

from logic.completion import find_state_corruption, is_complete, missing_requirements
from memory.previews import PreviewRegistry
from memory.upload_slot import clothing_slot
from models.clothing import UploadedFile
from models.profile import ProfileFields
from models.taxonomy import ClothingCategory
from tools.vision_provider import MockClassificationProvider


def _png(name: str) -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", data=b"\x89PNG-data")


def _ready_state():
    previews = PreviewRegistry()
    classifier = MockClassificationProvider()
    top = clothing_slot(ClothingCategory.TOP, classifier, previews)
    bottom = clothing_slot(ClothingCategory.BOTTOM, classifier, previews)
    asyncio.run(top.drop([_png("shirt.png")]))
    asyncio.run(bottom.drop([_png("jeans.png")]))
    fields = ProfileFields(height=180.0, weight=75.0, age=30)
    return fields, top, bottom


def test_fully_answered_state_is_complete() -> None:
    fields, top, bottom = _ready_state()
    assert is_complete(fields, top, bottom)
    assert missing_requirements(fields, top, bottom) == []
    assert find_state_corruption(top, bottom) == []


@pytest.mark.parametrize("field", ["height", "weight", "age"])
@pytest.mark.parametrize("value", [None, 0, -3])
def test_any_missing_number_blocks_completion(field: str, value) -> None:
    fields, top, bottom = _ready_state()
    broken = fields.updated(**{field: value})
    assert not is_complete(broken, top, bottom)
    assert field in missing_requirements(broken, top, bottom)


@pytest.mark.parametrize("slot_name", ["top", "bottom"])
def test_any_slot_change_blocks_completion(slot_name: str) -> None:
    fields, top, bottom = _ready_state()
    slot = top if slot_name == "top" else bottom

    slot.analyzing = True
    assert not is_complete(fields, top, bottom)
    slot.analyzing = False

    slot.analysis = None
    assert not is_complete(fields, top, bottom)
    assert f"{slot_name} clothing" in missing_requirements(fields, top, bottom)


def test_removed_slot_blocks_completion() -> None:
    fields, top, bottom = _ready_state()
    bottom.remove()
    assert not is_complete(fields, top, bottom)
    assert find_state_corruption(top, bottom) == []


def test_structural_inconsistencies_are_reported() -> None:
    fields, top, bottom = _ready_state()
    top.file = None
    bottom.error = "stale error"

    problems = find_state_corruption(top, bottom)

    assert "top: analysis without a file" in problems
    assert "top: preview without a file" in problems
    assert "bottom: analysis and error both set" in problems
    assert not is_complete(fields, top, bottom)
