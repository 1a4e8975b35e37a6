"""Upload slot state machine tests."""

import asyncio

import pytest

from logic.errors import (
    ClassificationServiceError,
    NotClothingError,
    SlotBusyError,
    UnsupportedContentTypeError,
    UploadValidationError,
)
from memory.previews import PreviewRegistry
from memory.upload_slot import SlotState, UploadSlot, clothing_slot, face_slot
from models.clothing import ClassificationResult, FaceVerification, UploadedFile
from models.taxonomy import ClothingCategory
from tools.vision_provider import MockClassificationProvider, MockFaceVerifier


def _png(name: str = "shirt.png", size: int = 16) -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", data=b"\x89PNG" + b"0" * size)


def _empty_snapshot(slot: UploadSlot) -> dict:
    return {
        "name": slot.name,
        "state": "empty",
        "filename": None,
        "preview": None,
        "analysis": None,
        "analyzing": False,
        "error": None,
        "error_kind": None,
    }


class _GatedAnalyzer:
    """Analyzer that finishes only when the test releases it."""

    def __init__(self) -> None:
        self.gates = {}
        self.started = {}

    def gate(self, filename: str) -> asyncio.Event:
        return self.gates.setdefault(filename, asyncio.Event())

    async def __call__(self, file: UploadedFile) -> str:
        self.started.setdefault(file.filename, asyncio.Event()).set()
        await self.gate(file.filename).wait()
        return f"analysis:{file.filename}"


def test_successful_drop_sets_analysis_and_preview() -> None:
    previews = PreviewRegistry()
    slot = clothing_slot(ClothingCategory.TOP, MockClassificationProvider(), previews)

    state = asyncio.run(slot.drop([_png("black_hoodie.png")]))

    assert state is SlotState.ANALYZED
    assert slot.is_ready
    assert slot.analysis.name == "Black Hoodie"
    assert slot.analysis.category is ClothingCategory.TOP
    assert slot.error is None
    assert previews.resolve(slot.preview) is slot.file


def test_remove_returns_to_empty_from_every_state() -> None:
    previews = PreviewRegistry()
    classifier = MockClassificationProvider({"cat.png": NotClothingError()})
    slot = clothing_slot(ClothingCategory.TOP, classifier, previews)
    initial = slot.snapshot()
    assert initial == _empty_snapshot(slot)

    asyncio.run(slot.drop([_png("shirt.png")]))
    slot.remove()
    assert slot.snapshot() == initial

    asyncio.run(slot.drop([_png("cat.png")]))
    assert slot.state is SlotState.FAILED
    slot.remove()
    assert slot.snapshot() == initial
    assert previews.outstanding() == 0


def test_unsupported_type_leaves_slot_untouched() -> None:
    previews = PreviewRegistry()
    classifier = MockClassificationProvider()
    slot = clothing_slot(ClothingCategory.TOP, classifier, previews)

    gif = UploadedFile(filename="dance.gif", content_type="image/gif", data=b"GIF89a")
    with pytest.raises(UnsupportedContentTypeError):
        asyncio.run(slot.drop([gif]))

    assert slot.snapshot() == _empty_snapshot(slot)
    assert previews.outstanding() == 0
    assert classifier.calls == []


def test_unsupported_type_keeps_previous_file() -> None:
    previews = PreviewRegistry()
    slot = clothing_slot(ClothingCategory.TOP, MockClassificationProvider(), previews)
    asyncio.run(slot.drop([_png("shirt.png")]))
    before = slot.snapshot()

    gif = UploadedFile(filename="dance.gif", content_type="image/gif", data=b"GIF89a")
    with pytest.raises(UnsupportedContentTypeError):
        asyncio.run(slot.drop([gif]))

    assert slot.snapshot() == before


def test_oversize_and_multi_file_drops_are_validation_errors() -> None:
    previews = PreviewRegistry()
    slot = clothing_slot(ClothingCategory.TOP, MockClassificationProvider(), previews, max_bytes=32)

    with pytest.raises(UploadValidationError) as excinfo:
        asyncio.run(slot.drop([_png(size=64)]))
    assert excinfo.value.error_kind == "validation"

    with pytest.raises(UploadValidationError):
        asyncio.run(slot.drop([_png("a.png"), _png("b.png")]))

    assert asyncio.run(slot.drop([])) is SlotState.EMPTY
    assert previews.outstanding() == 0


def test_redrop_releases_previous_preview() -> None:
    previews = PreviewRegistry()
    slot = clothing_slot(ClothingCategory.TOP, MockClassificationProvider(), previews)

    asyncio.run(slot.drop([_png("first.png")]))
    first_preview = slot.preview
    asyncio.run(slot.drop([_png("second.png")]))

    assert slot.file.filename == "second.png"
    assert previews.resolve(first_preview) is None
    assert previews.outstanding() == 1
    slot.remove()
    assert previews.outstanding() == 0


def test_analysis_failures_land_on_the_slot() -> None:
    previews = PreviewRegistry()
    classifier = MockClassificationProvider(
        {
            "cat.png": NotClothingError(),
            "jeans.png": ClassificationResult(name="Jeans", description="", category="BOTTOM", color="blue"),
            "offline.png": ClassificationServiceError(),
        }
    )
    slot = clothing_slot(ClothingCategory.TOP, classifier, previews)

    assert asyncio.run(slot.drop([_png("cat.png")])) is SlotState.FAILED
    assert slot.error == NotClothingError.default_message
    assert slot.error_kind == "rejection"
    assert slot.analysis is None

    asyncio.run(slot.drop([_png("jeans.png")]))
    assert slot.error == (
        "This appears to be a bottom item, but we need a top item. Please upload the correct type of clothing."
    )

    asyncio.run(slot.drop([_png("offline.png")]))
    assert slot.error_kind == "service"
    assert slot.file is not None


def test_unexpected_analyzer_crash_is_reported_as_service_failure() -> None:
    async def explode(_file: UploadedFile) -> str:
        raise RuntimeError("socket closed")

    slot = UploadSlot("top", explode, PreviewRegistry())
    assert asyncio.run(slot.drop([_png()])) is SlotState.FAILED
    assert slot.error == ClassificationServiceError.default_message
    assert slot.analyzing is False


def test_drop_while_analyzing_is_rejected() -> None:
    async def scenario() -> None:
        analyzer = _GatedAnalyzer()
        slot = UploadSlot("top", analyzer, PreviewRegistry())
        first = asyncio.create_task(slot.drop([_png("first.png")]))
        await analyzer.started.setdefault("first.png", asyncio.Event()).wait()
        assert slot.state is SlotState.ANALYZING

        with pytest.raises(SlotBusyError):
            await slot.drop([_png("second.png")])
        assert slot.file.filename == "first.png"

        analyzer.gate("first.png").set()
        assert await first is SlotState.ANALYZED
        assert slot.analysis == "analysis:first.png"

    asyncio.run(scenario())


def test_late_result_for_removed_file_is_discarded() -> None:
    async def scenario() -> None:
        previews = PreviewRegistry()
        analyzer = _GatedAnalyzer()
        slot = UploadSlot("top", analyzer, previews)
        pending = asyncio.create_task(slot.drop([_png("first.png")]))
        await analyzer.started.setdefault("first.png", asyncio.Event()).wait()

        slot.remove()
        analyzer.gate("first.png").set()
        await pending

        assert slot.state is SlotState.EMPTY
        assert slot.analysis is None
        assert previews.outstanding() == 0

    asyncio.run(scenario())


def test_cancelled_analysis_empties_the_slot() -> None:
    async def scenario() -> None:
        previews = PreviewRegistry()
        analyzer = _GatedAnalyzer()
        slot = UploadSlot("top", analyzer, previews)
        pending = asyncio.create_task(slot.drop([_png("first.png")]))
        await analyzer.started.setdefault("first.png", asyncio.Event()).wait()

        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert slot.snapshot() == _empty_snapshot(slot)
        assert slot.file is None
        assert previews.outstanding() == 0

    asyncio.run(scenario())


def test_slots_complete_independently_in_any_order() -> None:
    async def scenario() -> None:
        previews = PreviewRegistry()
        analyzer = _GatedAnalyzer()
        top = UploadSlot("top", analyzer, previews)
        bottom = UploadSlot("bottom", analyzer, previews)

        top_task = asyncio.create_task(top.drop([_png("shirt.png")]))
        bottom_task = asyncio.create_task(bottom.drop([_png("jeans.png")]))
        await analyzer.started.setdefault("shirt.png", asyncio.Event()).wait()
        await analyzer.started.setdefault("jeans.png", asyncio.Event()).wait()

        analyzer.gate("jeans.png").set()
        await bottom_task
        assert bottom.analysis == "analysis:jeans.png"
        assert top.analyzing

        analyzer.gate("shirt.png").set()
        await top_task
        assert top.analysis == "analysis:shirt.png"
        assert bottom.analysis == "analysis:jeans.png"

    asyncio.run(scenario())


def test_face_slot_rejects_non_faces_and_poor_quality() -> None:
    verifier = MockFaceVerifier(
        {
            "dog.png": FaceVerification(is_face=False, quality="good"),
            "blurry.png": FaceVerification(is_face=True, quality="poor", issues=("blurry", "too dark")),
        }
    )
    slot = face_slot(verifier, PreviewRegistry())

    asyncio.run(slot.drop([_png("dog.png")]))
    assert slot.error.startswith("This doesn't appear to contain a clear face")

    asyncio.run(slot.drop([_png("blurry.png")]))
    assert slot.error == "Photo quality is too low. Issues: blurry, too dark. Please upload a clearer photo."

    asyncio.run(slot.drop([_png("me.png")]))
    assert slot.is_ready
    assert slot.analysis.quality == "good"


def test_every_drop_and_remove_sequence_leaves_no_previews() -> None:
    previews = PreviewRegistry()
    classifier = MockClassificationProvider({"cat.png": NotClothingError()})
    top = clothing_slot(ClothingCategory.TOP, classifier, previews)
    bottom = clothing_slot(ClothingCategory.BOTTOM, classifier, previews)

    for name in ("shirt.png", "cat.png", "shirt2.png"):
        asyncio.run(top.drop([_png(name)]))
        asyncio.run(bottom.drop([_png(name)]))
    top.remove()
    bottom.remove()
    top.remove()

    assert previews.outstanding() == 0
