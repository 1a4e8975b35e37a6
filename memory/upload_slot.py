"""Per-category upload slot: one picked image plus its analysis outcome."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Sequence, TypeVar

from wardrobe_app.logging_config import get_logger, log_event
from logic.errors import (
    CategoryMismatchError,
    ClassificationError,
    ClassificationServiceError,
    NotAFaceError,
    PoorFaceQualityError,
    SlotBusyError,
    UploadValidationError,
)
from logic.validation import MAX_UPLOAD_BYTES, validate_upload
from memory.previews import PreviewRegistry
from models.clothing import ClassificationResult, FaceVerification, UploadedFile
from models.taxonomy import ClothingCategory

LOGGER = get_logger(__name__)
T = TypeVar("T")
Analyzer = Callable[[UploadedFile], Awaitable[T]]


class SlotState(str, Enum):
    EMPTY = "empty"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    FAILED = "failed"


class UploadSlot(Generic[T]):
    """Holds one dropped image, its preview handle and its analysis.

    ``analysis`` and ``error`` are never set together, and neither is set
    while ``analyzing`` is true. A drop while analyzing is rejected with
    :class:`SlotBusyError`. :meth:`remove` always releases the preview handle
    and invalidates any analysis still in flight, so a late result for a file
    the user already removed is discarded instead of applied.
    """

    def __init__(
        self,
        name: str,
        analyzer: Analyzer,
        previews: PreviewRegistry,
        max_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self.name = name
        self._analyzer = analyzer
        self._previews = previews
        self.max_bytes = max_bytes
        self.file: Optional[UploadedFile] = None
        self.preview: Optional[str] = None
        self.analysis: Optional[T] = None
        self.analyzing = False
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self._generation = 0

    @property
    def state(self) -> SlotState:
        if self.analyzing:
            return SlotState.ANALYZING
        if self.analysis is not None:
            return SlotState.ANALYZED
        if self.error is not None:
            return SlotState.FAILED
        return SlotState.EMPTY

    @property
    def is_ready(self) -> bool:
        """True when the slot holds a file with a usable analysis."""

        return self.file is not None and self.analysis is not None and not self.analyzing

    async def drop(self, files: Sequence[UploadedFile]) -> SlotState:
        """Accept exactly one dropped file and analyse it.

        Validation errors are raised before the slot changes. Analysis
        failures are recorded on the slot, not raised.
        """

        if not files:
            return self.state
        if len(files) > 1:
            raise UploadValidationError("Please drop exactly one image")
        file = validate_upload(files[0], self.max_bytes)
        if self.analyzing:
            raise SlotBusyError()
        if self.file is not None or self.preview is not None or self.error is not None:
            self.remove()

        self._generation += 1
        generation = self._generation
        self.file = file
        self.preview = self._previews.acquire(file)
        self.analysis = None
        self.error = None
        self.error_kind = None
        self.analyzing = True
        log_event(
            LOGGER,
            logging.INFO,
            "slot_analysis_started",
            slot=self.name,
            content_type=file.media_type,
            size=file.size,
        )

        try:
            result = await self._analyzer(file)
        except ClassificationError as exc:
            self._apply_failure(generation, exc.message, exc.error_kind)
        except asyncio.CancelledError:
            if generation == self._generation:
                self.remove()
            raise
        except Exception:  # noqa: BLE001 - analyzer boundary, surfaced on the slot
            log_event(LOGGER, logging.ERROR, "slot_analysis_crashed", slot=self.name, exc_info=True)
            self._apply_failure(generation, ClassificationServiceError.default_message, "service")
        else:
            self._apply_result(generation, result)
        return self.state

    def remove(self) -> None:
        """Return to the empty state from any state, releasing the preview."""

        self._previews.release(self.preview)
        self._generation += 1
        self.file = None
        self.preview = None
        self.analysis = None
        self.analyzing = False
        self.error = None
        self.error_kind = None

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        log_event(LOGGER, logging.INFO, "slot_result_discarded", slot=self.name)
        return True

    def _apply_result(self, generation: int, result: T) -> None:
        if self._is_stale(generation):
            return
        self.analysis = result
        self.error = None
        self.error_kind = None
        self.analyzing = False
        log_event(LOGGER, logging.INFO, "slot_analysis_completed", slot=self.name)

    def _apply_failure(self, generation: int, message: str, kind: str) -> None:
        if self._is_stale(generation):
            return
        self.error = message
        self.error_kind = kind
        self.analysis = None
        self.analyzing = False
        log_event(LOGGER, logging.WARNING, "slot_analysis_failed", slot=self.name, reason=message)

    def snapshot(self) -> Dict[str, Any]:
        analysis = self.analysis
        if analysis is not None and hasattr(analysis, "as_dict"):
            analysis = analysis.as_dict()
        return {
            "name": self.name,
            "state": self.state.value,
            "filename": self.file.filename if self.file else None,
            "preview": self.preview,
            "analysis": analysis,
            "analyzing": self.analyzing,
            "error": self.error,
            "error_kind": self.error_kind,
        }


def outcome_payload(slot: UploadSlot, state: SlotState) -> Dict[str, Any]:
    """Status envelope for a finished drop; analysis failures keep their kind."""

    if state is SlotState.FAILED:
        return {
            "status": "needs_review" if slot.error_kind == "rejection" else "error",
            "error_kind": slot.error_kind,
            "message": slot.error,
            "slot": slot.snapshot(),
        }
    return {"status": "ok", "slot": slot.snapshot()}


def clothing_slot(
    category: ClothingCategory,
    classifier: Any,
    previews: PreviewRegistry,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> UploadSlot[ClassificationResult]:
    """Build a slot whose analysis must be a clothing item of ``category``."""

    async def analyze(file: UploadedFile) -> ClassificationResult:
        result = await classifier.classify(file, expected_category=category)
        if result.category != category:
            raise CategoryMismatchError(detected=result.category, expected=category)
        return result

    return UploadSlot(category.slug, analyze, previews, max_bytes=max_bytes)


def face_slot(
    verifier: Any,
    previews: PreviewRegistry,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> UploadSlot[FaceVerification]:
    """Build a slot for a profile photo; a poor-quality face counts as a failure."""

    async def analyze(file: UploadedFile) -> FaceVerification:
        verification = await verifier.verify_face(file)
        if not verification.is_face:
            raise NotAFaceError()
        if verification.quality == "poor":
            raise PoorFaceQualityError(verification.issues)
        return verification

    return UploadSlot("face", analyze, previews, max_bytes=max_bytes)


__all__ = ["SlotState", "UploadSlot", "clothing_slot", "face_slot", "outcome_payload"]
