"""Profile setup wizard: guided steps, two clothing uploads, one atomic submit."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from wardrobe_app.logging_config import get_logger, log_event, operation_context
from logic.completion import find_state_corruption, is_complete, missing_requirements
from logic.errors import (
    IncompleteSetupError,
    OperationInProgressError,
    StateCorruptionError,
    StorageError,
    WardrobeError,
    WardrobeValidationError,
    failure_payload,
)
from logic.steps import SetupStep, StepSequencer, can_advance
from logic.validation import MAX_UPLOAD_BYTES
from memory.previews import PreviewRegistry
from memory.upload_slot import UploadSlot, clothing_slot, outcome_payload
from models.clothing import ClassificationResult, ClothingRecord, SavedClothingItem, UploadedFile
from models.profile import ProfileFields
from models.taxonomy import ClothingCategory, validate_category
from tools.profile_store import ProfileStore
from tools.storage_provider import StorageProvider
from tools.vision_provider import ClassificationProvider

LOGGER = get_logger(__name__)


class ProfileSetupWizard:
    """Owns all wizard state for one signed-in user.

    Derived values (``can_advance``, ``is_complete``, progress) are computed
    from the current state on every call. Every public action returns a status
    envelope; failures land in ``error`` or on the slot instead of escaping.
    """

    def __init__(
        self,
        user_id: str,
        classifier: ClassificationProvider,
        storage: StorageProvider,
        store: ProfileStore,
        previews: PreviewRegistry | None = None,
        on_complete: Optional[Callable[[], None]] = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self.user_id = user_id
        self.storage = storage
        self.store = store
        self.previews = previews or PreviewRegistry()
        self.on_complete = on_complete
        self.fields = ProfileFields()
        self.sequencer = StepSequencer()
        self.top_slot: UploadSlot[ClassificationResult] = clothing_slot(
            ClothingCategory.TOP, classifier, self.previews, max_bytes=max_upload_bytes
        )
        self.bottom_slot: UploadSlot[ClassificationResult] = clothing_slot(
            ClothingCategory.BOTTOM, classifier, self.previews, max_bytes=max_upload_bytes
        )
        self.is_submitting = False
        self.error: Optional[str] = None
        self.completed = False

    # Navigation

    @property
    def current_step(self) -> SetupStep:
        return self.sequencer.current

    def can_advance(self) -> bool:
        return can_advance(self.current_step, self.fields, self.top_slot, self.bottom_slot)

    def can_retreat(self) -> bool:
        return self.sequencer.can_retreat()

    def advance(self) -> SetupStep:
        return self.sequencer.advance()

    def retreat(self) -> SetupStep:
        return self.sequencer.retreat()

    def progress_fraction(self) -> float:
        return self.sequencer.progress_fraction()

    # Field store

    def update_fields(self, **changes: Any) -> Dict[str, Any]:
        try:
            self.fields = self.fields.updated(**changes)
        except ValueError as exc:
            return failure_payload(WardrobeValidationError(str(exc)))
        return {"status": "ok", "fields": self.fields.as_dict()}

    # Upload slots

    def slot_for(self, category: ClothingCategory | str) -> UploadSlot[ClassificationResult]:
        try:
            category = validate_category(category)
        except ValueError as exc:
            raise WardrobeValidationError(str(exc)) from None
        if category is ClothingCategory.TOP:
            return self.top_slot
        if category is ClothingCategory.BOTTOM:
            return self.bottom_slot
        raise WardrobeValidationError(f"The setup wizard has no {category.slug} upload step")

    async def drop_file(self, category: ClothingCategory | str, files: Sequence[UploadedFile]) -> Dict[str, Any]:
        """Drop files onto a slot; the analysis outcome lands on the slot."""

        try:
            slot = self.slot_for(category)
            state = await slot.drop(files)
        except WardrobeError as exc:
            return failure_payload(exc)
        return outcome_payload(slot, state)

    def remove_file(self, category: ClothingCategory | str) -> Dict[str, Any]:
        try:
            slot = self.slot_for(category)
        except WardrobeError as exc:
            return failure_payload(exc)
        slot.remove()
        return {"status": "ok", "slot": slot.snapshot()}

    # Completion and submission

    def is_complete(self) -> bool:
        return is_complete(self.fields, self.top_slot, self.bottom_slot)

    async def submit(self) -> Dict[str, Any]:
        """Upload both images together, then persist everything atomically.

        Nothing is cached between attempts: a retry repeats both uploads.
        """

        with operation_context("wizard:submit") as correlation_id:
            if self.is_submitting:
                return failure_payload(OperationInProgressError("Your profile is already being saved."))

            if not self.is_complete():
                problems = find_state_corruption(self.top_slot, self.bottom_slot)
                if problems:
                    log_event(
                        LOGGER,
                        logging.ERROR,
                        "wizard_state_corrupted",
                        problems=problems,
                        correlation_id=correlation_id,
                    )
                    self.reset()
                    exc: WardrobeError = StateCorruptionError()
                    self.error = exc.message
                    return failure_payload(exc, problems=problems)
                exc = IncompleteSetupError()
                self.error = exc.message
                return failure_payload(exc, missing=missing_requirements(self.fields, self.top_slot, self.bottom_slot))

            self.is_submitting = True
            self.error = None
            log_event(LOGGER, logging.INFO, "wizard_submit_started", correlation_id=correlation_id)
            try:
                saved = await self._upload_and_persist()
            except WardrobeError as exc:
                self.error = exc.message
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "wizard_submit_failed",
                    error_kind=exc.error_kind,
                    reason=exc.message,
                    correlation_id=correlation_id,
                )
                return failure_payload(exc)
            finally:
                self.is_submitting = False

            self.top_slot.remove()
            self.bottom_slot.remove()
            self.completed = True
            log_event(LOGGER, logging.INFO, "wizard_submit_completed", correlation_id=correlation_id)
            if self.on_complete is not None:
                self.on_complete()
            return {"status": "ok", "items": [item.as_dict() for item in saved]}

    async def _upload_and_persist(self) -> Tuple[SavedClothingItem, SavedClothingItem]:
        fields = self.fields
        top_file, top_result = self.top_slot.file, self.top_slot.analysis
        bottom_file, bottom_result = self.bottom_slot.file, self.bottom_slot.analysis

        outcomes = await asyncio.gather(
            self.storage.store_file(top_file, self.user_id, category=top_result.category),
            self.storage.store_file(bottom_file, self.user_id, category=bottom_result.category),
            return_exceptions=True,
        )
        urls: List[str] = []
        for outcome in outcomes:
            if isinstance(outcome, WardrobeError):
                raise outcome
            if isinstance(outcome, Exception):
                raise StorageError() from outcome
            if isinstance(outcome, BaseException):
                raise outcome
            urls.append(outcome)

        top_url, bottom_url = urls
        return await self.store.save_profile_and_clothing(
            self.user_id,
            fields,
            ClothingRecord.from_classification(top_result, top_url),
            ClothingRecord.from_classification(bottom_result, bottom_url),
        )

    def reset(self) -> None:
        """Back to the first step with empty answers and empty slots."""

        self.top_slot.remove()
        self.bottom_slot.remove()
        self.fields = ProfileFields()
        self.sequencer.reset()
        self.is_submitting = False
        self.error = None
        self.completed = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "current_step": self.current_step.value,
            "step_index": self.sequencer.index,
            "progress": self.sequencer.progress_percent(),
            "can_advance": self.can_advance(),
            "can_retreat": self.can_retreat(),
            "fields": self.fields.as_dict(),
            "top": self.top_slot.snapshot(),
            "bottom": self.bottom_slot.snapshot(),
            "is_complete": self.is_complete(),
            "is_submitting": self.is_submitting,
            "error": self.error,
            "completed": self.completed,
        }


__all__ = ["ProfileSetupWizard"]
