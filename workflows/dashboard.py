"""Dashboard session: saved wardrobe, outfit selection and generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from wardrobe_app.logging_config import get_logger, log_event, operation_context
from logic.errors import (
    GenerationError,
    OperationInProgressError,
    WardrobeError,
    WardrobeValidationError,
    failure_payload,
)
from logic.selection import SelectionSet, build_generation_request
from logic.validation import MAX_UPLOAD_BYTES
from memory.previews import PreviewRegistry
from memory.upload_slot import UploadSlot, clothing_slot, face_slot, outcome_payload
from models.clothing import ClassificationResult, ClothingRecord, FaceVerification, SavedClothingItem, UploadedFile
from models.profile import UserProfile
from models.taxonomy import ClothingCategory, validate_category
from tools.generation_provider import OutfitGenerator
from tools.profile_store import ProfileStore
from tools.storage_provider import StorageProvider
from tools.vision_provider import ClassificationProvider, FaceVerifier

LOGGER = get_logger(__name__)


class DashboardSession:
    """State behind the signed-in dashboard for one user.

    At most one outfit generation is in flight at a time. ``generate_outfit``
    refuses while one is running; ``regenerate`` cancels the running call and
    starts a fresh one, so a superseded result is never shown.
    """

    def __init__(
        self,
        user_id: str,
        classifier: ClassificationProvider,
        face_verifier: FaceVerifier,
        storage: StorageProvider,
        store: ProfileStore,
        generator: OutfitGenerator,
        previews: PreviewRegistry | None = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self.user_id = user_id
        self.storage = storage
        self.store = store
        self.generator = generator
        self.previews = previews or PreviewRegistry()
        self.clothing: List[SavedClothingItem] = []
        self.profile: Optional[UserProfile] = None
        self.selection = SelectionSet()
        self.clothing_slots: Dict[ClothingCategory, UploadSlot[ClassificationResult]] = {
            category: clothing_slot(category, classifier, self.previews, max_bytes=max_upload_bytes)
            for category in ClothingCategory
        }
        self.face: UploadSlot[FaceVerification] = face_slot(face_verifier, self.previews, max_bytes=max_upload_bytes)
        self.is_saving = False
        self.is_generating = False
        self.generated_image: Optional[str] = None
        self.error: Optional[str] = None
        self._generation_task: Optional[asyncio.Task] = None
        self._latest_request = 0

    async def load(self) -> Dict[str, Any]:
        """Fetch the wardrobe (newest first) and the profile."""

        with operation_context("dashboard:load"):
            try:
                self.clothing, self.profile = await asyncio.gather(
                    self.store.list_clothing(self.user_id),
                    self.store.get_profile(self.user_id),
                )
            except WardrobeError as exc:
                self.error = exc.message
                return failure_payload(exc)
            self._prune_selection()
            return {"status": "ok", **self.snapshot()}

    def _prune_selection(self) -> None:
        known = {item.item_id for item in self.clothing}
        for item in self.selection.items():
            if item.item_id not in known:
                self.selection.discard(item.item_id)

    def find_item(self, item_id: str) -> Optional[SavedClothingItem]:
        return next((item for item in self.clothing if item.item_id == item_id), None)

    def toggle_item(self, item_id: str) -> Dict[str, Any]:
        item = self.find_item(item_id)
        if item is None:
            return failure_payload(WardrobeValidationError(f"Unknown clothing item '{item_id}'"))
        self.selection.toggle(item)
        return {"status": "ok", "selection": self.selection.as_dict()}

    # Adding clothing

    def clothing_slot_for(self, category: ClothingCategory | str) -> UploadSlot[ClassificationResult]:
        try:
            return self.clothing_slots[validate_category(category)]
        except ValueError as exc:
            raise WardrobeValidationError(str(exc)) from None

    async def drop_clothing(self, category: ClothingCategory | str, files: Sequence[UploadedFile]) -> Dict[str, Any]:
        try:
            slot = self.clothing_slot_for(category)
            state = await slot.drop(files)
        except WardrobeError as exc:
            return failure_payload(exc)
        return outcome_payload(slot, state)

    def remove_clothing(self, category: ClothingCategory | str) -> Dict[str, Any]:
        try:
            slot = self.clothing_slot_for(category)
        except WardrobeError as exc:
            return failure_payload(exc)
        slot.remove()
        return {"status": "ok", "slot": slot.snapshot()}

    async def save_clothing(self, category: ClothingCategory | str) -> Dict[str, Any]:
        """Upload the analysed image in ``category`` and add it to the wardrobe."""

        with operation_context("dashboard:save_clothing") as correlation_id:
            try:
                slot = self.clothing_slot_for(category)
            except WardrobeError as exc:
                return failure_payload(exc)
            if self.is_saving:
                return failure_payload(OperationInProgressError("Already saving an item."))
            if not slot.is_ready:
                return failure_payload(WardrobeValidationError("Please upload and analyze an image first"))

            file, result = slot.file, slot.analysis
            self.is_saving = True
            try:
                url = await self.storage.store_file(file, self.user_id, category=result.category)
                saved = await self.store.create_clothing(self.user_id, ClothingRecord.from_classification(result, url))
                self.clothing = await self.store.list_clothing(self.user_id)
            except WardrobeError as exc:
                self.error = exc.message
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "clothing_save_failed",
                    error_kind=exc.error_kind,
                    reason=exc.message,
                    correlation_id=correlation_id,
                )
                return failure_payload(exc)
            finally:
                self.is_saving = False

            if slot.file is file:
                slot.remove()
            self.error = None
            log_event(LOGGER, logging.INFO, "clothing_saved", category=saved.category.value, correlation_id=correlation_id)
            return {"status": "ok", "item": saved.as_dict()}

    # Profile picture

    async def drop_face(self, files: Sequence[UploadedFile]) -> Dict[str, Any]:
        try:
            state = await self.face.drop(files)
        except WardrobeError as exc:
            return failure_payload(exc)
        return outcome_payload(self.face, state)

    def remove_face(self) -> Dict[str, Any]:
        self.face.remove()
        return {"status": "ok", "slot": self.face.snapshot()}

    async def save_profile_picture(self) -> Dict[str, Any]:
        with operation_context("dashboard:save_profile_picture"):
            if self.is_saving:
                return failure_payload(OperationInProgressError("Already saving an item."))
            if not self.face.is_ready:
                return failure_payload(WardrobeValidationError("Please upload a verified photo first"))

            file = self.face.file
            self.is_saving = True
            try:
                url = await self.storage.store_file(file, self.user_id, kind="profile")
                self.profile = await self.store.set_profile_picture(self.user_id, url)
            except WardrobeError as exc:
                self.error = exc.message
                return failure_payload(exc)
            finally:
                self.is_saving = False

            if self.face.file is file:
                self.face.remove()
            self.error = None
            return {"status": "ok", "profile_pic": self.profile.profile_pic}

    # Generation

    async def generate_outfit(self) -> Dict[str, Any]:
        if self.is_generating or self._generation_in_flight():
            return failure_payload(OperationInProgressError("An outfit is already being generated."))
        self._latest_request += 1
        return await self._run_generation(self._latest_request)

    async def regenerate(self) -> Dict[str, Any]:
        """Discard any running generation and start over with the current selection.

        Overlapping calls collapse onto the newest one: every older caller
        reports ``superseded`` and only the newest starts a generator call.
        """

        self._latest_request += 1
        ticket = self._latest_request
        self.is_generating = True
        while self._generation_in_flight():
            old = self._generation_task
            old.cancel()
            await asyncio.wait([old])
            log_event(LOGGER, logging.INFO, "generation_superseded")
            if ticket != self._latest_request:
                return {"status": "superseded"}
        return await self._run_generation(ticket)

    def _generation_in_flight(self) -> bool:
        return self._generation_task is not None and not self._generation_task.done()

    async def _run_generation(self, ticket: int) -> Dict[str, Any]:
        with operation_context("dashboard:generate") as correlation_id:
            try:
                request = build_generation_request(self.selection, self.profile)
            except WardrobeError as exc:
                if ticket == self._latest_request:
                    self.is_generating = False
                self.error = exc.message
                return failure_payload(exc)

            task = asyncio.create_task(self.generator.generate_outfit(request))
            self._generation_task = task
            self.is_generating = True
            self.error = None
            try:
                image = await task
            except asyncio.CancelledError:
                if ticket != self._latest_request:
                    return {"status": "superseded"}
                task.cancel()
                raise
            except WardrobeError as exc:
                if ticket != self._latest_request:
                    return {"status": "superseded"}
                self.error = exc.message
                return failure_payload(exc)
            except Exception:  # noqa: BLE001 - generator boundary
                if ticket != self._latest_request:
                    return {"status": "superseded"}
                log_event(LOGGER, logging.ERROR, "generation_crashed", correlation_id=correlation_id, exc_info=True)
                exc = GenerationError()
                self.error = exc.message
                return failure_payload(exc)
            finally:
                if ticket == self._latest_request:
                    self.is_generating = False
                    if task.done():
                        self._generation_task = None

            if ticket != self._latest_request:
                return {"status": "superseded"}
            self.generated_image = image
            log_event(LOGGER, logging.INFO, "outfit_generated", correlation_id=correlation_id)
            return {"status": "ok", "image": image}

    def snapshot(self) -> Dict[str, Any]:
        return {
            "clothing": [item.as_dict() for item in self.clothing],
            "profile_pic": self.profile.profile_pic if self.profile else None,
            "selection": self.selection.as_dict(),
            "slots": {category.slug: slot.snapshot() for category, slot in self.clothing_slots.items()},
            "face": self.face.snapshot(),
            "is_saving": self.is_saving,
            "is_generating": self.is_generating,
            "generated_image": self.generated_image,
            "error": self.error,
        }


__all__ = ["DashboardSession"]
