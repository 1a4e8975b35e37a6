"""Error taxonomy shared by slots, collaborators and coordinators.

Every failure carries an ``error_kind`` so the host surface can render it
without inspecting exception types:

* ``validation``: rejected before any external call, never retried.
* ``rejection``: the collaborator answered but the image is unsuitable.
* ``service``: transport or external-service failure, safe to retry.
* ``state_corruption``: wizard state is structurally inconsistent.
* ``busy``: the action is already in flight.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from models.taxonomy import ClothingCategory


class WardrobeError(Exception):
    """Base class for every failure the coordinators surface."""

    error_kind = "service"
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class WardrobeValidationError(WardrobeError, ValueError):
    error_kind = "validation"
    default_message = "Invalid input."


class UploadValidationError(WardrobeValidationError):
    default_message = "No image provided"


class UnsupportedContentTypeError(UploadValidationError):
    default_message = "Only PNG and JPG images are allowed"


class FileTooLargeError(UploadValidationError):
    default_message = "File size must be less than 10MB"


class IncompleteSetupError(WardrobeValidationError):
    default_message = "Please complete all steps before submitting"


class GenerationValidationError(WardrobeValidationError):
    default_message = "Please select at least one clothing item"


class ClassificationError(WardrobeError):
    """The analysis collaborator could not produce a usable result."""

    error_kind = "rejection"


class NotClothingError(ClassificationError):
    default_message = "This doesn't appear to be a clothing item. Please upload a clear image of clothing."


class CategoryMismatchError(ClassificationError):
    def __init__(self, detected: ClothingCategory, expected: ClothingCategory) -> None:
        self.detected = detected
        self.expected = expected
        super().__init__(
            f"This appears to be a {detected.slug} item, but we need a {expected.slug} item. "
            "Please upload the correct type of clothing."
        )


class NotAFaceError(ClassificationError):
    default_message = "This doesn't appear to contain a clear face. Please upload a photo of yourself."


class PoorFaceQualityError(ClassificationError):
    def __init__(self, issues: Iterable[str] = ()) -> None:
        self.issues = tuple(issues)
        detail = ", ".join(self.issues) or "unknown"
        super().__init__(f"Photo quality is too low. Issues: {detail}. Please upload a clearer photo.")


class ClassificationServiceError(ClassificationError):
    error_kind = "service"
    default_message = "Failed to analyze image. Please try again."


class MissingAPIKeyError(ClassificationServiceError):
    def __init__(self, key_name: str = "GOOGLE_GENERATIVE_AI_API_KEY") -> None:
        self.key_name = key_name
        super().__init__(f"Missing {key_name} API key")


class StorageError(WardrobeError):
    default_message = "Failed to upload image. Please try again."


class PersistenceError(WardrobeError):
    default_message = "Failed to save profile. Please try again."


class GenerationError(WardrobeError):
    default_message = "Failed to generate outfit image"


class RateLimitedError(GenerationError):
    default_message = "Rate limit exceeded. Please wait a moment and try again."


class StateCorruptionError(WardrobeError):
    error_kind = "state_corruption"
    default_message = "Missing required data. Please start over."


class SlotBusyError(WardrobeError):
    error_kind = "busy"
    default_message = "Still analyzing the previous image. Please wait or remove it first."


class OperationInProgressError(WardrobeError):
    error_kind = "busy"
    default_message = "This action is already in progress."


def failure_payload(exc: WardrobeError, **extra: Any) -> Dict[str, Any]:
    """Translate a surfaced failure into the coordinator status envelope."""

    status = "needs_review" if exc.error_kind in {"validation", "rejection"} else "error"
    return {"status": status, "error_kind": exc.error_kind, "message": exc.message, **extra}


__all__ = [
    "CategoryMismatchError",
    "ClassificationError",
    "ClassificationServiceError",
    "FileTooLargeError",
    "GenerationError",
    "GenerationValidationError",
    "IncompleteSetupError",
    "MissingAPIKeyError",
    "NotAFaceError",
    "NotClothingError",
    "OperationInProgressError",
    "PersistenceError",
    "PoorFaceQualityError",
    "RateLimitedError",
    "SlotBusyError",
    "StateCorruptionError",
    "StorageError",
    "UnsupportedContentTypeError",
    "UploadValidationError",
    "WardrobeError",
    "WardrobeValidationError",
    "failure_payload",
]
