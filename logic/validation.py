"""Pydantic schemas and helpers for validating collaborator payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from logic.errors import FileTooLargeError, UnsupportedContentTypeError, UploadValidationError
from models.clothing import UploadedFile
from models.taxonomy import ALLOWED_IMAGE_TYPES, DressingStyle

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ClothingAnalysisPayload(BaseModel):
    """JSON contract the vision model must answer with for clothing photos."""

    is_clothing: bool
    name: str = ""
    description: str = ""
    category: Optional[Literal["HEAD", "TOP", "BOTTOM"]] = None
    color: str = ""
    brand: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _upper_category(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class FaceAnalysisPayload(BaseModel):
    """JSON contract the vision model must answer with for profile photos."""

    is_face: bool
    quality: Literal["good", "acceptable", "poor"]
    issues: List[str] = []

    @field_validator("quality", mode="before")
    @classmethod
    def _lower_quality(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class GenerationRequest(BaseModel):
    """Everything the outfit generator needs for one composite image."""

    profile_pic_url: str = Field(min_length=1)
    head_image_url: Optional[str] = None
    top_image_url: Optional[str] = None
    bottom_image_url: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None
    dressing_style: Optional[DressingStyle] = None

    def selected_image_urls(self) -> Dict[str, str]:
        """Return the clothing references in head, top, bottom order."""

        urls = {
            "head": self.head_image_url,
            "top": self.top_image_url,
            "bottom": self.bottom_image_url,
        }
        return {slot: url for slot, url in urls.items() if url}


class ClothingRecordPayload(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    category: Literal["HEAD", "TOP", "BOTTOM"]
    color: str = ""
    brand: Optional[str] = None
    image_url: str = Field(min_length=1)


class ProfileSubmission(BaseModel):
    """Shape checked by the persistence layer before the atomic write."""

    height: float = Field(gt=0)
    weight: float = Field(gt=0)
    age: int = Field(gt=0)
    dressing_style: DressingStyle
    top: ClothingRecordPayload
    bottom: ClothingRecordPayload


class ValidationResult(BaseModel):
    """Wrapper returned to callers when payload validation fails."""

    status: Literal["needs_review"] = "needs_review"
    error_kind: Literal["validation"] = "validation"
    message: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, exc: ValidationError) -> Dict[str, Any]:
    """Translate Pydantic errors into a consistent review payload."""

    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return ValidationResult(message=message, details=details).model_dump()


def validate_upload(file: Optional[UploadedFile], max_bytes: int = MAX_UPLOAD_BYTES) -> UploadedFile:
    """Reject missing, non PNG/JPEG or oversize images before any network call."""

    if file is None or not file.data:
        raise UploadValidationError()
    if file.media_type not in ALLOWED_IMAGE_TYPES:
        raise UnsupportedContentTypeError()
    if file.size > max_bytes:
        raise FileTooLargeError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")
    return file


__all__ = [
    "ClothingAnalysisPayload",
    "ClothingRecordPayload",
    "FaceAnalysisPayload",
    "GenerationRequest",
    "MAX_UPLOAD_BYTES",
    "ProfileSubmission",
    "ValidationResult",
    "validate_upload",
    "validation_failure",
]
