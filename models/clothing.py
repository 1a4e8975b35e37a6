"""Clothing, face and upload data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from models.taxonomy import ClothingCategory, normalize_content_type, validate_category

FACE_QUALITIES = ("good", "acceptable", "poor")


@dataclass(frozen=True)
class UploadedFile:
    """An image the user picked, held in memory until it is stored."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def media_type(self) -> str:
        return normalize_content_type(self.content_type)


@dataclass(frozen=True)
class ClassificationResult:
    """What the vision model says about a clothing photo."""

    name: str
    description: str
    category: ClothingCategory
    color: str
    brand: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", validate_category(self.category))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "color": self.color,
            "brand": self.brand,
        }


@dataclass(frozen=True)
class FaceVerification:
    """Outcome of a face-quality check on a profile photo."""

    is_face: bool
    quality: str
    issues: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.quality not in FACE_QUALITIES:
            raise ValueError(f"Unsupported face quality '{self.quality}'. Allowed: {list(FACE_QUALITIES)}")
        object.__setattr__(self, "issues", tuple(self.issues))

    def as_dict(self) -> Dict[str, Any]:
        return {"is_face": self.is_face, "quality": self.quality, "issues": list(self.issues)}


@dataclass(frozen=True)
class ClothingRecord:
    """A clothing row about to be persisted."""

    name: str
    description: str
    category: ClothingCategory
    color: str
    image_url: str
    brand: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", validate_category(self.category))

    @classmethod
    def from_classification(cls, result: ClassificationResult, image_url: str) -> "ClothingRecord":
        return cls(
            name=result.name,
            description=result.description,
            category=result.category,
            color=result.color,
            brand=result.brand,
            image_url=image_url,
        )


@dataclass(frozen=True)
class SavedClothingItem:
    """A clothing item already in the user's wardrobe."""

    item_id: str
    name: str
    category: ClothingCategory
    image_url: str
    color: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", validate_category(self.category))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category.value,
            "image_url": self.image_url,
            "color": self.color,
            "brand": self.brand,
            "description": self.description,
        }


__all__ = [
    "ClassificationResult",
    "ClothingRecord",
    "FACE_QUALITIES",
    "FaceVerification",
    "SavedClothingItem",
    "UploadedFile",
]
