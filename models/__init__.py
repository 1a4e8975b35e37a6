"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.clothing import (
    ClassificationResult,
    ClothingRecord,
    FaceVerification,
    SavedClothingItem,
    UploadedFile,
)
from models.profile import ProfileFields, UserProfile

__all__ = [
    "ClassificationResult",
    "ClothingRecord",
    "FaceVerification",
    "ProfileFields",
    "SavedClothingItem",
    "UploadedFile",
    "UserProfile",
]
