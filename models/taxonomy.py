"""Canonical labels for clothing categories and dressing styles.

Categories and styles arrive as free-form strings from the vision model, the
HTTP layer and the database. The parsing helpers here keep them consistent
everywhere else.
"""

from enum import Enum
from typing import Dict, List


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into an enum key."""

    return value.strip().upper().replace(" ", "_").replace("-", "_")


class ClothingCategory(str, Enum):
    HEAD = "HEAD"
    TOP = "TOP"
    BOTTOM = "BOTTOM"

    @property
    def slug(self) -> str:
        return self.value.lower()


class DressingStyle(str, Enum):
    CASUAL = "CASUAL"
    FORMAL = "FORMAL"
    SPORTY = "SPORTY"
    STREETWEAR = "STREETWEAR"
    MINIMALIST = "MINIMALIST"


DRESSING_STYLE_DETAILS: Dict[DressingStyle, Dict[str, str]] = {
    DressingStyle.CASUAL: {"label": "Casual", "description": "Relaxed and comfortable everyday wear"},
    DressingStyle.FORMAL: {"label": "Formal", "description": "Professional and polished attire"},
    DressingStyle.SPORTY: {"label": "Sporty", "description": "Athletic and active lifestyle clothing"},
    DressingStyle.STREETWEAR: {"label": "Streetwear", "description": "Urban and trendy fashion"},
    DressingStyle.MINIMALIST: {"label": "Minimalist", "description": "Simple and clean aesthetic"},
}

# Only these image types may be uploaded to storage or dropped on a slot.
ALLOWED_IMAGE_TYPES: List[str] = ["image/png", "image/jpeg", "image/jpg"]


def validate_category(value: "str | ClothingCategory") -> ClothingCategory:
    """Validate and normalise a clothing category.

    Raises a :class:`ValueError` if the category is not HEAD, TOP or BOTTOM.
    """

    if isinstance(value, ClothingCategory):
        return value
    key = _normalize_key(str(value))
    try:
        return ClothingCategory(key)
    except ValueError:
        allowed = [c.value for c in ClothingCategory]
        raise ValueError(f"Unsupported category '{value}'. Allowed: {allowed}") from None


def validate_dressing_style(value: "str | DressingStyle") -> DressingStyle:
    """Validate and normalise a dressing style."""

    if isinstance(value, DressingStyle):
        return value
    key = _normalize_key(str(value))
    try:
        return DressingStyle(key)
    except ValueError:
        allowed = [s.value for s in DressingStyle]
        raise ValueError(f"Unsupported dressing style '{value}'. Allowed: {allowed}") from None


def style_label(style: DressingStyle) -> str:
    return DRESSING_STYLE_DETAILS[style]["label"]


def normalize_content_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "ClothingCategory",
    "DressingStyle",
    "DRESSING_STYLE_DETAILS",
    "normalize_content_type",
    "style_label",
    "validate_category",
    "validate_dressing_style",
]
