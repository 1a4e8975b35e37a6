"""Dashboard selection of saved items and generation request assembly."""

from __future__ import annotations

from typing import Dict, List, Optional

from logic.errors import GenerationValidationError
from logic.validation import GenerationRequest
from models.clothing import SavedClothingItem
from models.profile import UserProfile
from models.taxonomy import ClothingCategory

PROFILE_PICTURE_REQUIRED = "Profile picture required. Please upload a profile picture first."
SELECTION_REQUIRED = "Please select at least one clothing item"


class SelectionSet:
    """At most one chosen saved item per clothing category."""

    def __init__(self) -> None:
        self._selected: Dict[ClothingCategory, SavedClothingItem] = {}

    def toggle(self, item: SavedClothingItem) -> Optional[SavedClothingItem]:
        """Select ``item``, or deselect it when it is already selected.

        Returns the item now selected for that category, if any.
        """

        current = self._selected.get(item.category)
        if current is not None and current.item_id == item.item_id:
            del self._selected[item.category]
            return None
        self._selected[item.category] = item
        return item

    def selected(self, category: ClothingCategory) -> Optional[SavedClothingItem]:
        return self._selected.get(category)

    def items(self) -> List[SavedClothingItem]:
        return [self._selected[c] for c in ClothingCategory if c in self._selected]

    def discard(self, item_id: str) -> None:
        for category, item in list(self._selected.items()):
            if item.item_id == item_id:
                del self._selected[category]

    def clear(self) -> None:
        self._selected.clear()

    @property
    def is_empty(self) -> bool:
        return not self._selected

    def as_dict(self) -> Dict[str, dict]:
        return {category.slug: item.as_dict() for category, item in self._selected.items()}


def build_generation_request(selection: SelectionSet, profile: Optional[UserProfile]) -> GenerationRequest:
    """Assemble a generation request, rejecting it before any network call."""

    if profile is None or not profile.profile_pic:
        raise GenerationValidationError(PROFILE_PICTURE_REQUIRED)
    if selection.is_empty:
        raise GenerationValidationError(SELECTION_REQUIRED)

    head = selection.selected(ClothingCategory.HEAD)
    top = selection.selected(ClothingCategory.TOP)
    bottom = selection.selected(ClothingCategory.BOTTOM)
    return GenerationRequest(
        profile_pic_url=profile.profile_pic,
        head_image_url=head.image_url if head else None,
        top_image_url=top.image_url if top else None,
        bottom_image_url=bottom.image_url if bottom else None,
        height=profile.height,
        weight=profile.weight,
        age=profile.age,
        dressing_style=profile.dressing_style,
    )


__all__ = ["PROFILE_PICTURE_REQUIRED", "SELECTION_REQUIRED", "SelectionSet", "build_generation_request"]
