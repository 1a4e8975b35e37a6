"""Profile fields collected by the setup wizard."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from models.taxonomy import DressingStyle, validate_dressing_style


def _coerce_number(name: str, value: Any, kind: type) -> Optional[float]:
    """Coerce form input into ``kind``; ``None`` and blank strings mean unset."""

    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if kind is int:
        if not number.is_integer():
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        return int(number)
    return number


@dataclass(frozen=True)
class ProfileFields:
    """Scalar profile fields; ``None`` means the user has not answered yet."""

    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None
    dressing_style: DressingStyle = DressingStyle.CASUAL

    def updated(self, **changes: Any) -> "ProfileFields":
        """Return a copy with ``changes`` merged in.

        Zero or negative numbers are accepted here; they only fail the
        navigation and completion predicates.
        """

        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown}")

        coerced: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "dressing_style":
                coerced[key] = validate_dressing_style(value)
            elif key == "age":
                coerced[key] = _coerce_number(key, value, int)
            else:
                coerced[key] = _coerce_number(key, value, float)
        return replace(self, **coerced)

    @staticmethod
    def is_positive(value: Optional[float]) -> bool:
        return value is not None and value > 0

    @property
    def is_filled(self) -> bool:
        return all(self.is_positive(v) for v in (self.height, self.weight, self.age))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "weight": self.weight,
            "age": self.age,
            "dressing_style": self.dressing_style.value,
        }


@dataclass(frozen=True)
class UserProfile:
    """A profile as fetched back from persistence."""

    user_id: str
    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None
    dressing_style: DressingStyle = DressingStyle.CASUAL
    profile_pic: Optional[str] = None


__all__ = ["ProfileFields", "UserProfile"]
