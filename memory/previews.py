"""Registry for ephemeral preview handles backed by in-memory image bytes."""

from __future__ import annotations

from typing import Dict, Optional
from uuid import uuid4

from models.clothing import UploadedFile

PREVIEW_PREFIX = "blob:preview/"


class PreviewRegistry:
    """Issues preview handles and holds their bytes until released.

    Every handle handed out by :meth:`acquire` must come back through
    :meth:`release`; :meth:`outstanding` reports the ones that have not.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, UploadedFile] = {}

    def acquire(self, file: UploadedFile) -> str:
        handle = f"{PREVIEW_PREFIX}{uuid4().hex}"
        self._handles[handle] = file
        return handle

    def release(self, handle: Optional[str]) -> bool:
        """Drop a handle. Unknown or already-released handles are ignored."""

        if handle is None:
            return False
        return self._handles.pop(handle, None) is not None

    def resolve(self, handle: str) -> Optional[UploadedFile]:
        return self._handles.get(handle)

    def outstanding(self) -> int:
        return len(self._handles)


__all__ = ["PreviewRegistry", "PREVIEW_PREFIX"]
