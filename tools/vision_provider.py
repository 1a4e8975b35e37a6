"""Vision collaborators: clothing classification and face-quality checks."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, TypeVar, Union

from google import generativeai as genai
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, ValidationError

from logic.errors import (
    CategoryMismatchError,
    ClassificationServiceError,
    MissingAPIKeyError,
    NotAFaceError,
    NotClothingError,
    PoorFaceQualityError,
)
from logic.validation import ClothingAnalysisPayload, FaceAnalysisPayload
from models.clothing import ClassificationResult, FaceVerification, UploadedFile
from models.taxonomy import ClothingCategory
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)
M = TypeVar("M", bound=BaseModel)

CLOTHING_PROMPT = (
    "Analyze this image and determine if it contains a clothing item. If it does, provide details "
    "about the clothing including its name (e.g. 'Black Hoodie', 'Blue Jeans'), a brief description, "
    "category (HEAD for hats/caps/beanies, TOP for shirts/jackets/hoodies/sweaters, BOTTOM for "
    "pants/shorts/skirts), primary color, and brand if visible (otherwise null). If the image does "
    "not contain a clear clothing item, set is_clothing to false. Answer with a JSON object with the "
    "keys is_clothing, name, description, category, color, brand."
)

FACE_PROMPT = (
    "Analyze this image to verify it's suitable for a profile picture. Check if:\n"
    "1. It contains a clear human face\n"
    "2. The face is centered and visible\n"
    "3. The quality is good (not blurry, well-lit, not too dark)\n"
    "4. There's only one face in the image\n"
    "5. The face is not obscured\n"
    "Answer with a JSON object with the keys is_face (boolean), quality (one of good, acceptable, "
    "poor) and issues (a list of short strings such as 'blurry' or 'too dark')."
)


class ClassificationProvider(ABC):
    """Classifies clothing photos."""

    @abstractmethod
    async def classify(
        self, file: UploadedFile, expected_category: Optional[ClothingCategory] = None
    ) -> ClassificationResult:
        """Return the classification or raise a :class:`ClassificationError`."""


class FaceVerifier(ABC):
    """Checks that a photo is a usable face for outfit generation."""

    @abstractmethod
    async def verify_face(self, file: UploadedFile) -> FaceVerification:
        """Return the verification or raise a :class:`ClassificationError`."""


class _GeminiVisionClient:
    """Shared plumbing for JSON-mode Gemini vision calls."""

    def __init__(self, api_key: str | None, model: str) -> None:
        self.api_key = api_key
        self.model_name = model
        self._model: genai.GenerativeModel | None = None

    def _get_model(self) -> genai.GenerativeModel:
        if not self.api_key:
            raise MissingAPIKeyError()
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    async def ask(self, file: UploadedFile, prompt: str, schema: type[M], failure_message: str) -> M:
        model = self._get_model()
        try:
            response = await model.generate_content_async(
                [{"mime_type": file.media_type, "data": file.data}, prompt],
                generation_config=genai.GenerationConfig(response_mime_type="application/json"),
            )
            return schema.model_validate_json(response.text)
        except google_exceptions.GoogleAPIError as exc:
            if "api key" in str(exc).lower():
                raise MissingAPIKeyError() from exc
            LOGGER.error("Vision request failed", extra={"model": self.model_name, "error": str(exc)})
            raise ClassificationServiceError(failure_message) from exc
        except (ValidationError, ValueError) as exc:
            LOGGER.error("Vision response unusable", extra={"model": self.model_name, "error": str(exc)})
            raise ClassificationServiceError(failure_message) from exc


class GeminiClassificationProvider(ClassificationProvider):
    """Gemini-backed clothing classifier."""

    def __init__(self, api_key: str | None, model: str) -> None:
        self._client = _GeminiVisionClient(api_key, model)

    @instrument_call("classify_clothing")
    async def classify(
        self, file: UploadedFile, expected_category: Optional[ClothingCategory] = None
    ) -> ClassificationResult:
        prompt = CLOTHING_PROMPT
        if expected_category is not None:
            prompt += f" The user expects this to be a {expected_category.value} item."
        payload = await self._client.ask(
            file, prompt, ClothingAnalysisPayload, "Failed to analyze clothing image. Please try again."
        )
        if not payload.is_clothing or payload.category is None:
            raise NotClothingError()
        detected = ClothingCategory(payload.category)
        if expected_category is not None and detected != expected_category:
            raise CategoryMismatchError(detected=detected, expected=expected_category)
        return ClassificationResult(
            name=payload.name,
            description=payload.description,
            category=detected,
            color=payload.color,
            brand=payload.brand or None,
        )


class GeminiFaceVerifier(FaceVerifier):
    """Gemini-backed profile photo checker."""

    def __init__(self, api_key: str | None, model: str) -> None:
        self._client = _GeminiVisionClient(api_key, model)

    @instrument_call("verify_face")
    async def verify_face(self, file: UploadedFile) -> FaceVerification:
        payload = await self._client.ask(
            file, FACE_PROMPT, FaceAnalysisPayload, "Failed to analyze face image. Please try again."
        )
        if not payload.is_face:
            raise NotAFaceError()
        if payload.quality == "poor":
            raise PoorFaceQualityError(payload.issues)
        return FaceVerification(is_face=True, quality=payload.quality, issues=tuple(payload.issues))


ScriptedClassification = Union[ClassificationResult, Exception]


class MockClassificationProvider(ClassificationProvider):
    """Offline classifier answering from a filename-keyed script.

    Unscripted files classify as a plain item of the expected category, or TOP.
    """

    def __init__(self, script: Dict[str, ScriptedClassification] | None = None) -> None:
        self.script = dict(script or {})
        self.calls: list[tuple[str, Optional[ClothingCategory]]] = []

    async def classify(
        self, file: UploadedFile, expected_category: Optional[ClothingCategory] = None
    ) -> ClassificationResult:
        self.calls.append((file.filename, expected_category))
        scripted = self.script.get(file.filename)
        if isinstance(scripted, Exception):
            raise scripted
        if scripted is not None:
            if expected_category is not None and scripted.category != expected_category:
                raise CategoryMismatchError(detected=scripted.category, expected=expected_category)
            return scripted
        category = expected_category or ClothingCategory.TOP
        stem = file.filename.rsplit(".", 1)[0].replace("_", " ").replace("-", " ").strip() or "Item"
        return ClassificationResult(
            name=stem.title(),
            description=f"Uploaded {category.slug} item",
            category=category,
            color="unknown",
        )


class MockFaceVerifier(FaceVerifier):
    """Offline verifier; every image is a good face unless scripted otherwise."""

    def __init__(self, script: Dict[str, Union[FaceVerification, Exception]] | None = None) -> None:
        self.script = dict(script or {})

    async def verify_face(self, file: UploadedFile) -> FaceVerification:
        scripted = self.script.get(file.filename)
        if isinstance(scripted, Exception):
            raise scripted
        return scripted or FaceVerification(is_face=True, quality="good")


__all__ = [
    "ClassificationProvider",
    "FaceVerifier",
    "GeminiClassificationProvider",
    "GeminiFaceVerifier",
    "MockClassificationProvider",
    "MockFaceVerifier",
]
