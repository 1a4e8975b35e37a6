"""Outfit image generation collaborators."""

from __future__ import annotations

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import requests
from google import generativeai as genai
from google.api_core import exceptions as google_exceptions

from logic.errors import GenerationError, MissingAPIKeyError, RateLimitedError
from logic.validation import GenerationRequest
from models.taxonomy import style_label
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)

_CLOTHING_PHRASES = {
    "head": "the hat/headwear",
    "top": "the top/shirt",
    "bottom": "the pants/bottom",
}


def build_outfit_prompt(request: GenerationRequest) -> str:
    """Describe the composite to generate, personalised when fields are known."""

    user_info: List[str] = []
    if request.height:
        user_info.append(f"{request.height:g}cm tall")
    if request.weight:
        user_info.append(f"{request.weight:g}kg")
    if request.age:
        user_info.append(f"{request.age} years old")
    if request.dressing_style:
        user_info.append(f"prefers {style_label(request.dressing_style).lower()} style")
    user_context = f" The person is {', '.join(user_info)}." if user_info else ""

    clothing = [_CLOTHING_PHRASES[slot] for slot in request.selected_image_urls()]
    return (
        f"Generate a full-body fashion photo of this person wearing {' and '.join(clothing)} "
        f"from the reference images.{user_context}\n\n"
        "The first image is the person's face - maintain their exact facial features.\n"
        "The following images are clothing items to dress them in.\n"
        "Create a natural, realistic fashion photo with professional lighting."
    )


def to_data_url(image: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


class OutfitGenerator(ABC):
    """Produces a composite outfit image for a generation request."""

    @abstractmethod
    async def generate_outfit(self, request: GenerationRequest) -> str:
        """Return the generated image as a data URL."""


class GeminiOutfitGenerator(OutfitGenerator):
    """Gemini image model fed with the face photo and the selected items."""

    def __init__(self, api_key: str | None, model: str, fetch_timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.model_name = model
        self.fetch_timeout = fetch_timeout
        self._model: genai.GenerativeModel | None = None

    def _get_model(self) -> genai.GenerativeModel:
        if not self.api_key:
            raise MissingAPIKeyError()
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def _fetch_image(self, url: str) -> tuple[bytes, str]:
        try:
            response = requests.get(url, timeout=self.fetch_timeout)
        except requests.RequestException as exc:
            raise GenerationError("Failed to fetch a reference image") from exc
        if not 200 <= response.status_code < 300:
            LOGGER.warning("Reference image fetch failed", extra={"status_code": response.status_code})
            raise GenerationError("Failed to fetch a reference image")
        mime_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        return response.content, mime_type if mime_type.startswith("image/") else "image/jpeg"

    @instrument_call("generate_outfit")
    async def generate_outfit(self, request: GenerationRequest) -> str:
        model = self._get_model()
        urls = [request.profile_pic_url, *request.selected_image_urls().values()]
        images = await asyncio.gather(*(asyncio.to_thread(self._fetch_image, url) for url in urls))

        contents: list = [build_outfit_prompt(request)]
        contents.extend({"mime_type": mime_type, "data": image} for image, mime_type in images)
        try:
            response = await model.generate_content_async(contents)
        except google_exceptions.ResourceExhausted as exc:
            raise RateLimitedError() from exc
        except google_exceptions.GoogleAPIError as exc:
            if "429" in str(exc):
                raise RateLimitedError() from exc
            raise GenerationError() from exc

        image, mime_type, text = self._extract_image(response)
        if image is None:
            LOGGER.warning("Model returned no image", extra={"details": text or "no text"})
            raise GenerationError("No image was generated")
        return to_data_url(image, mime_type or "image/png")

    @staticmethod
    def _extract_image(response: object) -> tuple[Optional[bytes], Optional[str], str]:
        text = ""
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return None, None, text
        for part in candidates[0].content.parts:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return inline.data, getattr(inline, "mime_type", None), text
            if getattr(part, "text", None):
                text += part.text
        return None, None, text


_PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class MockOutfitGenerator(OutfitGenerator):
    """Offline generator returning a 1x1 placeholder image."""

    def __init__(self) -> None:
        self.requests: List[GenerationRequest] = []

    async def generate_outfit(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        return to_data_url(_PLACEHOLDER_PNG)


__all__ = [
    "GeminiOutfitGenerator",
    "MockOutfitGenerator",
    "OutfitGenerator",
    "build_outfit_prompt",
    "to_data_url",
]
