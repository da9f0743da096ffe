"""Nano banana adapter: Gemini 2.5 Flash Image via the generateContent API.

The prompt and its negative constraints are sent in a single text part and
never logged.  The aspect ratio is inferred from the requested dimensions;
Gemini picks the pixel size itself.
"""

from __future__ import annotations

import base64
import binascii
import logging

from image_engine.core.constants import DEFAULT_CONTENT_TYPE
from image_engine.core.models import ProviderResult
from image_engine.core.providers import ProviderAdapterBase, ProviderInput, provider_registry

logger = logging.getLogger(__name__)


def determine_aspect_ratio(width: int, height: int) -> str:
    """Pick the closest Gemini-supported aspect ratio for a size."""
    if width == height:
        return "1:1"

    ratio = width / height
    if width > height:
        return "16:9" if abs(ratio - 16 / 9) < abs(ratio - 4 / 3) else "4:3"
    return "4:5" if abs(ratio - 4 / 5) < abs(ratio - 9 / 16) else "9:16"


def build_prompt_with_constraints(prompt: str, negative_prompt: str) -> str:
    if not negative_prompt.strip():
        return prompt
    return f"{prompt}\n\nConstraints: {negative_prompt}"


@provider_registry.register
class NanoBananaAdapter(ProviderAdapterBase):
    """Gemini Flash Image provider."""

    name = "nano_banana"
    description = "Gemini 2.5 Flash Image (generateContent)"
    version = "1.0.0"

    @property
    def endpoint(self) -> str:
        base = self.config.gemini_api_url.rstrip("/")
        return f"{base}/{self.config.gemini_model}:generateContent"

    async def generate(self, data: ProviderInput) -> ProviderResult:
        api_key = self.config.gemini_api_key
        if not api_key or not api_key.strip():
            return self._failure("MISSING_GEMINI_API_KEY", "Gemini API key not configured")

        model = self.config.gemini_model
        body = {
            "contents": [
                {"parts": [{"text": build_prompt_with_constraints(data.prompt, data.negative_prompt)}]}
            ],
            "generationConfig": {
                "responseModalities": ["Image"],
                "imageConfig": {"aspectRatio": determine_aspect_ratio(data.width, data.height)},
            },
        }

        async with self._client() as client:
            response = await client.post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": api_key},
            )

        if response.is_error:
            message = f"HTTP {response.status_code}"
            try:
                error = response.json().get("error") or {}
                if isinstance(error.get("message"), str):
                    message = f"{message}: {error['message']}"
            except (ValueError, AttributeError):
                pass
            logger.warning(f"Gemini returned {response.status_code} for {data.request_id}")
            return self._failure(
                "GEMINI_HTTP_ERROR", message, model=model, status=response.status_code
            )

        try:
            payload = response.json()
        except ValueError:
            return self._failure(
                "GEMINI_BAD_RESPONSE", "Failed to parse Gemini API response", model=model
            )

        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not candidates:
            return self._failure(
                "NO_IMAGE_RETURNED", "Gemini API did not return an image", model=model
            )

        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            inline = part.get("inlineData") or {}
            if not inline.get("data"):
                continue
            try:
                image_bytes = base64.b64decode(inline["data"], validate=True)
            except (binascii.Error, ValueError):
                return self._failure(
                    "GEMINI_BAD_RESPONSE", "Gemini API returned undecodable image data", model=model
                )
            return ProviderResult(
                ok=True,
                provider=self.name,
                image_bytes=image_bytes,
                mime_type=inline.get("mimeType") or DEFAULT_CONTENT_TYPE,
                raw={"model": model},
            )

        return self._failure(
            "NO_IMAGE_RETURNED", "Gemini API response did not contain image data", model=model
        )
