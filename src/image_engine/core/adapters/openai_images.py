"""OpenAI Images adapter (``/v1/images/generations``)."""

from __future__ import annotations

import base64
import binascii
import logging

from image_engine.core.constants import DEFAULT_CONTENT_TYPE
from image_engine.core.models import ProviderResult
from image_engine.core.providers import ProviderAdapterBase, ProviderInput, provider_registry

logger = logging.getLogger(__name__)


def openai_size(width: int, height: int) -> str:
    """Map a target size onto one of the sizes the Images API accepts."""
    if width == height:
        return "1024x1024"
    if width > height:
        return "1536x1024"
    return "1024x1536"


@provider_registry.register
class OpenAIImagesAdapter(ProviderAdapterBase):
    """OpenAI Images provider.

    The API has no negative prompt parameter, so constraints are appended to
    the prompt text.  Images come back base64-encoded (``b64_json``).
    """

    name = "openai"
    description = "OpenAI Images API"
    version = "1.0.0"

    async def generate(self, data: ProviderInput) -> ProviderResult:
        api_key = self.config.openai_api_key
        if not api_key or not api_key.strip():
            return self._failure("MISSING_OPENAI_API_KEY", "OpenAI API key not configured")

        model = self.config.openai_model
        prompt = data.prompt
        if data.negative_prompt.strip():
            prompt = f"{prompt}\n\nAvoid: {data.negative_prompt}"

        async with self._client() as client:
            response = await client.post(
                self.config.openai_api_url,
                json={
                    "model": model,
                    "prompt": prompt,
                    "n": 1,
                    "size": openai_size(data.width, data.height),
                },
                headers={"Authorization": f"Bearer {api_key}"},
            )

        if response.is_error:
            error: dict = {}
            try:
                error = response.json().get("error") or {}
            except (ValueError, AttributeError):
                pass
            logger.warning(f"OpenAI returned {response.status_code} for {data.request_id}")
            if error.get("code") == "content_policy_violation":
                return self._failure(
                    "OPENAI_CONTENT_REJECTED",
                    "Image request was rejected by the provider's content policy",
                    model=model,
                    status=response.status_code,
                )
            message = f"HTTP {response.status_code}"
            if isinstance(error.get("message"), str):
                message = f"{message}: {error['message']}"
            return self._failure(
                "OPENAI_HTTP_ERROR", message, model=model, status=response.status_code
            )

        try:
            items = response.json().get("data") or []
        except (ValueError, AttributeError):
            return self._failure(
                "OPENAI_BAD_RESPONSE", "Failed to parse OpenAI API response", model=model
            )

        encoded = items[0].get("b64_json") if items else None
        if not encoded:
            return self._failure(
                "NO_IMAGE_RETURNED", "OpenAI API did not return an image", model=model
            )

        try:
            image_bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            return self._failure(
                "OPENAI_BAD_RESPONSE", "OpenAI API returned undecodable image data", model=model
            )

        return ProviderResult(
            ok=True,
            provider=self.name,
            image_bytes=image_bytes,
            mime_type=DEFAULT_CONTENT_TYPE,
            raw={"model": model},
        )
