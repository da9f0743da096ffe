"""Provider adapters.  Importing this package registers them."""

from .nano_banana import NanoBananaAdapter
from .openai_images import OpenAIImagesAdapter

__all__ = ["NanoBananaAdapter", "OpenAIImagesAdapter"]
