"""Brand-safe image engine - decision, safety, generation and storage pipeline."""

__version__ = "0.3.0"

from image_engine.core.config import ImageEngineConfig, config
from image_engine.core.providers import ProviderAdapterBase, provider_registry
from image_engine.core.storage import StorageBackendBase, storage_registry

# Import adapters and backends to ensure they're registered
from image_engine.core.adapters import NanoBananaAdapter, OpenAIImagesAdapter  # noqa: F401
from image_engine.core.backends import LocalDevStorage, VercelBlobStorage  # noqa: F401

__all__ = [
    "ImageEngineConfig",
    "config",
    "ProviderAdapterBase",
    "provider_registry",
    "StorageBackendBase",
    "storage_registry",
    "NanoBananaAdapter",
    "OpenAIImagesAdapter",
    "LocalDevStorage",
    "VercelBlobStorage",
]
