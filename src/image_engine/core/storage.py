"""Storage backends for generated image bytes.

Mirrors the provider layer: backends subclass ``StorageBackendBase``, register
themselves in ``storage_registry`` and are instantiated once per application.

Backend selection is environment-driven and not configurable per request:

- non-production -> ``local_dev`` (file under the static directory)
- production     -> ``vercel_blob`` (Vercel Blob HTTP API)

Selection is made by a ``StorageBackendSelector`` injected into the pipeline,
so tests can pin a backend without touching process state.
"""

from __future__ import annotations

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol

import httpx

from image_engine.core.config import ImageEngineConfig
from image_engine.core.constants import STORAGE_LOCAL_DEV, STORAGE_VERCEL_BLOB
from image_engine.core.models import StorageResult

logger = logging.getLogger(__name__)

_MIME_TO_EXT = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
}

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def get_extension(mime_type: str | None) -> str:
    """File extension (without dot) for a MIME type, ``png`` when unknown."""
    return _MIME_TO_EXT.get((mime_type or "").lower(), "png")


def sanitize_request_id(request_id: str) -> str:
    """Replace characters that are unsafe in a file or blob name."""
    return _UNSAFE_KEY_CHARS.sub("_", request_id)


def storage_key(request_id: str) -> str:
    """Per-request object name: the sanitized id plus a digest of the raw id.

    Sanitizing alone is lossy ("promo.1" and "promo_1" both become
    "promo_1"); the digest keeps distinct request ids on distinct keys.
    """
    digest = hashlib.sha256(request_id.encode("utf-8")).hexdigest()[:10]
    return f"{sanitize_request_id(request_id)}-{digest}"


@dataclass(frozen=True)
class StorageWriteInput:
    request_id: str
    data: bytes
    mime_type: str

    def __repr__(self) -> str:
        return (
            f"StorageWriteInput(request_id={self.request_id!r}, "
            f"size={len(self.data)}, mime_type={self.mime_type!r})"
        )


class StorageBackendBase(ABC):
    """Abstract base class for storage backends.

    ``write`` must not raise for ordinary backend failures; those come back as
    ``StorageResult(ok=False, error_code=...)``.
    """

    name: str = "base"
    description: str = "Base class for storage backends"

    def __init__(
        self,
        config: ImageEngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    @abstractmethod
    async def write(self, data: StorageWriteInput) -> StorageResult:
        """Persist image bytes and return a public URL."""


class StorageRegistry:
    """Registry of available storage backend classes."""

    def __init__(self) -> None:
        self._backends: dict[str, type[StorageBackendBase]] = {}

    def register(self, backend_class: type[StorageBackendBase]) -> type[StorageBackendBase]:
        if backend_class.name in self._backends:
            logger.warning(
                f"Storage backend '{backend_class.name}' is already registered, overwriting"
            )
        self._backends[backend_class.name] = backend_class
        logger.debug(f"Registered storage backend: {backend_class.name}")
        return backend_class

    def instantiate(
        self,
        backend_name: str,
        config: ImageEngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> StorageBackendBase:
        if backend_name not in self._backends:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Storage backend '{backend_name}' not found. Available backends: {available}"
            )
        return self._backends[backend_name](config=config, transport=transport)

    def list_available(self) -> list[str]:
        return list(self._backends.keys())


storage_registry = StorageRegistry()


class StorageBackendSelector(Protocol):
    """Chooses the storage backend name for a request."""

    def __call__(self) -> str: ...


def select_storage_backend(config: ImageEngineConfig) -> str:
    """Environment-driven backend choice."""
    return STORAGE_VERCEL_BLOB if config.is_production else STORAGE_LOCAL_DEV


def environment_selector(config: ImageEngineConfig) -> StorageBackendSelector:
    """Selector bound to an explicit configuration object."""

    def _select() -> str:
        return select_storage_backend(config)

    return _select


def fixed_selector(backend_name: str) -> StorageBackendSelector:
    """Selector that always returns ``backend_name``."""

    def _select() -> str:
        return backend_name

    return _select


def build_storages(
    config: ImageEngineConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, StorageBackendBase]:
    """Instantiate every registered storage backend for ``config``."""
    return {
        name: storage_registry.instantiate(name, config, transport=transport)
        for name in storage_registry.list_available()
    }


async def write_to_storage(
    name: str,
    data: StorageWriteInput,
    storages: dict[str, StorageBackendBase],
) -> StorageResult:
    """Write image bytes through the named backend (single attempt)."""
    backend = storages.get(name)
    if backend is None:
        logger.error(f"No storage backend configured for '{name}'")
        return StorageResult(
            ok=False,
            storage=name,
            error_code="STORAGE_NOT_CONFIGURED",
            error_message_safe=f"Storage backend '{name}' is not available",
        )

    logger.info(f"Writing {len(data.data)} bytes for {data.request_id} to '{name}'")
    return await backend.write(data)
