"""Base classes and registry for image provider adapters.

Each third-party image backend (Gemini "nano banana", OpenAI Images) has an
adapter implementing one async ``generate`` call.  Adapters are registered by
name in a global registry and instantiated once per application with the
active configuration.

Adapter Contract
----------------
- single attempt, no retries or backoff
- ordinary provider-side failures (missing key, HTTP error status, content
  rejection, a response without an image) come back as
  ``ProviderResult(ok=False, error_code=...)``
- transport failures (connection errors, timeouts) raise; the pipeline turns
  them into a ``PROVIDER_ERROR`` result
- prompts exist only in memory and are never logged

Usage
-----
::

    providers = build_providers(config)
    name = resolve_provider_name(decision.provider_plan.provider_id)
    result = await generate_with_provider(name, provider_input, providers)

See Also
--------
- image_engine.core.adapters: concrete adapters
- image_engine.core.storage: the equivalent layer for storage backends
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from image_engine.core.config import ImageEngineConfig
from image_engine.core.constants import PRIMARY_PROVIDER, SECONDARY_PROVIDER
from image_engine.core.models import ProviderResult

logger = logging.getLogger(__name__)

KNOWN_PROVIDER_IDS = frozenset({"nano_banana", "openai", "other"})


@dataclass(frozen=True)
class ProviderInput:
    """Input for a single provider call.  Held in memory only."""

    request_id: str
    width: int
    height: int
    prompt: str
    negative_prompt: str = ""

    def __repr__(self) -> str:
        return (
            f"ProviderInput(request_id={self.request_id!r}, width={self.width}, "
            f"height={self.height}, prompt=<redacted>)"
        )


class ProviderAdapterBase(ABC):
    """Abstract base class for image provider adapters.

    Attributes
    ----------
    name : str
        Registry key, also reported as ``ProviderResult.provider``
    description : str
        Short human-readable description
    version : str
        Adapter version
    config : ImageEngineConfig
        Active configuration (API keys, endpoints, timeout)
    """

    name: str = "base"
    description: str = "Base class for provider adapters"
    version: str = "0.1.0"

    def __init__(
        self,
        config: ImageEngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            config: Configuration object
            transport: Optional httpx transport, used by tests to stub the
                provider API
        """
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.provider_timeout_seconds,
            transport=self._transport,
        )

    def _failure(self, error_code: str, message: str, **raw: Any) -> ProviderResult:
        return ProviderResult(
            ok=False,
            provider=self.name,
            error_code=error_code,
            error_message_safe=message,
            raw=raw,
        )

    @abstractmethod
    async def generate(self, data: ProviderInput) -> ProviderResult:
        """Generate one image.

        Returns
        -------
        ProviderResult
            ``ok=True`` with image bytes and MIME type, or ``ok=False`` with
            an error code and a message safe to show and persist

        Raises
        ------
        httpx.TransportError
            On connection failures and timeouts
        """

    def get_adapter_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
        }


class ProviderRegistry:
    """Registry of available provider adapter classes."""

    def __init__(self) -> None:
        self._adapters: dict[str, type[ProviderAdapterBase]] = {}

    def register(self, adapter_class: type[ProviderAdapterBase]) -> type[ProviderAdapterBase]:
        """Register a provider adapter class.

        Usable as a class decorator.  Re-registering a name overwrites it.
        """
        adapter_name = adapter_class.name

        if adapter_name in self._adapters:
            logger.warning(f"Provider adapter '{adapter_name}' is already registered, overwriting")

        self._adapters[adapter_name] = adapter_class
        logger.debug(f"Registered provider adapter: {adapter_name}")
        return adapter_class

    def instantiate(
        self,
        adapter_name: str,
        config: ImageEngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProviderAdapterBase:
        """Create an instance of a registered adapter.

        Raises
        ------
        KeyError
            If ``adapter_name`` is not registered
        """
        if adapter_name not in self._adapters:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Provider adapter '{adapter_name}' not found. Available adapters: {available}"
            )

        return self._adapters[adapter_name](config=config, transport=transport)

    def list_available(self) -> list[str]:
        return list(self._adapters.keys())

    def get_adapter_info(self, adapter_name: str) -> dict[str, Any] | None:
        adapter_class = self._adapters.get(adapter_name)
        if adapter_class is None:
            return None
        return {
            "name": adapter_class.name,
            "description": adapter_class.description,
            "version": adapter_class.version,
        }


provider_registry = ProviderRegistry()


def resolve_provider_name(provider_id: str) -> str:
    """Map a decision's provider id onto a supported provider name.

    ``"openai"`` selects the OpenAI adapter; every other id collapses onto
    the nano banana adapter.  Ids outside the known set are logged at
    WARNING since they usually mean a misconfiguration.
    """
    if provider_id == PRIMARY_PROVIDER:
        return PRIMARY_PROVIDER

    if provider_id not in KNOWN_PROVIDER_IDS:
        logger.warning(
            f"Unknown provider id '{provider_id}', falling back to '{SECONDARY_PROVIDER}'"
        )
    return SECONDARY_PROVIDER


def build_providers(
    config: ImageEngineConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, ProviderAdapterBase]:
    """Instantiate every registered provider adapter for ``config``."""
    return {
        name: provider_registry.instantiate(name, config, transport=transport)
        for name in provider_registry.list_available()
    }


async def generate_with_provider(
    name: str,
    data: ProviderInput,
    providers: dict[str, ProviderAdapterBase],
) -> ProviderResult:
    """Run a single generation on the named provider.

    A name with no configured adapter yields an ``ok=False`` result rather
    than an exception.  Transport exceptions from the adapter propagate.
    """
    adapter = providers.get(name)
    if adapter is None:
        logger.error(f"No provider adapter configured for '{name}'")
        return ProviderResult(
            ok=False,
            provider=name,
            error_code="PROVIDER_NOT_CONFIGURED",
            error_message_safe=f"Provider '{name}' is not available",
        )

    logger.info(f"Calling provider '{name}' for {data.request_id} ({data.width}x{data.height})")
    return await adapter.generate(data)
