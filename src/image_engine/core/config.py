"""Configuration management for the brand-safe image engine.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the IMAGE_ENGINE_
prefix, allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (IMAGE_ENGINE_* prefix)
2. .env file in the project root
3. Default values defined in ImageEngineConfig

Example .env file:
    IMAGE_ENGINE_ENVIRONMENT=production
    IMAGE_ENGINE_GEMINI_API_KEY=...
    IMAGE_ENGINE_BLOB_READ_WRITE_TOKEN=...
    IMAGE_ENGINE_DATA_DIR=data

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Request handling never reads ambient process state directly: the pipeline is
built from an explicit config object, and the storage backend for each request
is chosen from ``config.environment`` by a StorageBackendSelector.

Usage Example
-------------
    from image_engine.core.config import config

    print(config.environment)
    print(config.generated_dir)

Storage Backend Selection
-------------------------
- environment != "production": local_dev (files under static_dir/generated_subdir)
- environment == "production": vercel_blob (requires blob_read_write_token)

Secrets
-------
API keys and tokens are optional here. Adapters that need a missing key report
an ``ok=False`` result with a MISSING_* error code instead of failing at startup.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImageEngineConfig(BaseSettings):
    """Main configuration for the image engine.

    Attributes
    ----------
    Deployment:
        environment : Literal["development", "test", "production"]
            Deployment environment; drives storage backend selection

    Provider Settings:
        default_provider_id : str
            Provider id written into every decision's provider plan
        gemini_api_key / gemini_api_url / gemini_model : Gemini image API access
        openai_api_key / openai_api_url / openai_model : OpenAI Images API access
        provider_timeout_seconds : float
            HTTP timeout handed to provider adapters' clients

    Storage Settings:
        blob_read_write_token / blob_api_url / blob_prefix : Vercel Blob access
        static_dir : Path
            Directory served at /static
        generated_subdir : str
            Subdirectory of static_dir receiving local_dev images

    Record Store:
        data_dir : Path
            Directory holding the SQLite record store
        record_db_name : str
            SQLite file name

    Server Settings:
        server_host : str
        server_port : int (1024-65535)

    Notes
    -----
    - static_dir, generated_dir and data_dir are created automatically
    - Configuration is immutable after initialization; restart to apply changes
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="IMAGE_ENGINE_",
        case_sensitive=False,
    )

    # Deployment
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment (selects the storage backend)",
    )

    # Provider settings
    default_provider_id: Literal["nano_banana", "openai", "other"] = Field(
        default="nano_banana",
        description="Provider id placed in each decision's provider plan",
    )
    gemini_api_key: str | None = Field(default=None, description="Gemini API key")
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        description="Base URL for Gemini model endpoints",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini image model name",
    )
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_api_url: str = Field(
        default="https://api.openai.com/v1/images/generations",
        description="OpenAI Images generation endpoint",
    )
    openai_model: str = Field(default="gpt-image-1", description="OpenAI image model name")
    provider_timeout_seconds: float = Field(
        default=25.0,
        description="HTTP timeout for provider calls, in seconds",
        gt=0,
    )

    # Storage settings
    blob_read_write_token: str | None = Field(
        default=None,
        description="Vercel Blob read/write token (production storage)",
    )
    blob_api_url: str = Field(
        default="https://blob.vercel-storage.com",
        description="Vercel Blob API base URL",
    )
    blob_prefix: str = Field(
        default="obd-image-engine",
        description="Key prefix for images written to blob storage",
    )
    static_dir: Path = Field(
        default=Path("static"),
        description="Directory served at /static",
    )
    generated_subdir: str = Field(
        default="generated",
        description="Subdirectory of static_dir for locally stored images",
    )

    # Record store
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the SQLite record store",
    )
    record_db_name: str = Field(
        default="image_engine.db",
        description="SQLite file name for request records and events",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.static_dir.mkdir(parents=True, exist_ok=True)
        self.generated_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def generated_dir(self) -> Path:
        """Directory receiving images written by the local_dev backend."""
        return self.static_dir / self.generated_subdir

    @property
    def record_db_path(self) -> Path:
        """Full path of the SQLite record store."""
        return self.data_dir / self.record_db_name

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Global configuration instance
# Loads values from environment variables (IMAGE_ENGINE_* prefix) and .env file.
config = ImageEngineConfig()
