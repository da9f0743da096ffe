"""Unit tests for image_engine.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from image_engine.core.config import ImageEngineConfig


class TestImageEngineConfig:
    """Test configuration defaults, overrides and derived paths."""

    def test_defaults(self, test_config):
        assert test_config.default_provider_id == "nano_banana"
        assert test_config.gemini_model == "gemini-2.5-flash-image"
        assert test_config.provider_timeout_seconds == 25.0
        assert test_config.blob_prefix == "obd-image-engine"

    def test_directories_created(self, temp_dir: Path):
        """Static, generated and data directories exist after init."""
        cfg = ImageEngineConfig(static_dir=temp_dir / "s", data_dir=temp_dir / "d")
        assert cfg.static_dir.is_dir()
        assert cfg.generated_dir == temp_dir / "s" / "generated"
        assert cfg.generated_dir.is_dir()
        assert cfg.data_dir.is_dir()
        assert cfg.record_db_path == temp_dir / "d" / "image_engine.db"

    def test_environment_variables(self, temp_dir: Path, monkeypatch):
        """IMAGE_ENGINE_* variables override defaults."""
        monkeypatch.setenv("IMAGE_ENGINE_ENVIRONMENT", "production")
        monkeypatch.setenv("IMAGE_ENGINE_DEFAULT_PROVIDER_ID", "openai")
        monkeypatch.setenv("IMAGE_ENGINE_SERVER_PORT", "9000")
        cfg = ImageEngineConfig(static_dir=temp_dir / "s", data_dir=temp_dir / "d")
        assert cfg.is_production is True
        assert cfg.default_provider_id == "openai"
        assert cfg.server_port == 9000

    def test_is_production(self, test_config):
        assert test_config.is_production is False

    @pytest.mark.parametrize("port", [80, 70000])
    def test_port_range(self, temp_dir: Path, port):
        with pytest.raises(ValidationError):
            ImageEngineConfig(static_dir=temp_dir / "s", data_dir=temp_dir / "d", server_port=port)

    def test_invalid_environment(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            ImageEngineConfig(
                static_dir=temp_dir / "s", data_dir=temp_dir / "d", environment="staging"
            )

    def test_timeout_must_be_positive(self, temp_dir: Path):
        with pytest.raises(ValidationError):
            ImageEngineConfig(
                static_dir=temp_dir / "s", data_dir=temp_dir / "d", provider_timeout_seconds=0
            )
