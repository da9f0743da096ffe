"""Shared pytest fixtures for image engine tests."""

import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from image_engine.api.main import app, get_pipeline
from image_engine.core.config import ImageEngineConfig
from image_engine.core.models import ImageEngineRequest, ProviderResult, StorageResult
from image_engine.core.pipeline import ImageEnginePipeline
from image_engine.core.providers import ProviderAdapterBase, ProviderInput
from image_engine.core.records import RecordStore
from image_engine.core.storage import StorageBackendBase, StorageWriteInput, fixed_selector

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


class FakeProvider(ProviderAdapterBase):
    """Provider double recording every call.

    Returns ``result`` (a successful PNG by default) or raises ``exc``.
    """

    name = "nano_banana"
    description = "Test provider"

    def __init__(self, config, result=None, exc=None):
        super().__init__(config)
        self.result = result or ProviderResult(
            ok=True, provider=self.name, image_bytes=PNG_BYTES, mime_type="image/png"
        )
        self.exc = exc
        self.calls: list[ProviderInput] = []

    async def generate(self, data: ProviderInput) -> ProviderResult:
        self.calls.append(data)
        if self.exc is not None:
            raise self.exc
        return self.result


class FakeStorage(StorageBackendBase):
    """Storage double returning a URL per request id, or a fixed ``result``."""

    name = "local_dev"
    description = "Test storage"

    def __init__(self, config, result=None, exc=None):
        super().__init__(config)
        self.result = result
        self.exc = exc
        self.calls: list[StorageWriteInput] = []

    async def write(self, data: StorageWriteInput) -> StorageResult:
        self.calls.append(data)
        if self.exc is not None:
            raise self.exc
        if self.result is not None:
            return self.result
        return StorageResult(
            ok=True, storage=self.name, url=f"/static/generated/{data.request_id}.png"
        )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ImageEngineConfig:
    """Test configuration with temporary directories and no secrets."""
    return ImageEngineConfig(
        environment="test",
        static_dir=temp_dir / "static",
        data_dir=temp_dir / "data",
        gemini_api_key=None,
        openai_api_key=None,
        blob_read_write_token=None,
    )


@pytest.fixture
def record_store(test_config: ImageEngineConfig) -> RecordStore:
    return RecordStore(test_config.record_db_path)


@pytest.fixture
def fake_provider(test_config: ImageEngineConfig) -> FakeProvider:
    return FakeProvider(test_config)


@pytest.fixture
def fake_storage(test_config: ImageEngineConfig) -> FakeStorage:
    return FakeStorage(test_config)


@pytest.fixture
def pipeline(
    test_config: ImageEngineConfig,
    record_store: RecordStore,
    fake_provider: FakeProvider,
    fake_storage: FakeStorage,
) -> ImageEnginePipeline:
    """Pipeline wired to the fake provider and storage."""
    return ImageEnginePipeline(
        config=test_config,
        providers={"nano_banana": fake_provider, "openai": fake_provider},
        storages={"local_dev": fake_storage},
        store=record_store,
        storage_selector=fixed_selector("local_dev"),
    )


@pytest.fixture
def make_pipeline(test_config: ImageEngineConfig, record_store: RecordStore):
    """Factory for pipelines whose fakes fail in a chosen way.

    Returns:
        Callable returning ``(pipeline, provider, storage)``.
    """

    def _make(provider_result=None, provider_exc=None, storage_result=None, storage_exc=None):
        provider = FakeProvider(test_config, result=provider_result, exc=provider_exc)
        storage = FakeStorage(test_config, result=storage_result, exc=storage_exc)
        engine = ImageEnginePipeline(
            config=test_config,
            providers={"nano_banana": provider, "openai": provider},
            storages={"local_dev": storage},
            store=record_store,
            storage_selector=fixed_selector("local_dev"),
        )
        return engine, provider, storage

    return _make


@pytest.fixture
def valid_payload() -> dict:
    """A valid camelCase request body."""
    return {
        "requestId": "req-001",
        "consumerApp": "social_auto_poster",
        "platform": "instagram",
        "category": "promotion",
        "intentSummary": "Spring sale on fresh pastries this weekend",
        "brand": {"styleTone": "warm and friendly", "industry": "bakery"},
        "locale": {"city": "Ocala", "region": "FL"},
    }


@pytest.fixture
def make_request(valid_payload: dict):
    """Factory building an ``ImageEngineRequest`` from the valid payload."""

    def _make(**overrides) -> ImageEngineRequest:
        return ImageEngineRequest.model_validate({**valid_payload, **overrides})

    return _make


@pytest.fixture
def test_client(pipeline: ImageEnginePipeline) -> Generator[TestClient, None, None]:
    """TestClient whose routes use the fake-wired pipeline."""
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class BrokenStore:
    """Record store whose every write fails."""

    def log_event(self, event):
        raise sqlite3.OperationalError("database is locked")

    def upsert_request(self, record):
        raise sqlite3.OperationalError("database is locked")


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()
