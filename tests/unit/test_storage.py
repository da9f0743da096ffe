"""Unit tests for storage selection and the storage backends."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from image_engine.core.backends import LocalDevStorage, VercelBlobStorage
from image_engine.core.storage import (
    StorageWriteInput,
    build_storages,
    environment_selector,
    fixed_selector,
    get_extension,
    sanitize_request_id,
    select_storage_backend,
    storage_key,
    write_to_storage,
)

PNG = b"\x89PNG\r\n\x1a\nfake"


def _write_input(request_id: str = "req-1", mime_type: str = "image/png") -> StorageWriteInput:
    return StorageWriteInput(request_id=request_id, data=PNG, mime_type=mime_type)


class TestHelpers:
    @pytest.mark.parametrize(
        "mime_type, ext",
        [
            ("image/png", "png"),
            ("image/jpeg", "jpg"),
            ("IMAGE/JPG", "jpg"),
            ("image/webp", "webp"),
            ("image/gif", "png"),
            (None, "png"),
        ],
    )
    def test_get_extension(self, mime_type, ext):
        assert get_extension(mime_type) == ext

    def test_sanitize_request_id(self):
        assert sanitize_request_id("../etc/passwd") == "___etc_passwd"
        assert sanitize_request_id("req_01-A") == "req_01-A"

    def test_storage_key_keeps_distinct_ids_apart(self):
        """Ids that sanitize to the same string still get their own key."""
        assert sanitize_request_id("promo.1") == sanitize_request_id("promo_1")
        assert storage_key("promo.1") != storage_key("promo_1")
        assert storage_key("promo.1").startswith("promo_1-")

    def test_storage_key_is_stable(self):
        assert storage_key("req-1") == storage_key("req-1")

    def test_write_input_repr_hides_bytes(self):
        assert "PNG" not in repr(_write_input())


class TestSelection:
    """Test environment-driven backend selection."""

    def test_non_production_uses_local(self, test_config):
        assert select_storage_backend(test_config) == "local_dev"
        assert environment_selector(test_config)() == "local_dev"

    def test_production_uses_blob(self, test_config):
        prod = test_config.model_copy(update={"environment": "production"})
        assert select_storage_backend(prod) == "vercel_blob"

    def test_fixed_selector(self):
        assert fixed_selector("vercel_blob")() == "vercel_blob"

    def test_build_storages(self, test_config):
        storages = build_storages(test_config)
        assert isinstance(storages["local_dev"], LocalDevStorage)
        assert isinstance(storages["vercel_blob"], VercelBlobStorage)

    @pytest.mark.asyncio
    async def test_unconfigured_backend(self):
        result = await write_to_storage("s3", _write_input(), {})
        assert result.ok is False
        assert result.error_code == "STORAGE_NOT_CONFIGURED"


class TestLocalDevStorage:
    """Test writes into the generated directory."""

    @pytest.mark.asyncio
    async def test_write(self, test_config):
        result = await LocalDevStorage(test_config).write(_write_input("req/1"))

        assert result.ok is True
        filename = f"{storage_key('req/1')}.png"
        assert result.url == f"/static/generated/{filename}"
        assert filename.startswith("req_1-")
        written = test_config.generated_dir / filename
        assert written.read_bytes() == PNG
        assert result.meta["sizeBytes"] == len(PNG)

    @pytest.mark.asyncio
    async def test_overwrites_same_request(self, test_config):
        storage = LocalDevStorage(test_config)
        await storage.write(_write_input())
        await storage.write(StorageWriteInput(request_id="req-1", data=b"new", mime_type="image/png"))
        assert (test_config.generated_dir / f"{storage_key('req-1')}.png").read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_colliding_ids_keep_their_own_image(self, test_config):
        """A second request never overwrites another request's file."""
        storage = LocalDevStorage(test_config)
        first = await storage.write(
            StorageWriteInput(request_id="promo.1", data=b"AAAA", mime_type="image/png")
        )
        second = await storage.write(
            StorageWriteInput(request_id="promo_1", data=b"BBBB", mime_type="image/png")
        )

        assert first.url != second.url
        assert (test_config.generated_dir / first.url.rsplit("/", 1)[-1]).read_bytes() == b"AAAA"
        assert (test_config.generated_dir / second.url.rsplit("/", 1)[-1]).read_bytes() == b"BBBB"

    @pytest.mark.asyncio
    async def test_jpeg_extension(self, test_config):
        result = await LocalDevStorage(test_config).write(_write_input(mime_type="image/jpeg"))
        assert result.url.endswith(f"{storage_key('req-1')}.jpg")

    @pytest.mark.asyncio
    async def test_write_error(self, test_config, monkeypatch):
        def _fail(self, data):
            raise PermissionError("read-only")

        monkeypatch.setattr(Path, "write_bytes", _fail)
        result = await LocalDevStorage(test_config).write(_write_input())
        assert result.ok is False
        assert result.error_code == "LOCAL_WRITE_ERROR"
        assert result.error_message_safe == "Failed to write image to local storage"


class TestVercelBlobStorage:
    """Test uploads against a mocked Blob API."""

    @pytest.fixture
    def blob_config(self, test_config):
        return test_config.model_copy(
            update={"environment": "production", "blob_read_write_token": "blob-token"}
        )

    @staticmethod
    def _storage(config, status=200, payload=None, captured=None, exc=None):
        def handler(request: httpx.Request) -> httpx.Response:
            if captured is not None:
                captured.append(request)
            if exc is not None:
                raise exc
            if payload is None:
                return httpx.Response(status)
            return httpx.Response(status, json=payload)

        return VercelBlobStorage(config, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_missing_token(self, test_config):
        result = await VercelBlobStorage(test_config).write(_write_input())
        assert result.ok is False
        assert result.error_code == "MISSING_BLOB_TOKEN"

    @pytest.mark.asyncio
    async def test_upload(self, blob_config):
        captured: list[httpx.Request] = []
        key = f"obd-image-engine/{storage_key('req-1')}.png"
        url = f"https://store.public.blob.vercel-storage.com/{key}"
        storage = self._storage(blob_config, payload={"url": url}, captured=captured)

        result = await storage.write(_write_input())

        assert result.ok is True
        assert result.url == url
        assert result.meta["blobKey"] == key

        request = captured[0]
        assert request.method == "PUT"
        assert request.url.path.endswith(f"/{key}")
        assert request.headers["authorization"] == "Bearer blob-token"
        assert request.headers["x-content-type"] == "image/png"
        assert request.headers["x-add-random-suffix"] == "0"
        assert request.content == PNG

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_error(self, blob_config, status):
        result = await self._storage(blob_config, status=status).write(_write_input())
        assert result.error_code == "BLOB_AUTH_ERROR"

    @pytest.mark.asyncio
    async def test_server_error(self, blob_config):
        result = await self._storage(blob_config, status=503).write(_write_input())
        assert result.error_code == "BLOB_WRITE_ERROR"
        assert result.error_message_safe == "Vercel Blob upload failed: HTTP 503"

    @pytest.mark.asyncio
    async def test_missing_url(self, blob_config):
        result = await self._storage(blob_config, payload={"pathname": "x"}).write(_write_input())
        assert result.error_code == "BLOB_WRITE_ERROR"

    @pytest.mark.asyncio
    async def test_network_error(self, blob_config):
        storage = self._storage(blob_config, exc=httpx.ConnectError("unreachable"))
        result = await storage.write(_write_input())
        assert result.ok is False
        assert result.error_code == "BLOB_NETWORK_ERROR"
