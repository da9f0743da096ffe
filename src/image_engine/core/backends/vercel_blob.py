"""Production storage on Vercel Blob.

Uploads go through the Blob HTTP API (``PUT {blob_api_url}/{pathname}``) with
the read/write token as a bearer token.  The returned ``url`` is an absolute
public HTTPS URL.
"""

from __future__ import annotations

import logging

import httpx

from image_engine.core.models import StorageResult
from image_engine.core.storage import (
    StorageBackendBase,
    StorageWriteInput,
    get_extension,
    storage_key,
    storage_registry,
)

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"


@storage_registry.register
class VercelBlobStorage(StorageBackendBase):
    name = "vercel_blob"
    description = "Vercel Blob public storage (production)"

    def blob_key(self, data: StorageWriteInput) -> str:
        prefix = self.config.blob_prefix.strip("/")
        return f"{prefix}/{storage_key(data.request_id)}.{get_extension(data.mime_type)}"

    def _failure(self, error_code: str, message: str) -> StorageResult:
        return StorageResult(
            ok=False, storage=self.name, error_code=error_code, error_message_safe=message
        )

    async def write(self, data: StorageWriteInput) -> StorageResult:
        token = self.config.blob_read_write_token
        if not token or not token.strip():
            return self._failure("MISSING_BLOB_TOKEN", "Vercel Blob token not configured")

        blob_key = self.blob_key(data)
        url = f"{self.config.blob_api_url.rstrip('/')}/{blob_key}"
        headers = {
            "Authorization": f"Bearer {token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": data.mime_type,
            "x-add-random-suffix": "0",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.config.provider_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.put(url, content=data.data, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"Vercel Blob upload failed for {data.request_id}: {e}")
            return self._failure("BLOB_NETWORK_ERROR", "Vercel Blob upload failed: network error")

        if response.status_code in (401, 403):
            return self._failure("BLOB_AUTH_ERROR", "Vercel Blob rejected the token")
        if response.is_error:
            logger.error(
                f"Vercel Blob returned {response.status_code} for {data.request_id}"
            )
            return self._failure(
                "BLOB_WRITE_ERROR", f"Vercel Blob upload failed: HTTP {response.status_code}"
            )

        try:
            blob_url = response.json().get("url")
        except (ValueError, AttributeError):
            blob_url = None
        if not blob_url:
            return self._failure("BLOB_WRITE_ERROR", "Vercel Blob response did not include a URL")

        return StorageResult(
            ok=True,
            storage=self.name,
            url=blob_url,
            meta={"sizeBytes": len(data.data), "contentType": data.mime_type, "blobKey": blob_key},
        )
