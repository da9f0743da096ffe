"""Local development storage: image files under the static directory."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from image_engine.core.models import StorageResult
from image_engine.core.storage import (
    StorageBackendBase,
    StorageWriteInput,
    get_extension,
    storage_key,
    storage_registry,
)

logger = logging.getLogger(__name__)


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@storage_registry.register
class LocalDevStorage(StorageBackendBase):
    """Writes ``<generated_dir>/<storage_key>.<ext>``, served at ``/static``.

    A second write for the same request id overwrites the file.
    """

    name = "local_dev"
    description = "Local files served from /static (non-production)"

    async def write(self, data: StorageWriteInput) -> StorageResult:
        filename = f"{storage_key(data.request_id)}.{get_extension(data.mime_type)}"
        path = self.config.generated_dir / filename

        try:
            await asyncio.to_thread(_write_file, path, data.data)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}", exc_info=True)
            return StorageResult(
                ok=False,
                storage=self.name,
                error_code="LOCAL_WRITE_ERROR",
                error_message_safe="Failed to write image to local storage",
            )

        logger.info(f"Saved image for {data.request_id} to {path}")
        return StorageResult(
            ok=True,
            storage=self.name,
            url=f"/static/{self.config.generated_subdir}/{filename}",
            meta={"sizeBytes": len(data.data), "contentType": data.mime_type, "path": str(path)},
        )
