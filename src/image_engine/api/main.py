"""Brand-Safe Image Engine - FastAPI Application.

This module is the single entry point for the HTTP service.  It defines the
FastAPI ``app`` instance, the image engine routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`~image_engine.core.config.config`
  (``IMAGE_ENGINE_*`` environment variables and ``.env``).
- **The pipeline** (:class:`~image_engine.core.pipeline.ImageEnginePipeline`)
  is built once in the lifespan handler and stored on ``app.state``.  Routes
  obtain it through the :func:`get_pipeline` dependency, which tests override.
- **Locally stored images** are served by ``StaticFiles`` at ``/static``.

Response Contract
-----------------
Generation routes answer HTTP 200 for every request that parses and
validates; callers branch on ``ok`` in the body.  Validation failures are
HTTP 400 with ``{"error": ...}``.  Malformed JSON is the only HTTP 500.

Endpoints
---------
========  ========================================  ==============================
Method    Path                                      Purpose
========  ========================================  ==============================
POST      ``/api/image-engine/generate``            Run the full pipeline
POST      ``/api/image-engine/decision``            Decision + safety verdict only
POST      ``/api/image-engine/regenerate``          Regenerate from a stored decision
GET       ``/api/image-engine/config``              Enums, sizes, backends
GET       ``/api/image-engine/requests/{id}``       Persisted request record
GET       ``/api/image-engine/requests/{id}/events`` Engine events for a request
========  ========================================  ==============================

Usage
-----
CLI (installed entry point)::

    image-engine

Direct invocation::

    python -m image_engine.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from image_engine import __version__
from image_engine.api.models import RegenerateRequest, format_validation_error
from image_engine.core.config import config
from image_engine.core.constants import (
    ASPECT_SIZES,
    CATEGORIES,
    CONSUMER_APPS,
    PLATFORM_ASPECT_DEFAULTS,
    PLATFORMS,
)
from image_engine.core.models import ImageEngineRequest
from image_engine.core.pipeline import ImageEnginePipeline

logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"error": "Internal server error"}

# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the pipeline on startup and store it on ``app.state``.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.pipeline = ImageEnginePipeline.from_config(config)
    logger.info(
        f"Image engine ready (environment={config.environment}, "
        f"storage={app.state.pipeline.storage_selector()})"
    )

    yield


def get_pipeline(request: Request) -> ImageEnginePipeline:
    """Dependency returning the application's pipeline."""
    return request.app.state.pipeline


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Brand-Safe Image Engine",
    description="Brand-safe image decision, generation and storage pipeline.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Images written by the local_dev backend are served from here.
app.mount("/static", StaticFiles(directory=str(config.static_dir)), name="static")


# ---------------------------------------------------------------------------
# Body parsing.
# ---------------------------------------------------------------------------


class _BadRequest(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


async def _parse_engine_request(request: Request) -> ImageEngineRequest:
    """Parse and validate an image engine request body.

    Raises:
        _BadRequest: Body is not an object or fails validation.
        ValueError: Body is not valid JSON.
    """
    body = await request.json()
    if not isinstance(body, dict):
        raise _BadRequest("Request body must be an object")

    try:
        return ImageEngineRequest.model_validate(body)
    except ValidationError as e:
        raise _BadRequest(format_validation_error(e)) from e


async def _validated_or_response(request: Request) -> ImageEngineRequest | JSONResponse:
    try:
        return await _parse_engine_request(request)
    except _BadRequest as e:
        return JSONResponse({"error": e.message}, status_code=400)
    except Exception:
        logger.error(f"Failed to parse request body for {request.url.path}", exc_info=True)
        return JSONResponse(INTERNAL_ERROR, status_code=500)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.post("/api/image-engine/generate")
async def generate(
    request: Request, pipeline: ImageEnginePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """Generate one image, or explain why no image was generated.

    Returns:
        HTTP 200 with ``GenerateSuccess`` or ``GenerateFailure`` for every
        validated request.
    """
    parsed = await _validated_or_response(request)
    if isinstance(parsed, JSONResponse):
        return parsed

    result = await pipeline.generate(parsed)
    return JSONResponse(result.to_wire())


@app.post("/api/image-engine/decision")
async def decision(
    request: Request, pipeline: ImageEnginePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """Resolve the decision and safety verdict without generating."""
    parsed = await _validated_or_response(request)
    if isinstance(parsed, JSONResponse):
        return parsed

    response = await pipeline.decide_and_record(parsed)
    return JSONResponse(response.to_wire())


@app.post("/api/image-engine/regenerate")
async def regenerate(
    request: Request, pipeline: ImageEnginePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """Regenerate from a stored decision.  Always HTTP 200 once parsed."""
    try:
        body = await request.json()
    except ValueError:
        logger.error("Malformed JSON body for regenerate", exc_info=True)
        return JSONResponse(INTERNAL_ERROR, status_code=500)

    if not isinstance(body, dict):
        return JSONResponse({"ok": False, "error": "Request body must be an object"})

    request_id = body.get("requestId")
    regenerate_request = RegenerateRequest(
        request_id=request_id if isinstance(request_id, str) else None
    )

    result = await pipeline.regenerate(regenerate_request.request_id)
    return JSONResponse(result.to_wire())


@app.get("/api/image-engine/config")
async def get_config(pipeline: ImageEnginePipeline = Depends(get_pipeline)) -> dict:
    """Enums, size tables and the active backends."""
    return {
        "version": __version__,
        "environment": pipeline.config.environment,
        "consumerApps": list(CONSUMER_APPS),
        "platforms": list(PLATFORMS),
        "categories": list(CATEGORIES),
        "platformAspects": PLATFORM_ASPECT_DEFAULTS,
        "aspectSizes": {
            aspect: {"width": width, "height": height}
            for aspect, (width, height) in ASPECT_SIZES.items()
        },
        "defaultProviderId": pipeline.config.default_provider_id,
        "providers": sorted(pipeline.providers),
        "storages": sorted(pipeline.storages),
        "activeStorage": pipeline.storage_selector(),
    }


@app.get("/api/image-engine/requests/{request_id}")
async def get_request_record(
    request_id: str, pipeline: ImageEnginePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """Return the persisted record for ``request_id``.

    Raises:
        HTTPException: 404 if the request id is unknown.
    """
    record = await pipeline.get_record(request_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Request not found")
    return JSONResponse(record.to_wire())


@app.get("/api/image-engine/requests/{request_id}/events")
async def get_request_events(
    request_id: str, pipeline: ImageEnginePipeline = Depends(get_pipeline)
) -> dict:
    """Engine events for ``request_id``, oldest first."""
    events = await pipeline.list_events(request_id)
    return {"requestId": request_id, "events": [event.to_wire() for event in events]}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Host and port come from ``IMAGE_ENGINE_SERVER_HOST`` and
    ``IMAGE_ENGINE_SERVER_PORT`` (default ``0.0.0.0:8000``).
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "image_engine.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
