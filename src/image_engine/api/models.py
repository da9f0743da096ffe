"""Request models and validation messages for the HTTP API.

The generate and decision routes validate their body straight into
:class:`~image_engine.core.models.ImageEngineRequest`.  This module turns a
pydantic ``ValidationError`` into the single, caller-facing message returned
as ``{"error": ...}`` with HTTP 400.  Only the first error is reported; fields
are checked in body order (``requestId`` first, ``safeMode`` last).
"""

from __future__ import annotations

from pydantic import ValidationError

from image_engine.core.constants import CATEGORIES, CONSUMER_APPS, PLATFORMS
from image_engine.core.models import CamelModel

_ENUM_FIELDS: dict[str, tuple[str, ...]] = {
    "consumerApp": CONSUMER_APPS,
    "platform": PLATFORMS,
    "category": CATEGORIES,
}

_FIELD_MESSAGES: dict[str, str] = {
    "requestId": "requestId is required and must be a non-empty string",
    "intentSummary": "intentSummary is required and must be a non-empty string",
    "brand": "brand must be an object if provided",
    "locale": "locale must be an object if provided",
    "allowTextOverlay": "allowTextOverlay must be a boolean if provided",
    "safeMode": 'safeMode must be "strict" if provided',
}


class RegenerateRequest(CamelModel):
    """Body of ``POST /api/image-engine/regenerate``."""

    request_id: str | None = None


def format_validation_error(exc: ValidationError) -> str:
    """Describe the first validation failure in one sentence.

    Args:
        exc: Error raised while validating an ``ImageEngineRequest``.

    Returns:
        Message naming the offending field by its camelCase wire name.
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request body"

    error = errors[0]
    loc = [str(part) for part in error.get("loc", ())]
    if not loc:
        return "Request body must be an object"

    field = loc[0]
    if len(loc) > 1 and field in ("brand", "locale"):
        return f"{'.'.join(loc)} must be a string if provided"

    if field in _ENUM_FIELDS:
        if error.get("type") in ("missing", "string_type"):
            return f"{field} is required and must be a string"
        return f"{field} must be one of: {', '.join(_ENUM_FIELDS[field])}"

    return _FIELD_MESSAGES.get(field, f"{field} is invalid")
