"""Domain models for the image engine.

Wire-facing models are Pydantic models serialised with camelCase aliases so
that the JSON contract (``requestId``, ``intentSummary``, ``timingsMs`` ...)
stays stable while the Python side uses snake_case attributes.  Internal,
transient results (provider and storage outcomes) are plain dataclasses: they
never cross the HTTP boundary and are never persisted as-is.

Models
------
ImageEngineRequest
    Validated, immutable request body shared by every route.
Decision
    Immutable generation plan produced once per request.
SafetyResult
    Tri-state verdict from the deterministic safety rules.
ProviderResult / StorageResult
    Transient adapter outcomes.
GenerateSuccess / GenerateFailure
    The two members of the ``ImageEngineResult`` union, discriminated by
    ``ok``.  A success cannot carry an error and a failure cannot carry an
    image.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from image_engine.core.constants import (
    ConsumerApp,
    DecisionMode,
    ImageCategory,
    ImageEnergy,
    ImagePlatform,
    ModelTier,
    SafetyVerdict,
    TextAllowance,
)


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialise to the JSON-ready camelCase dict used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Request.
# ---------------------------------------------------------------------------


class BrandKitInfluence(CamelModel):
    """Optional brand hints.  Colours are never logged."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    primary_color_hex: StrictStr | None = None
    secondary_color_hex: StrictStr | None = None
    accent_color_hex: StrictStr | None = None
    style_tone: StrictStr | None = None
    industry: StrictStr | None = None


class LocaleHint(CamelModel):
    """Locale used only as abstract context (e.g. Ocala, FL)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    city: StrictStr | None = None
    region: StrictStr | None = None


class ImageEngineRequest(CamelModel):
    """Request body for the image engine routes.

    Attributes:
        request_id: Caller-supplied unique identifier (trimmed, non-empty).
        consumer_app: Calling application.
        platform: Target social/web platform.
        category: Content category.
        intent_summary: Short description of what the image should
            communicate (trimmed, non-empty).
        brand: Optional brand influence.
        locale: Optional locale hint.
        allow_text_overlay: Whether text may be overlaid (default false).
        safe_mode: Only ``"strict"`` is supported (default).
    """

    model_config = ConfigDict(frozen=True)

    request_id: StrictStr
    consumer_app: ConsumerApp
    platform: ImagePlatform
    category: ImageCategory
    intent_summary: StrictStr
    brand: BrandKitInfluence | None = None
    locale: LocaleHint | None = None
    allow_text_overlay: StrictBool | None = None
    safe_mode: Literal["strict"] | None = None

    @field_validator("request_id", "intent_summary")
    @classmethod
    def _strip_non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be a non-empty string")
        return stripped


# ---------------------------------------------------------------------------
# Decision.
# ---------------------------------------------------------------------------


class DecisionText(CamelModel):
    model_config = ConfigDict(frozen=True)

    allowance: TextAllowance
    recommended_overlay_text: str | None = None


class DecisionSafety(CamelModel):
    model_config = ConfigDict(frozen=True)

    is_allowed: bool
    reasons: tuple[str, ...] = ()
    used_fallback: bool = False


class PromptPlan(CamelModel):
    """Structured prompt plan.  Holds template inputs, never prompt text."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    negative_rules: tuple[str, ...] = ()
    variables: dict[str, str] = {}


class ProviderPlan(CamelModel):
    model_config = ConfigDict(frozen=True)

    provider_id: str
    model_tier: ModelTier = "flash"
    notes: str | None = None


class Decision(CamelModel):
    """Concrete generation plan for one request.  Never mutated."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    mode: DecisionMode
    platform: str
    aspect: str
    category: str
    energy: ImageEnergy
    text: DecisionText
    safety: DecisionSafety
    prompt_plan: PromptPlan
    provider_plan: ProviderPlan


class SafetyResult(CamelModel):
    """Verdict of the deterministic safety rules."""

    model_config = ConfigDict(frozen=True)

    verdict: SafetyVerdict
    reason_safe: str | None = None
    tags: tuple[str, ...] = ()


class DecisionResponse(Decision):
    """Decision returned by the decision route, with generate-time safety attached."""

    safety_result: SafetyResult


# ---------------------------------------------------------------------------
# Transient adapter results.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafetyEvaluation:
    """Outcome of the decision-time request pre-check."""

    is_allowed: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderResult:
    """Outcome of a single provider call.  Never stored as-is."""

    ok: bool
    provider: str
    image_bytes: bytes | None = None
    mime_type: str | None = None
    error_code: str | None = None
    error_message_safe: str | None = None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class StorageResult:
    """Outcome of a single storage write."""

    ok: bool
    storage: str
    url: str | None = None
    error_code: str | None = None
    error_message_safe: str | None = None
    meta: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Result union.
# ---------------------------------------------------------------------------


class GeneratedImage(CamelModel):
    url: str
    width: int
    height: int
    content_type: str
    alt_text: str


class FallbackInfo(CamelModel):
    used: Literal[True] = True
    reason: str


class ErrorInfo(CamelModel):
    code: str
    message: str


class Timings(CamelModel):
    """Stage timings in milliseconds."""

    decision: int = 0
    provider: int | None = None
    storage: int | None = None
    total: int = 0


class GenerateSuccess(CamelModel):
    ok: Literal[True] = True
    request_id: str
    decision: Decision
    image: GeneratedImage
    timings_ms: Timings


class GenerateFailure(CamelModel):
    ok: Literal[False] = False
    request_id: str
    decision: Decision | None = None
    fallback: FallbackInfo
    error: ErrorInfo | None = None
    timings_ms: Timings


ImageEngineResult = Union[GenerateSuccess, GenerateFailure]


class RegenerateMiss(CamelModel):
    """Regeneration could not start (no id, unknown id, unreadable decision)."""

    ok: Literal[False] = False
    error_code: str
