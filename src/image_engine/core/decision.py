"""Deterministic decision resolution.

``resolve_decision`` maps a validated request onto a concrete generation plan:
aspect ratio, energy, text allowance, pre-check outcome, prompt plan and
provider plan.  The same input always produces the same decision, and the
function never raises: anything the tables cannot support becomes a
``fallback`` decision carrying a reason, which the pipeline turns into a
terminal fallback result without calling a provider.

The prompt plan is a structured template reference (template id, negative
rules and template variables).  It never contains the compiled prompt; that
is built later by :mod:`image_engine.core.prompt_builder` and kept in memory.
"""

from __future__ import annotations

import json
import logging

from image_engine.core.constants import (
    BASE_NEGATIVE_RULES,
    CATEGORY_DEFAULTS,
    DEFAULT_ALLOW_TEXT_OVERLAY,
    DEFAULT_MODEL_TIER,
    DEFAULT_PROVIDER_ID,
    PLATFORM_ASPECT_DEFAULTS,
    SAFE_GENERIC_TEMPLATE_ID,
    SOCIAL_PROOF_NEGATIVE_RULES,
    TEMPLATE_IDS,
)
from image_engine.core.models import (
    BrandKitInfluence,
    Decision,
    DecisionSafety,
    DecisionText,
    ImageEngineRequest,
    PromptPlan,
    ProviderPlan,
)
from image_engine.core.safety import precheck_request

logger = logging.getLogger(__name__)

FALLBACK_NOTES = "Using safe generic template due to safety evaluation"

# Used only when the platform or category is outside the lookup tables.
_UNSUPPORTED_ASPECT = "1:1"
_UNSUPPORTED_CATEGORY_DEFAULTS = ("low", "none")


def resolve_decision(
    request: ImageEngineRequest, provider_id: str = DEFAULT_PROVIDER_ID
) -> Decision:
    """Resolve the generation decision for a request.

    Args:
        request: Validated request.
        provider_id: Provider placed in the provider plan.  Defaults to the
            configured default provider.

    Returns:
        The immutable ``Decision``.  ``mode`` is ``"fallback"`` when the
        pre-check fails or the platform/category is unsupported.
    """
    # Overlays are opt-in.
    allow_text_overlay = (
        request.allow_text_overlay
        if request.allow_text_overlay is not None
        else DEFAULT_ALLOW_TEXT_OVERLAY
    )

    reasons: list[str] = []

    aspect = PLATFORM_ASPECT_DEFAULTS.get(request.platform)
    if aspect is None:
        reasons.append(f"Unsupported platform: {request.platform}")
        aspect = _UNSUPPORTED_ASPECT

    category_defaults = CATEGORY_DEFAULTS.get(request.category)
    if category_defaults is None:
        reasons.append(f"Unsupported category: {request.category}")
        category_defaults = _UNSUPPORTED_CATEGORY_DEFAULTS
    energy, allowance = category_defaults

    if not allow_text_overlay or request.category == "social_proof":
        allowance = "none"

    precheck = precheck_request(request)
    reasons.extend(precheck.reasons)

    is_allowed = precheck.is_allowed and not reasons
    mode = "generate" if is_allowed else "fallback"
    if mode == "fallback":
        allowance = "none"

    prompt_plan = build_prompt_plan(request, mode=mode, energy=energy)

    decision = Decision(
        request_id=request.request_id,
        mode=mode,
        platform=request.platform,
        aspect=aspect,
        category=request.category,
        energy=energy,
        text=DecisionText(allowance=allowance, recommended_overlay_text=None),
        safety=DecisionSafety(
            is_allowed=is_allowed,
            reasons=tuple(reasons),
            used_fallback=mode == "fallback",
        ),
        prompt_plan=prompt_plan,
        provider_plan=ProviderPlan(
            provider_id=provider_id,
            model_tier=DEFAULT_MODEL_TIER,
            notes=FALLBACK_NOTES if mode == "fallback" else None,
        ),
    )

    logger.debug(f"Resolved decision for {request.request_id}: mode={mode}, aspect={aspect}")
    return decision


def build_prompt_plan(request: ImageEngineRequest, *, mode: str, energy: str) -> PromptPlan:
    """Build the structured prompt plan for a request.

    The template is chosen by category, or the safe generic template in
    fallback mode.  Base negative rules always apply; social proof adds rules
    that forbid quotes and speech bubbles.
    """
    if mode == "fallback":
        template_id = SAFE_GENERIC_TEMPLATE_ID
    else:
        template_id = TEMPLATE_IDS.get(request.category, SAFE_GENERIC_TEMPLATE_ID)

    negative_rules = list(BASE_NEGATIVE_RULES)
    if request.category == "social_proof":
        negative_rules.extend(SOCIAL_PROOF_NEGATIVE_RULES)

    return PromptPlan(
        template_id=template_id,
        negative_rules=tuple(negative_rules),
        variables=_build_variables(request, energy=energy),
    )


def _build_variables(request: ImageEngineRequest, *, energy: str) -> dict[str, str]:
    brand = request.brand or BrandKitInfluence()
    variables: dict[str, str] = {"styleTone": brand.style_tone or "clean"}

    if brand.primary_color_hex:
        variables["primaryColorHex"] = brand.primary_color_hex
    if brand.accent_color_hex:
        variables["accentColorHex"] = brand.accent_color_hex
    if brand.industry:
        variables["industry"] = brand.industry

    if request.locale:
        locale_parts = " ".join(part for part in (request.locale.city, request.locale.region) if part)
        if locale_parts:
            variables["localeAbstract"] = f"subtle {locale_parts} vibe, abstract only"

    variables["intentSummary"] = request.intent_summary.strip()
    variables["energy"] = energy
    variables["category"] = request.category
    return variables


# ---------------------------------------------------------------------------
# Redacted decision logging.
# ---------------------------------------------------------------------------


def create_decision_id(request: ImageEngineRequest) -> str:
    return f"{request.request_id}-{request.platform}-{request.category}"


def redact_intent_summary(intent_summary: str) -> str:
    """Shorten an intent summary so logs keep context but not full content."""
    if not intent_summary or not intent_summary.strip():
        return "[empty]"
    if len(intent_summary) <= 20:
        return intent_summary
    return f"{intent_summary[:30]}...{intent_summary[-10:]}"


def redact_brand(brand: BrandKitInfluence | None) -> dict[str, str] | None:
    """Brand hints for logging, with colour hex values replaced."""
    if brand is None:
        return None

    redacted: dict[str, str] = {}
    if brand.style_tone:
        redacted["styleTone"] = brand.style_tone
    if brand.industry:
        redacted["industry"] = brand.industry
    for key, value in (
        ("primaryColorHex", brand.primary_color_hex),
        ("secondaryColorHex", brand.secondary_color_hex),
        ("accentColorHex", brand.accent_color_hex),
    ):
        if value:
            redacted[key] = "[redacted]"
    return redacted or None


def log_decision(request: ImageEngineRequest, decision: Decision) -> None:
    """Log a resolved decision with intent and brand colours redacted."""
    log_data = {
        "decisionId": create_decision_id(request),
        "requestId": request.request_id,
        "consumerApp": request.consumer_app,
        "platform": request.platform,
        "category": request.category,
        "mode": decision.mode,
        "aspect": decision.aspect,
        "energy": decision.energy,
        "textAllowance": decision.text.allowance,
        "safety": {
            "isAllowed": decision.safety.is_allowed,
            "usedFallback": decision.safety.used_fallback,
            "reasonCount": len(decision.safety.reasons),
        },
        "intentSummary": redact_intent_summary(request.intent_summary),
        "brand": redact_brand(request.brand),
        "templateId": decision.prompt_plan.template_id,
        "providerId": decision.provider_plan.provider_id,
    }
    logger.info(f"Decision: {json.dumps(log_data)}")
