"""Platform, category and safety defaults for the image engine.

Everything here is deterministic configuration: the decision engine, the size
resolver and the prompt planner read these tables and never mutate them.
"""

from __future__ import annotations

from typing import Literal

# ---------------------------------------------------------------------------
# Core enums.
# ---------------------------------------------------------------------------

ConsumerApp = Literal[
    "social_auto_poster",
    "offers_promotions",
    "event_campaign",
    "review_responder",
    "brand_kit_builder",
    "seo_audit_roadmap",
    "other",
]
ImagePlatform = Literal["instagram", "facebook", "x", "google_business_profile", "blog"]
ImageCategory = Literal["educational", "promotion", "social_proof", "local_abstract", "evergreen"]
ImageEnergy = Literal["low", "medium", "high"]
TextAllowance = Literal["none", "minimal", "headline_only"]
DecisionMode = Literal["generate", "fallback"]
ModelTier = Literal["flash", "pro"]
SafetyVerdict = Literal["allow", "fallback", "block"]

CONSUMER_APPS: tuple[str, ...] = (
    "social_auto_poster",
    "offers_promotions",
    "event_campaign",
    "review_responder",
    "brand_kit_builder",
    "seo_audit_roadmap",
    "other",
)
PLATFORMS: tuple[str, ...] = ("instagram", "facebook", "x", "google_business_profile", "blog")
CATEGORIES: tuple[str, ...] = (
    "educational",
    "promotion",
    "social_proof",
    "local_abstract",
    "evergreen",
)

# ---------------------------------------------------------------------------
# Platform aspect defaults.
# Instagram also supports 1:1, but 4:5 is the stable default for posts.
# ---------------------------------------------------------------------------

PLATFORM_ASPECT_DEFAULTS: dict[str, str] = {
    "instagram": "4:5",
    "facebook": "4:5",
    "x": "16:9",
    "google_business_profile": "4:3",
    "blog": "16:9",
}

# Pixel dimensions per aspect ratio.
ASPECT_SIZES: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "4:5": (1024, 1280),
    "16:9": (1920, 1080),
    "4:3": (1280, 960),
}
DEFAULT_SIZE: tuple[int, int] = (1024, 1024)

# ---------------------------------------------------------------------------
# Category defaults: (energy, text allowance).
# The allowance collapses to "none" unless allowTextOverlay is true, and
# social_proof never allows text.
# ---------------------------------------------------------------------------

CATEGORY_DEFAULTS: dict[str, tuple[str, str]] = {
    "educational": ("medium", "minimal"),
    "promotion": ("high", "headline_only"),
    "social_proof": ("medium", "none"),
    "local_abstract": ("low", "none"),
    "evergreen": ("low", "minimal"),
}

# ---------------------------------------------------------------------------
# Safety and provider defaults.
# ---------------------------------------------------------------------------

DEFAULT_ALLOW_TEXT_OVERLAY = False

DEFAULT_PROVIDER_ID = "nano_banana"
DEFAULT_MODEL_TIER = "flash"

PRIMARY_PROVIDER = "openai"
SECONDARY_PROVIDER = "nano_banana"

STORAGE_LOCAL_DEV = "local_dev"
STORAGE_VERCEL_BLOB = "vercel_blob"

DEFAULT_CONTENT_TYPE = "image/png"

# ---------------------------------------------------------------------------
# Prompt templates and hard-locked negative rules.
# ---------------------------------------------------------------------------

TEMPLATE_IDS: dict[str, str] = {
    "educational": "EDU_ABSTRACT_V1",
    "promotion": "PROMO_ABSTRACT_V1",
    "social_proof": "SOCIAL_PROOF_ABSTRACT_V1",
    "local_abstract": "LOCAL_OCALA_ABSTRACT_V1",
    "evergreen": "EVERGREEN_BRAND_PATTERN_V1",
}
SAFE_GENERIC_TEMPLATE_ID = "SAFE_GENERIC_ABSTRACT_V1"

BASE_NEGATIVE_RULES: tuple[str, ...] = (
    "no logos",
    "no brand names",
    "no readable storefront signs",
    "no faces",
    "no identifiable people",
    "no copyrighted characters",
    "no celebrity likeness",
    "no 'in the style of' artists",
    "no medical/legal claims",
    "no before/after",
    "no fake reviews",
)

SOCIAL_PROOF_NEGATIVE_RULES: tuple[str, ...] = (
    "no text overlays",
    "no quotes",
    "no speech bubbles",
)

# ---------------------------------------------------------------------------
# Error codes produced by the orchestrator itself.
# Adapters may report their own, more specific codes.
# ---------------------------------------------------------------------------

SAFETY_BLOCKED = "SAFETY_BLOCKED"
SAFETY_FALLBACK = "SAFETY_FALLBACK"
PROVIDER_ERROR = "PROVIDER_ERROR"
STORAGE_ERROR = "STORAGE_ERROR"
