"""Provider-ready prompt compilation for the image engine.

The prompt is composed from the decision (platform, category, aspect, mode),
the generate-time safety verdict, and abstract business hints.  The compiled
prompt and negative prompt exist only in pipeline memory: they are handed to
the provider adapter and then dropped.  Nothing in this module logs.

Prompt Structure::

    A clean, modern [category scene], suitable for a [platform] post,
    [vibe], [aspect composition], [platform style], brand-neutral, no text,
    no people, no identifiable elements[, abstract [industry] theme]

Negative Prompt::

    [decision negative rules], no real people, no explicit content,
    no medical claims, no pricing, no guarantees

Negative rules are lower-cased, trimmed and de-duplicated in order.

Usage
-----
::

    result = build_image_prompt(
        PromptBuildInput(
            request_id="req-1",
            platform="instagram",
            category=map_category_to_prompt_category("promotion"),
            aspect="4:5",
            negative_rules=decision.prompt_plan.negative_rules,
            verdict="allow",
            industry="bakery",
            vibe=map_style_tone_to_vibe("warm"),
            mode="generate",
        )
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PromptCategory = Literal["evergreen", "promo", "event", "review", "seasonal", "announcement"]
BusinessVibe = Literal["professional", "friendly", "luxury", "bold"]

# ---------------------------------------------------------------------------
# Fixed lookup tables.
# ---------------------------------------------------------------------------

_CATEGORY_TO_PROMPT_CATEGORY: dict[str, PromptCategory] = {
    "evergreen": "evergreen",
    "promotion": "promo",
    "social_proof": "review",
    "local_abstract": "event",
    "educational": "announcement",
}

_ASPECT_COMPOSITION = {
    "1:1": "square composition",
    "4:5": "vertical layout",
    "16:9": "wide landscape layout",
    "4:3": "standard landscape layout",
}

_PLATFORM_STYLE = {
    "instagram": "modern, visually appealing, Instagram-optimized",
    "facebook": "clean, professional, Facebook-optimized",
    "x": "bold, concise, Twitter-optimized",
    "google_business_profile": "professional, trustworthy, business-optimized",
    "blog": "versatile, web-optimized",
}

_CATEGORY_SCENE: dict[str, str] = {
    "evergreen": "lifestyle abstract visual, brand-neutral pattern",
    "promo": "abstract promotional visual, no prices, no text overlays",
    "event": "generic event atmosphere, abstract celebration visual",
    "review": "symbolic trust imagery, abstract satisfaction visual, no testimonials",
    "seasonal": "abstract seasonal visual, brand-neutral",
    "announcement": "abstract announcement visual, professional tone",
}

_VIBE_DESCRIPTOR: dict[str, str] = {
    "professional": "professional tone",
    "friendly": "friendly, approachable tone",
    "luxury": "refined, elegant tone",
    "bold": "confident, bold tone",
}

_GUARDRAILS = ("brand-neutral", "no text", "no people", "no identifiable elements")

_NEGATIVE_EXTRAS = (
    "no real people",
    "no explicit content",
    "no medical claims",
    "no pricing",
    "no guarantees",
)

# Ordered: the first matching keyword group decides the vibe.
_TONE_KEYWORDS: tuple[tuple[tuple[str, ...], BusinessVibe], ...] = (
    (("luxury", "elegant"), "luxury"),
    (("bold", "confident"), "bold"),
    (("friendly", "warm"), "friendly"),
    (("professional", "clean"), "professional"),
)

_ALT_TEXT_CATEGORY = {
    "educational": "Educational visual",
    "promotion": "Promotional visual",
    "social_proof": "Trust and quality visual",
    "local_abstract": "Local community visual",
    "evergreen": "Brand pattern visual",
}

_ALT_TEXT_ASPECT = {
    "1:1": "square",
    "4:5": "vertical",
    "16:9": "widescreen",
    "4:3": "landscape",
}


@dataclass(frozen=True)
class PromptBuildInput:
    """Everything the prompt builder needs.  Never persisted."""

    request_id: str
    platform: str
    category: PromptCategory
    aspect: str
    negative_rules: tuple[str, ...]
    verdict: str
    mode: str
    industry: str | None = None
    vibe: BusinessVibe | None = None


@dataclass(frozen=True)
class PromptBuildResult:
    prompt: str
    negative_prompt: str

    def __repr__(self) -> str:
        # Keep prompt text out of tracebacks and debug output.
        return f"PromptBuildResult(prompt=<{len(self.prompt)} chars>, negative_prompt=<redacted>)"


def map_category_to_prompt_category(category: str) -> PromptCategory:
    """Map an engine category onto the prompt builder's category set."""
    return _CATEGORY_TO_PROMPT_CATEGORY.get(category, "evergreen")


def map_style_tone_to_vibe(style_tone: str | None) -> BusinessVibe | None:
    """Map a free-form brand style tone onto a business vibe.

    Matching is substring-based on the lower-cased tone; ``None`` when nothing
    matches or no tone is given.
    """
    if not style_tone:
        return None

    tone = style_tone.lower()
    for keywords, vibe in _TONE_KEYWORDS:
        if any(keyword in tone for keyword in keywords):
            return vibe
    return None


def _category_scene(category: str, mode: str) -> str:
    if mode == "fallback":
        return "safe abstract illustration"
    return _CATEGORY_SCENE.get(category, "abstract brand-safe visual")


def build_image_prompt(data: PromptBuildInput) -> PromptBuildResult:
    """Compile the provider prompt and negative prompt.

    Rules:
        - generic, non-identifying, brand-safe wording only
        - no business names, real people, claims or pricing
        - aspect ratio drives composition wording, category drives the scene
        - decision negative rules feed the negative prompt

    Args:
        data: Prompt build input.

    Returns:
        ``PromptBuildResult`` holding the prompt and negative prompt.
    """
    composition = _ASPECT_COMPOSITION.get(data.aspect, "balanced composition")
    platform_style = _PLATFORM_STYLE.get(data.platform, "clean, modern")
    scene = _category_scene(data.category, data.mode)
    vibe = _VIBE_DESCRIPTOR.get(data.vibe or "", "professional tone")

    parts: list[str] = [
        f"A clean, modern {scene}",
        f"suitable for a {data.platform} post",
        vibe,
        composition,
        platform_style,
        *_GUARDRAILS,
    ]

    # Industry is used only as an abstract theme, never as a name.
    if data.industry and data.industry.strip():
        parts.append(f"abstract {data.industry.strip()} theme")

    prompt = ", ".join(parts).strip()

    negative_rules: list[str] = []
    for rule in (*data.negative_rules, *_NEGATIVE_EXTRAS):
        normalized = rule.lower().strip()
        if normalized and normalized not in negative_rules:
            negative_rules.append(normalized)

    return PromptBuildResult(
        prompt=prompt,
        negative_prompt=", ".join(negative_rules),
    )


def build_alt_text(platform: str, category: str, aspect: str) -> str:
    """Build generic alt text for a generated image.

    The text names only the category, platform and aspect, so it is safe to
    persist: no industry, business name or intent wording ends up in it.

    Example:
        ``"Promotional visual for instagram (vertical)"``
    """
    category_text = _ALT_TEXT_CATEGORY.get(category, "Abstract visual")
    platform_text = platform.replace("_", " ")
    aspect_text = _ALT_TEXT_ASPECT.get(aspect)
    if aspect_text:
        return f"{category_text} for {platform_text} ({aspect_text})"
    return f"{category_text} for {platform_text}"
