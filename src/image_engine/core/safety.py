"""Rule-based brand-safety evaluation.

Two deterministic checks live here:

``precheck_request``
    Decision-time pre-check over the request's intent summary.  It decides
    whether generation can be attempted at all; a hit turns the decision into
    ``fallback`` mode.  First matching pattern group wins.

``evaluate_safety``
    Generate-time rules engine producing a tri-state verdict.  It is re-run by
    every generation entry point (even when the decision route already ran it)
    so that calling ``/generate`` directly is always safe.  Every rule is
    evaluated and the most severe hit wins: ``block`` > ``fallback`` >
    ``allow``.

Determinism:
    No I/O, no clock, no randomness.  Identical inputs always produce identical
    verdicts, reasons and tags.

Bypass risk:
    Pattern matching can be evaded by obfuscation or misspelling.  Negative
    prompt rules applied at generation time remain the second line of defence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from image_engine.core.models import ImageEngineRequest, SafetyEvaluation, SafetyResult

# ---------------------------------------------------------------------------
# Decision-time pre-check patterns (case-insensitive, on intentSummary).
# Order matters: the first matching group supplies the reason.
# ---------------------------------------------------------------------------

_PRECHECK_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Contains language implying staff/owner faces (not allowed)",
        (
            r"our\s+team",
            r"my\s+staff",
            r"owner\s+portrait",
            r"employee\s+headshot",
            r"staff\s+member",
            r"team\s+member",
            r"our\s+employees",
            r"our\s+people",
        ),
    ),
    (
        "Contains language implying fake storefronts/locations (not allowed)",
        (
            r"our\s+storefront",
            r"our\s+building",
            r"front\s+of\s+our\s+shop",
            r"our\s+location",
            r"our\s+facility",
            r"our\s+office",
            r"our\s+store",
        ),
    ),
    (
        "Contains medical/legal claims (not allowed)",
        (
            r"cure",
            r"guarantee",
            r"diagnose",
            r"lawsuit",
            r"legal\s+claim",
            r"medical\s+claim",
            r"guaranteed\s+result",
            r"promise\s+to\s+cure",
        ),
    ),
    (
        "Contains before/after transformation language (not allowed)",
        (
            r"before\s+and\s+after",
            r"before/after",
            r"before\s+after",
            r"transformation",
            r"results\s+before",
        ),
    ),
    (
        "Contains fake review/testimonial language (not allowed)",
        (
            r"5[\s-]?star\s+review",
            r"john\s+says",
            r"rated\s+#1",
            r"customer\s+testimonial",
            r"fake\s+review",
            r"testimonial\s+from",
            r"review\s+from\s+customer",
        ),
    ),
    (
        "Contains request to include logos/business names (not allowed)",
        (
            r"include\s+logo",
            r"add\s+our\s+name",
            r"business\s+name\s+in\s+image",
            r"logo\s+in\s+image",
            r"brand\s+name\s+visible",
            r"burn\s+logo",
            r"embed\s+logo",
        ),
    ),
)

_SOCIAL_PROOF_REASON = (
    "Social proof category forbids any language implying real reviews/people "
    "(must be abstract trust/quality visuals only)"
)
_SOCIAL_PROOF_PATTERNS: tuple[str, ...] = (
    r"review",
    r"testimonial",
    r"customer\s+quote",
    r"client\s+quote",
    r"rating",
    r"star",
    r"5\s+star",
    r"recommendation",
    r"endorsement",
    r"people\s+saying",
    r"customers\s+saying",
)


def _compile(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


_COMPILED_PRECHECK = tuple((reason, _compile(patterns)) for reason, patterns in _PRECHECK_GROUPS)
_COMPILED_SOCIAL_PROOF = _compile(_SOCIAL_PROOF_PATTERNS)


def precheck_request(request: ImageEngineRequest) -> SafetyEvaluation:
    """Check whether a request can be generated at all.

    Args:
        request: Validated request.

    Returns:
        ``SafetyEvaluation`` with ``is_allowed=False`` and a single reason on
        the first matching pattern group, otherwise allowed with no reasons.
    """
    text = request.intent_summary

    for reason, patterns in _COMPILED_PRECHECK:
        if any(p.search(text) for p in patterns):
            return SafetyEvaluation(is_allowed=False, reasons=(reason,))

    # Stricter rules for social proof: no language implying real reviews/people.
    if request.category == "social_proof":
        if any(p.search(text) for p in _COMPILED_SOCIAL_PROOF):
            return SafetyEvaluation(is_allowed=False, reasons=(_SOCIAL_PROOF_REASON,))

    return SafetyEvaluation(is_allowed=True)


# ---------------------------------------------------------------------------
# Generate-time rules engine.
# ---------------------------------------------------------------------------

DISALLOWED_WORDS: tuple[str, ...] = (
    "nudity",
    "nude",
    "explicit",
    "weapon",
    "gun",
    "blood",
)

_VERDICT_SEVERITY = {"allow": 0, "fallback": 1, "block": 2}

_BEFORE_AFTER_PHRASES = ("before and after", "before/after", "before-after")


@dataclass(frozen=True)
class SafetyInput:
    """Inputs to the generate-time safety rules."""

    platform: str
    category: str
    aspect: str
    mode: str
    negative_rules: tuple[str, ...] = ()
    business_name: str | None = None
    user_text: str | None = None


@dataclass(frozen=True)
class _RuleHit:
    verdict: str
    reason: str
    tags: tuple[str, ...] = field(default_factory=tuple)


def _rule_no_faces_conflict(data: SafetyInput, text: str) -> list[_RuleHit]:
    has_no_faces_rule = any(
        "no_faces" in rule.lower() or "no faces" in rule.lower() for rule in data.negative_rules
    )
    if has_no_faces_rule and ("portrait" in text or "headshot" in text):
        return [
            _RuleHit(
                "block",
                "Request conflicts with no_faces rule: mentions portrait or headshot",
                ("no_faces_conflict", "portrait_or_headshot"),
            )
        ]
    return []


def _rule_disallowed_words(data: SafetyInput, text: str) -> list[_RuleHit]:
    hints = " ".join(part for part in (text, (data.business_name or "").lower()) if part)
    hits = []
    for word in DISALLOWED_WORDS:
        if re.search(rf"\b{re.escape(word)}", hints):
            hits.append(
                _RuleHit(
                    "block",
                    f"Request contains disallowed word: {word}",
                    ("disallowed_word", word),
                )
            )
    return hits


def _rule_review_before_after(data: SafetyInput, text: str) -> list[_RuleHit]:
    is_review_category = data.category == "social_proof" or "review" in data.category.lower()
    if is_review_category and any(phrase in text for phrase in _BEFORE_AFTER_PHRASES):
        return [
            _RuleHit(
                "fallback",
                "Review category with before/after language may be deceptive - using fallback",
                ("before_after", "review_category", "deceptive_ad"),
            )
        ]
    return []


_RULES = (_rule_no_faces_conflict, _rule_disallowed_words, _rule_review_before_after)


def evaluate_safety(data: SafetyInput) -> SafetyResult:
    """Evaluate the brand-safety rules and return a verdict.

    Rules:
        A) negative rules include ``no_faces`` and the text mentions
           "portrait" or "headshot" -> block
        B) text or business hint contains a disallowed word -> block
        C) review-like category and before/after language -> fallback
        D) otherwise allow

    All rules run; the most severe verdict wins and the reasons of every hit
    are joined (most severe first) into ``reason_safe``.

    Args:
        data: Safety evaluation input.

    Returns:
        ``SafetyResult`` with verdict, user-facing reason and tags.
    """
    text = (data.user_text or "").lower()

    hits: list[_RuleHit] = []
    for rule in _RULES:
        hits.extend(rule(data, text))

    if not hits:
        return SafetyResult(
            verdict="allow",
            reason_safe="Request passed all safety checks",
            tags=("safe",),
        )

    # Stable sort keeps rule order within the same severity.
    hits.sort(key=lambda hit: _VERDICT_SEVERITY[hit.verdict], reverse=True)

    tags: list[str] = []
    for hit in hits:
        for tag in hit.tags:
            if tag not in tags:
                tags.append(tag)

    return SafetyResult(
        verdict=hits[0].verdict,
        reason_safe="; ".join(hit.reason for hit in hits),
        tags=tuple(tags),
    )
