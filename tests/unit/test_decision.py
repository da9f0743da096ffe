"""Unit tests for image_engine.core.decision."""

from __future__ import annotations

import logging

import pytest

from image_engine.core.constants import BASE_NEGATIVE_RULES, SOCIAL_PROOF_NEGATIVE_RULES
from image_engine.core.decision import (
    FALLBACK_NOTES,
    create_decision_id,
    log_decision,
    redact_brand,
    redact_intent_summary,
    resolve_decision,
)
from image_engine.core.models import BrandKitInfluence, ImageEngineRequest


class TestAspectAndCategoryDefaults:
    """Test the platform and category lookup tables."""

    @pytest.mark.parametrize(
        "platform, aspect",
        [
            ("instagram", "4:5"),
            ("facebook", "4:5"),
            ("x", "16:9"),
            ("google_business_profile", "4:3"),
            ("blog", "16:9"),
        ],
    )
    def test_platform_aspect(self, make_request, platform, aspect):
        """Each platform resolves to its default aspect ratio."""
        assert resolve_decision(make_request(platform=platform)).aspect == aspect

    @pytest.mark.parametrize(
        "category, energy, allowance",
        [
            ("educational", "medium", "minimal"),
            ("promotion", "high", "headline_only"),
            ("social_proof", "medium", "none"),
            ("local_abstract", "low", "none"),
            ("evergreen", "low", "minimal"),
        ],
    )
    def test_category_defaults_with_overlay(self, make_request, category, energy, allowance):
        """With overlays allowed, the category table decides the allowance."""
        decision = resolve_decision(
            make_request(category=category, allowTextOverlay=True, intentSummary="Fresh bread")
        )
        assert decision.energy == energy
        assert decision.text.allowance == allowance

    def test_overlay_defaults_to_none(self, make_request):
        """Without allowTextOverlay the allowance collapses to none."""
        decision = resolve_decision(make_request(category="promotion"))
        assert decision.text.allowance == "none"
        assert decision.text.recommended_overlay_text is None


class TestModes:
    """Test generate and fallback modes."""

    def test_generate_mode(self, make_request):
        """A safe request produces a generate decision."""
        decision = resolve_decision(make_request())
        assert decision.mode == "generate"
        assert decision.safety.is_allowed is True
        assert decision.safety.used_fallback is False
        assert decision.prompt_plan.template_id == "PROMO_ABSTRACT_V1"
        assert decision.provider_plan.notes is None

    def test_precheck_hit_falls_back(self, make_request):
        """A pre-check hit switches to the safe generic fallback plan."""
        decision = resolve_decision(
            make_request(intentSummary="Photo of our team", allowTextOverlay=True)
        )
        assert decision.mode == "fallback"
        assert decision.safety.is_allowed is False
        assert decision.safety.used_fallback is True
        assert decision.text.allowance == "none"
        assert decision.prompt_plan.template_id == "SAFE_GENERIC_ABSTRACT_V1"
        assert decision.provider_plan.notes == FALLBACK_NOTES
        assert len(decision.safety.reasons) == 1

    def test_unsupported_platform_falls_back_without_raising(self, valid_payload):
        """Values outside the tables produce a fallback decision."""
        request = ImageEngineRequest.model_construct(
            request_id="req-x",
            consumer_app="other",
            platform="tiktok",
            category="promotion",
            intent_summary="Fresh bread",
            brand=None,
            locale=None,
            allow_text_overlay=None,
            safe_mode=None,
        )
        decision = resolve_decision(request)
        assert decision.mode == "fallback"
        assert decision.safety.reasons == ("Unsupported platform: tiktok",)
        assert decision.aspect == "1:1"

    def test_unsupported_category_falls_back(self):
        """An unknown category also falls back with a reason."""
        request = ImageEngineRequest.model_construct(
            request_id="req-y",
            consumer_app="other",
            platform="blog",
            category="memes",
            intent_summary="Fresh bread",
            brand=None,
            locale=None,
            allow_text_overlay=None,
            safe_mode=None,
        )
        decision = resolve_decision(request)
        assert decision.mode == "fallback"
        assert "Unsupported category: memes" in decision.safety.reasons

    def test_deterministic(self, make_request):
        """The same request always yields the same decision."""
        request = make_request()
        assert resolve_decision(request) == resolve_decision(request)


class TestPromptPlan:
    """Test the structured prompt plan."""

    def test_base_negative_rules(self, make_request):
        """Every decision carries the base negative rules."""
        decision = resolve_decision(make_request())
        assert decision.prompt_plan.negative_rules == BASE_NEGATIVE_RULES

    def test_social_proof_extras(self, make_request):
        """Social proof adds its own negative rules."""
        decision = resolve_decision(
            make_request(category="social_proof", intentSummary="Quality you can count on")
        )
        assert decision.prompt_plan.negative_rules == (
            BASE_NEGATIVE_RULES + SOCIAL_PROOF_NEGATIVE_RULES
        )
        assert decision.prompt_plan.template_id == "SOCIAL_PROOF_ABSTRACT_V1"

    def test_variables(self, make_request):
        """Variables carry brand, locale and decision context."""
        request = make_request(
            brand={"styleTone": "bold", "industry": "bakery", "primaryColorHex": "#112233"}
        )
        variables = resolve_decision(request).prompt_plan.variables
        assert variables["styleTone"] == "bold"
        assert variables["industry"] == "bakery"
        assert variables["primaryColorHex"] == "#112233"
        assert variables["localeAbstract"] == "subtle Ocala FL vibe, abstract only"
        assert variables["energy"] == "high"
        assert variables["category"] == "promotion"
        assert "accentColorHex" not in variables

    def test_style_tone_defaults_to_clean(self, make_request):
        """Without a brand the style tone is 'clean'."""
        variables = resolve_decision(make_request(brand=None, locale=None)).prompt_plan.variables
        assert variables["styleTone"] == "clean"
        assert "localeAbstract" not in variables

    def test_provider_plan(self, make_request):
        """The provider plan uses the given provider and the flash tier."""
        decision = resolve_decision(make_request(), provider_id="openai")
        assert decision.provider_plan.provider_id == "openai"
        assert decision.provider_plan.model_tier == "flash"
        assert resolve_decision(make_request()).provider_plan.provider_id == "nano_banana"


class TestDecisionLogging:
    """Test redacted decision logging."""

    def test_redact_short_summary(self):
        assert redact_intent_summary("Fresh bread") == "Fresh bread"

    def test_redact_long_summary(self):
        """Long summaries keep the first 30 and last 10 characters."""
        text = "A" * 30 + "B" * 20 + "C" * 10
        assert redact_intent_summary(text) == "A" * 30 + "..." + "C" * 10

    def test_redact_empty_summary(self):
        assert redact_intent_summary("   ") == "[empty]"

    def test_redact_brand_hides_colours(self):
        brand = BrandKitInfluence(primary_color_hex="#112233", industry="bakery")
        assert redact_brand(brand) == {"industry": "bakery", "primaryColorHex": "[redacted]"}
        assert redact_brand(None) is None

    def test_decision_id(self, make_request):
        assert create_decision_id(make_request()) == "req-001-instagram-promotion"

    def test_log_decision_redacts(self, make_request, caplog):
        """Colours and the full intent never reach the log."""
        request = make_request(
            intentSummary="Weekend pastry sale featuring croissants and seasonal fruit tarts",
            brand={"primaryColorHex": "#ABCDEF", "industry": "bakery"},
        )
        with caplog.at_level(logging.INFO, logger="image_engine.core.decision"):
            log_decision(request, resolve_decision(request))

        assert "#ABCDEF" not in caplog.text
        assert request.intent_summary not in caplog.text
        assert "req-001-instagram-promotion" in caplog.text
