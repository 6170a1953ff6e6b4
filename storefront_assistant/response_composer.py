"""
Response composer
─────────────────
Turns a tier outcome (intent, shortlist, policies, locale) into the localized
AssistantResponse the widget renders. Pure: no I/O, no clock.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .config import BaseConfig, get_config
from .enums import ActionType, Intent, ResponseTier, Sentiment
from .locales import message, normalize_locale, quick_replies
from .models import (
    AssistantContext, AssistantResponse, RankedProduct, ResponseAnalytics,
    ShopPolicies, SuggestedAction
)

POLICY_MIN_CHARS = 50
POLICY_PREVIEW_CHARS = 500

EXCELLENT_MATCH = 85
GOOD_MATCH = 70
TOP_MATCH_BADGE = 90

TIER_CONFIDENCE: Dict[ResponseTier, float] = {
    ResponseTier.WORKFLOW: 0.9,
    ResponseTier.POLICY: 0.75,
    ResponseTier.KEYWORD: 0.65,
    ResponseTier.FEATURED: 0.5,
    ResponseTier.GENERIC: 0.4,
    ResponseTier.APOLOGY: 0.0,
}

# Localized line used when an intent is answered without a ranked shortlist
INTENT_MESSAGE_KEYS: Dict[Intent, str] = {
    Intent.PRODUCT_SEARCH: "showing_products",
    Intent.PRICE_INQUIRY: "price_inquiry",
    Intent.COMPARISON: "comparison",
    Intent.AVAILABILITY: "availability",
    Intent.SHIPPING: "shipping_generic",
    Intent.RETURNS: "returns_generic",
    Intent.SIZE_FIT: "size_fit",
    Intent.SUPPORT: "support",
    Intent.GREETING: "greeting",
    Intent.THANKS: "thanks",
    Intent.OTHER: "help_options",
}

# Intents whose own message beats the generic "featured products" line
FEATURED_INTENT_MESSAGES = frozenset({
    Intent.GREETING, Intent.THANKS, Intent.PRICE_INQUIRY, Intent.SIZE_FIT,
    Intent.SUPPORT, Intent.AVAILABILITY, Intent.COMPARISON,
})


def semantic_confidence(top_similarity: float) -> float:
    return min(0.95, 0.7 + 0.25 * max(0.0, top_similarity))


def needs_escalation(intent: Intent, sentiment: Sentiment) -> bool:
    return intent == Intent.SUPPORT and sentiment == Sentiment.NEGATIVE


class ResponseComposer:
    def __init__(self, cfg: BaseConfig | None = None):
        self.cfg = cfg or get_config()

    # ────────────────────────────────────────────────────────
    # Messages
    # ────────────────────────────────────────────────────────

    def intent_message(self, intent: Intent, locale: str) -> str:
        return message(locale, INTENT_MESSAGE_KEYS.get(intent, "help_options"))

    def policy_message(self, intent: Intent, policies: Optional[ShopPolicies], locale: str) -> tuple[str, bool]:
        """(message, answered_from_policy) for SHIPPING / RETURNS."""
        if intent == Intent.SHIPPING:
            text, prefix, generic = (policies.shipping if policies else None), "shipping_prefix", "shipping_generic"
        else:
            text, prefix, generic = (policies.returns if policies else None), "returns_prefix", "returns_generic"

        if text and len(text) > POLICY_MIN_CHARS:
            preview = text[:POLICY_PREVIEW_CHARS] + "..." if len(text) > POLICY_PREVIEW_CHARS else text
            return f"{message(locale, prefix)}\n\n{preview}", True
        return message(locale, generic), False

    def semantic_message(self, top_relevance: int, query: str, locale: str) -> str:
        if top_relevance > EXCELLENT_MATCH:
            key = "semantic_excellent"
        elif top_relevance > GOOD_MATCH:
            key = "semantic_good"
        else:
            key = "semantic_related"
        return message(locale, key, query=query)

    def featured_message(self, intent: Intent, locale: str) -> str:
        if intent in FEATURED_INTENT_MESSAGES:
            return self.intent_message(intent, locale)
        return message(locale, "featured_products")

    def no_products_message(self, intent: Intent, locale: str) -> str:
        if intent == Intent.PRODUCT_SEARCH:
            return message(locale, "no_products")
        return self.intent_message(intent, locale)

    def suggested_actions(self, locale: str, has_products: bool) -> List[SuggestedAction]:
        if has_products:
            return [
                SuggestedAction(label=message(locale, "action_compare"), action=ActionType.COMPARE),
                SuggestedAction(label=message(locale, "action_browse"), action=ActionType.CUSTOM, data="browse_all"),
            ]
        return [SuggestedAction(label=message(locale, "action_contact"), action=ActionType.CUSTOM, data="contact_support")]

    # ────────────────────────────────────────────────────────
    # Recommendation decorations
    # ────────────────────────────────────────────────────────

    def decorate(self, ranked: RankedProduct, context: AssistantContext, locale: str) -> RankedProduct:
        p = ranked.product
        inventory = p.inventory
        low_stock = inventory is not None and 0 < inventory <= self.cfg.LOW_STOCK_THRESHOLD

        discount = None
        badge = None
        if p.compare_at_price is not None and p.compare_at_price > p.price > 0:
            discount = round((p.compare_at_price - p.price) / p.compare_at_price * 100)
            badge = f"-{discount}%"
        elif ranked.relevance_score >= TOP_MATCH_BADGE:
            badge = message(locale, "badge_top_match")

        return replace(
            ranked,
            price_formatted=f"{context.currency} {p.price:.2f}",
            url=f"https://{context.shop}/products/{p.handle}" if p.handle else None,
            is_low_stock=low_stock,
            urgency_message=message(locale, "low_stock", count=inventory) if low_stock else None,
            discount_percent=discount or None,
            badge=badge,
            cta=message(locale, "cta_view"),
        )

    # ────────────────────────────────────────────────────────
    # Assembly
    # ────────────────────────────────────────────────────────

    def compose(
        self,
        *,
        tier: ResponseTier,
        text: str,
        intent: Intent,
        sentiment: Sentiment,
        context: AssistantContext,
        locale: str,
        has_products: bool,
        shortlist: Sequence[RankedProduct] = (),
        confidence: Optional[float] = None,
    ) -> AssistantResponse:
        locale = normalize_locale(locale)
        recommendations = [self.decorate(r, context, locale) for r in shortlist]
        return AssistantResponse(
            message=text,
            message_type=tier.value,
            tier=tier,
            confidence=TIER_CONFIDENCE[tier] if confidence is None else confidence,
            recommendations=recommendations,
            quick_replies=quick_replies(locale, has_products),
            suggested_actions=self.suggested_actions(locale, has_products),
            sentiment=sentiment,
            intent=intent,
            requires_human_escalation=needs_escalation(intent, sentiment),
            analytics=ResponseAnalytics(
                intent_detected=intent.value,
                products_shown=len(recommendations),
            ),
        )

    def apology(
        self,
        context: Optional[AssistantContext],
        locale: Optional[str],
        intent: Intent = Intent.OTHER,
        sentiment: Sentiment = Sentiment.NEUTRAL,
    ) -> AssistantResponse:
        locale = normalize_locale(locale or (context.locale if context else None))
        return AssistantResponse(
            message=message(locale, "apology"),
            message_type=ResponseTier.APOLOGY.value,
            tier=ResponseTier.APOLOGY,
            confidence=TIER_CONFIDENCE[ResponseTier.APOLOGY],
            quick_replies=quick_replies(locale, False),
            suggested_actions=self.suggested_actions(locale, False),
            sentiment=sentiment,
            intent=intent,
            requires_human_escalation=needs_escalation(intent, sentiment),
            analytics=ResponseAnalytics(intent_detected=intent.value),
        )
