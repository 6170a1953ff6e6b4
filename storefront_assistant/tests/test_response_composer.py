from __future__ import annotations

import pytest

from storefront_assistant.enums import ActionType, Intent, ResponseTier, Sentiment
from storefront_assistant.models import AssistantContext, Product, RankedProduct, ShopPolicies
from storefront_assistant.response_composer import (
    ResponseComposer, needs_escalation, semantic_confidence
)


@pytest.fixture
def composer(cfg):
    return ResponseComposer(cfg)


@pytest.fixture
def context():
    return AssistantContext(shop="shop.test", session_id="s1", currency="EUR")


def test_policy_message_previews_long_text(composer):
    policy = "Returns accepted within 30 days. " * 30
    text, from_policy = composer.policy_message(Intent.RETURNS, ShopPolicies(returns=policy), "en")
    assert from_policy
    assert text.startswith("Here's our return policy:\n\n")
    assert text.endswith("...")
    assert text.split("\n\n", 1)[1] == policy[:500] + "..."


def test_policy_message_short_text_is_ignored(composer):
    text, from_policy = composer.policy_message(Intent.SHIPPING, ShopPolicies(shipping="Ships fast."), "en")
    assert not from_policy
    assert text.startswith("For shipping information")


def test_policy_message_without_policies_is_localized(composer):
    text, from_policy = composer.policy_message(Intent.RETURNS, None, "fr")
    assert not from_policy
    assert text.startswith("Pour les informations de retour")


def test_policy_message_under_preview_limit_is_verbatim(composer):
    policy = "Free shipping on all orders over fifty dollars, delivered in 3-5 days."
    text, _ = composer.policy_message(Intent.SHIPPING, ShopPolicies(shipping=policy), "en")
    assert text == f"Here's our shipping policy:\n\n{policy}"


@pytest.mark.parametrize(
    "relevance,opening",
    [(95, "I found some excellent matches"), (80, "Here are some good options"), (70, "Based on your search")],
)
def test_semantic_message_thresholds(composer, relevance, opening):
    text = composer.semantic_message(relevance, "linen shirt", "en")
    assert text.startswith(opening)
    assert '"linen shirt"' in text


def test_semantic_confidence_is_capped():
    assert semantic_confidence(0.0) == pytest.approx(0.7)
    assert semantic_confidence(-0.5) == pytest.approx(0.7)
    assert semantic_confidence(0.8) == pytest.approx(0.9)
    assert semantic_confidence(1.0) == pytest.approx(0.95)


def test_escalation_only_for_negative_support():
    assert needs_escalation(Intent.SUPPORT, Sentiment.NEGATIVE)
    assert not needs_escalation(Intent.SUPPORT, Sentiment.NEUTRAL)
    assert not needs_escalation(Intent.RETURNS, Sentiment.NEGATIVE)


def test_featured_message_prefers_intent_line(composer):
    assert composer.featured_message(Intent.GREETING, "en").startswith("Hello!")
    assert composer.featured_message(Intent.PRODUCT_SEARCH, "en") == "Check out our featured products:"


def test_no_products_message(composer):
    assert composer.no_products_message(Intent.PRODUCT_SEARCH, "en").startswith("I don't have product information")
    assert composer.no_products_message(Intent.OTHER, "en").startswith("I can help you with:")


def test_decorate_discount_and_low_stock(composer, context, catalog):
    jacket = composer.decorate(RankedProduct(product=catalog[1], relevance_score=95), context, "en")
    assert jacket.price_formatted == "EUR 120.00"
    assert jacket.url == "https://shop.test/products/blue-denim-jacket"
    assert jacket.discount_percent == 20
    assert jacket.badge == "-20%"
    assert not jacket.is_low_stock

    dress = composer.decorate(RankedProduct(product=catalog[0], relevance_score=92), context, "en")
    assert dress.is_low_stock
    assert dress.urgency_message == "Only 3 left!"
    assert dress.badge == "Top match"
    assert dress.cta == "View Product"


def test_decorate_out_of_stock_is_not_low_stock(composer, context, catalog):
    boots = composer.decorate(RankedProduct(product=catalog[3], relevance_score=10), context, "en")
    assert not boots.is_low_stock
    assert boots.urgency_message is None
    assert boots.badge is None


def test_decorate_ignores_handleless_product(composer, context):
    ranked = composer.decorate(RankedProduct(product=Product(id="x", title="X", price=5.0)), context, "en")
    assert ranked.url is None
    assert "url" not in ranked.to_dict()


def test_compose_builds_wire_payload(composer, context, catalog):
    shortlist = [RankedProduct(product=p, relevance_score=80) for p in catalog[:2]]
    response = composer.compose(
        tier=ResponseTier.KEYWORD,
        text="Here are some products you might like:",
        intent=Intent.PRODUCT_SEARCH,
        sentiment=Sentiment.NEUTRAL,
        context=context,
        locale="en",
        has_products=True,
        shortlist=shortlist,
    )
    payload = response.to_dict()
    assert payload["messageType"] == "fallback_keyword"
    assert payload["confidence"] == 0.65
    assert payload["analytics"]["productsShown"] == 2
    assert payload["analytics"]["workflowType"] == "none"
    assert payload["recommendations"][1]["originalPrice"] == "150.00"
    assert [a["action"] for a in payload["suggestedActions"]] == [ActionType.COMPARE.value, ActionType.CUSTOM.value]


def test_apology_uses_context_locale(composer):
    ctx = AssistantContext(shop="shop.test", session_id="s1", locale="es-MX")
    response = composer.apology(ctx, None, intent=Intent.SUPPORT, sentiment=Sentiment.NEGATIVE)
    assert response.tier == ResponseTier.APOLOGY
    assert response.confidence == 0.0
    assert response.message.startswith("Lo siento")
    assert response.requires_human_escalation
    assert response.suggested_actions[0].data == "contact_support"
