"""
Local fallback pipeline
───────────────────────
Runs when the external workflow backend is unavailable:

    classify → (policy answer | semantic → keyword → featured) → personalize → compose

run() never raises; anything unexpected becomes a localized apology.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .classifier import Classification, IntentClassifier
from .config import BaseConfig, get_config
from .enums import SEMANTIC_INTENTS, SUPPORT_INTENTS, Intent, ResponseTier
from .models import AssistantRequest, AssistantResponse, RankedProduct, ShopPolicies, UserPreferences
from .recommendation import KeywordRanker, PersonalizationScorer, SemanticRanker
from .response_composer import ResponseComposer, semantic_confidence
from .utils.smart_logger import get_smart_logger

log = logging.getLogger(__name__)
smart_log = get_smart_logger("fallback_pipeline")

FEATURED_RELEVANCE = 50


@dataclass
class PersonalizationInputs:
    """Preferences and recent products merged from the request and the stored profile."""
    preferences: Optional[UserPreferences] = None
    recent_products: List[str] = field(default_factory=list)
    policies: Optional[ShopPolicies] = None


class FallbackPipeline:
    def __init__(
        self,
        classifier: IntentClassifier,
        semantic: Optional[SemanticRanker],
        keyword: KeywordRanker,
        scorer: PersonalizationScorer,
        composer: ResponseComposer,
        cfg: BaseConfig | None = None,
    ):
        self.classifier = classifier
        self.semantic = semantic
        self.keyword = keyword
        self.scorer = scorer
        self.composer = composer
        self.cfg = cfg or get_config()

    async def run(
        self, request: AssistantRequest, inputs: Optional[PersonalizationInputs] = None
    ) -> AssistantResponse:
        inputs = inputs or PersonalizationInputs()
        ctx = request.context
        classification: Optional[Classification] = None
        try:
            classification = await self.classifier.classify(request.utterance, ctx.locale)
            smart_log.intent_classified(
                ctx.session_id, classification.intent.value,
                classification.sentiment.value, classification.intent_source,
            )
            return await self._respond(request, classification, inputs)
        except Exception as exc:  # noqa: BLE001
            log.error(f"FALLBACK_PIPELINE_ERROR | shop={ctx.shop} | error={type(exc).__name__}: {exc}", exc_info=True)
            smart_log.error_occurred(ctx.session_id, type(exc).__name__, "fallback_pipeline", str(exc))
            if classification is None:
                return self.composer.apology(ctx, ctx.locale)
            return self.composer.apology(
                ctx, classification.language, classification.intent, classification.sentiment
            )

    async def _respond(
        self, request: AssistantRequest, c: Classification, inputs: PersonalizationInputs
    ) -> AssistantResponse:
        ctx = request.context
        locale = c.language
        policies = inputs.policies or ctx.shop_policies

        common = dict(
            intent=c.intent,
            sentiment=c.sentiment,
            context=ctx,
            locale=locale,
            has_products=request.has_products,
        )

        if c.intent in SUPPORT_INTENTS:
            text, from_policy = self.composer.policy_message(c.intent, policies, locale)
            tier = ResponseTier.POLICY if from_policy else ResponseTier.GENERIC
            smart_log.tier_decision(ctx.session_id, "FALLBACK", tier.value, "support_intent")
            return self.composer.compose(tier=tier, text=text, **common)

        if not request.has_products:
            smart_log.tier_decision(ctx.session_id, "FALLBACK", ResponseTier.GENERIC.value, "no_products")
            return self.composer.compose(
                tier=ResponseTier.GENERIC,
                text=self.composer.no_products_message(c.intent, locale),
                **common,
            )

        shortlist: List[RankedProduct] = []
        tier = ResponseTier.KEYWORD
        text = ""
        confidence: Optional[float] = None

        if self.semantic is not None and c.intent in SEMANTIC_INTENTS:
            result = await self.semantic.rank(ctx.shop, request.utterance, request.products, self.cfg.SEMANTIC_TOP_K)
            if result.ok:
                shortlist = result.value
                tier = ResponseTier.SEMANTIC
                confidence = semantic_confidence(shortlist[0].similarity or 0.0)
                text = self.composer.semantic_message(shortlist[0].relevance_score, request.utterance, locale)
            else:
                smart_log.tier_decision(ctx.session_id, "SEMANTIC", "skipped", result.failure.reason)

        if not shortlist:
            shortlist = self.keyword.rank(request.utterance, request.products, self.cfg.KEYWORD_TOP_N)
            tier = ResponseTier.KEYWORD
            text = self.composer.intent_message(Intent.PRODUCT_SEARCH, locale)

        if shortlist:
            shortlist = self.scorer.apply(shortlist, inputs.preferences, inputs.recent_products)
        else:
            tier = ResponseTier.FEATURED
            shortlist = [
                RankedProduct(product=p, relevance_score=FEATURED_RELEVANCE)
                for p in request.products[: self.cfg.FEATURED_COUNT]
            ]
            text = self.composer.featured_message(c.intent, locale)

        smart_log.tier_decision(ctx.session_id, "FALLBACK", tier.value, f"products={len(shortlist)}")
        return self.composer.compose(
            tier=tier, text=text, shortlist=shortlist, confidence=confidence, **common
        )
