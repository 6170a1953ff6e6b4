"""
Brain of the storefront assistant.

AssistantCore.handle_message is the single entry point for a shopper message:

• reserve a conversation against the shop's monthly plan quota
• load (or create) the shopper profile and active chat session
• merge stored preferences / browsing with what the widget sent
• dispatch: external workflow first, local fallback pipeline otherwise
• persist both messages, learn preferences, record analytics
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .analytics import AnalyticsAggregator, UsageTracker
from .config import BaseConfig, get_config
from .enums import InteractionType, MessageRole
from .fallback_pipeline import PersonalizationInputs
from .models import (
    AssistantRequest, AssistantResponse, ChatMessage, ChatSession, UserPreferences, UserProfile
)
from .personalization import PersonalizationService
from .policy_cache import PolicyCache
from .response_composer import ResponseComposer
from .utils.helpers import unique
from .utils.smart_logger import get_smart_logger
from .workflow_dispatcher import WorkflowDispatcher

log = logging.getLogger(__name__)

RECENT_PRODUCTS_LIMIT = 10


class AssistantCore:
    def __init__(
        self,
        dispatcher: WorkflowDispatcher,
        personalization: PersonalizationService,
        analytics: AnalyticsAggregator,
        usage: UsageTracker,
        composer: ResponseComposer,
        policy_cache: Optional[PolicyCache] = None,
        cfg: BaseConfig | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.personalization = personalization
        self.analytics = analytics
        self.usage = usage
        self.composer = composer
        self.policy_cache = policy_cache
        self.cfg = cfg or get_config()
        self.smart_log = get_smart_logger("bot_core")

    # ────────────────────────────────────────────────────────
    # Public entry points
    # ────────────────────────────────────────────────────────
    async def handle_message(self, request: AssistantRequest) -> AssistantResponse:
        """Raises QuotaExceededError before any work is done; otherwise always answers."""
        ctx = request.context
        self.smart_log.query_start(ctx.session_id, ctx.shop, request.utterance, len(request.products))

        self.usage.reserve_conversation(ctx.shop, ctx.plan)

        profile = self.personalization.get_or_create_profile(ctx.shop, ctx.session_id, ctx.customer_id)
        chat_session = self.personalization.get_or_create_chat_session(profile)
        inputs = await self._personalization_inputs(request, profile)

        try:
            response = await self.dispatcher.dispatch(request, inputs)
        except Exception as exc:  # noqa: BLE001
            log.error(f"DISPATCH_ERROR | shop={ctx.shop} | error={type(exc).__name__}: {exc}", exc_info=True)
            self.smart_log.error_occurred(ctx.session_id, type(exc).__name__, "dispatch", str(exc))
            response = self.composer.apology(ctx, ctx.locale)

        try:
            await self._record(request, profile, chat_session, response)
        except Exception as exc:  # noqa: BLE001
            log.error(f"BOOKKEEPING_ERROR | shop={ctx.shop} | error={type(exc).__name__}: {exc}", exc_info=True)

        self.smart_log.response_generated(
            ctx.session_id, response.message_type, response.confidence,
            products=len(response.recommendations), elapsed_ms=response.analytics.response_time_ms,
        )
        return response

    def track_click(self, shop: str, session_id: str, product_id: str) -> Dict[str, Any]:
        profile = self.personalization.get_or_create_profile(shop, session_id)
        profile = self.personalization.track_product_view(profile, product_id)
        self.personalization.track_interaction(profile, InteractionType.PRODUCT_CLICK, {"productId": product_id})
        self.analytics.record_product_click(shop, product_id)
        log.info(f"PRODUCT_CLICK | shop={shop} | session={session_id} | product={product_id}")
        return {"profileId": profile.id, "browsingHistory": profile.browsing_history[:RECENT_PRODUCTS_LIMIT]}

    # ────────────────────────────────────────────────────────
    # Internals
    # ────────────────────────────────────────────────────────
    async def _personalization_inputs(
        self, request: AssistantRequest, profile: UserProfile
    ) -> PersonalizationInputs:
        ctx = request.context
        preferences: UserPreferences = profile.preferences
        if ctx.user_preferences is not None:
            preferences = preferences.merged_with(ctx.user_preferences)
        recent: List[str] = unique((ctx.recent_products or []) + profile.browsing_history)

        policies = ctx.shop_policies
        if policies is None and self.policy_cache is not None:
            policies = await self.policy_cache.aget_policies(ctx.shop)

        return PersonalizationInputs(
            preferences=None if preferences.is_empty() else preferences,
            recent_products=recent[:RECENT_PRODUCTS_LIMIT],
            policies=policies,
        )

    async def _record(
        self,
        request: AssistantRequest,
        profile: UserProfile,
        chat_session: ChatSession,
        response: AssistantResponse,
    ) -> None:
        ctx = request.context
        intent = response.intent.value
        sentiment = response.sentiment.value
        shown = [r.id for r in response.recommendations]

        self.personalization.save_message(chat_session, ChatMessage(
            session_id=chat_session.id,
            role=MessageRole.USER,
            content=request.utterance,
            intent=intent,
            sentiment=sentiment,
        ))
        self.personalization.save_message(chat_session, ChatMessage(
            session_id=chat_session.id,
            role=MessageRole.ASSISTANT,
            content=response.message,
            confidence=response.confidence,
            products_shown=shown,
        ))
        self.personalization.track_interaction(profile, InteractionType.MESSAGE, {
            "intent": intent,
            "sentiment": sentiment,
            "productsShown": len(shown),
        })

        if self.cfg.ENABLE_PREFERENCE_LEARNING:
            utterances = self.personalization.recent_user_utterances(chat_session.id)
            await self.personalization.learn_preferences(profile, utterances)

        self.analytics.record_message(
            ctx.shop, response, response.analytics.response_time_ms, response.analytics.workflow_type
        )
