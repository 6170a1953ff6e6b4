"""
Workflow dispatcher
═══════════════════
Explicit state machine over the degradation chain:

    TRY_EXTERNAL ──ok──────────────────────────────► DONE
         │
         └─ timeout / error / malformed / no URL ──► FALLBACK_PIPELINE ──► DONE

Exactly one AssistantResponse comes out of dispatch(). The external backend is a
plain HTTPS webhook (aiohttp POST, optional Bearer key) chosen per shop.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import aiohttp

from .config import BaseConfig, get_config
from .enums import ActionType, Intent, ResponseTier, Sentiment, WorkflowType
from .errors import ConfigurationError, TransientUpstreamError
from .fallback_pipeline import FallbackPipeline, PersonalizationInputs
from .models import (
    AssistantContext, AssistantRequest, AssistantResponse, RankedProduct,
    ResponseAnalytics, SuggestedAction, TierResult
)
from .response_composer import TIER_CONFIDENCE, needs_escalation
from .utils.helpers import is_valid_webhook_url, mask_webhook_url, str_list, to_float
from .utils.smart_logger import get_smart_logger

log = logging.getLogger(__name__)
smart_log = get_smart_logger("workflow_dispatcher")


class DispatchState(str, Enum):
    TRY_EXTERNAL = "TRY_EXTERNAL"
    FALLBACK_PIPELINE = "FALLBACK_PIPELINE"
    DONE = "DONE"


def _enum_or(enum_cls, raw: Any, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _workflow_confidence(raw: Any) -> float:
    """Backend confidence clamped to [0, 1]; missing or non-numeric values use the tier default."""
    default = TIER_CONFIDENCE[ResponseTier.WORKFLOW]
    if raw is None:
        return default
    value = to_float(raw, default)
    if math.isnan(value):
        return default
    return max(0.0, min(1.0, value))


def parse_workflow_response(data: Any, workflow_type: WorkflowType) -> AssistantResponse:
    """Validate and convert a backend payload. Raises TransientUpstreamError when malformed."""
    if not isinstance(data, dict):
        raise TransientUpstreamError("workflow response is not a JSON object")
    text = data.get("message")
    if not isinstance(text, str) or not text.strip():
        raise TransientUpstreamError("workflow response missing message")
    raw_recs = data.get("recommendations", [])
    if raw_recs is None:
        raw_recs = []
    if not isinstance(raw_recs, list) or not all(isinstance(r, dict) and r.get("id") is not None for r in raw_recs):
        raise TransientUpstreamError("workflow response has malformed recommendations")

    analytics = data.get("analytics") if isinstance(data.get("analytics"), dict) else {}
    intent = _enum_or(Intent, str(analytics.get("intentDetected") or "").upper(), Intent.OTHER)
    sentiment = _enum_or(Sentiment, str(data.get("sentiment") or "").lower(), Sentiment.NEUTRAL)
    actions = []
    for raw in data.get("suggestedActions") or []:
        if isinstance(raw, dict) and isinstance(raw.get("label"), str):
            actions.append(SuggestedAction(
                label=raw["label"],
                action=_enum_or(ActionType, raw.get("action"), ActionType.CUSTOM),
                data=str(raw["data"]) if raw.get("data") is not None else None,
            ))

    recommendations = [RankedProduct.from_dict(r) for r in raw_recs]
    escalate = data.get("requiresHumanEscalation")
    return AssistantResponse(
        message=text,
        message_type=str(data.get("messageType") or ResponseTier.WORKFLOW.value),
        tier=ResponseTier.WORKFLOW,
        confidence=_workflow_confidence(data.get("confidence")),
        recommendations=recommendations,
        quick_replies=str_list(data.get("quickReplies")),
        suggested_actions=actions,
        sentiment=sentiment,
        intent=intent,
        requires_human_escalation=bool(escalate) if escalate is not None else needs_escalation(intent, sentiment),
        analytics=ResponseAnalytics(
            intent_detected=intent.value,
            sub_intent=analytics.get("subIntent") if isinstance(analytics.get("subIntent"), str) else None,
            products_shown=len(recommendations),
            workflow_type=workflow_type,
        ),
    )


class WorkflowClient:
    """POSTs the enriched request to a workflow webhook."""

    def __init__(self, cfg: BaseConfig | None = None):
        self.cfg = cfg or get_config()
        self.api_key = self.cfg.WORKFLOW_API_KEY
        self.timeout = self.cfg.WORKFLOW_TIMEOUT_SECONDS

    async def post(self, url: str, payload: Dict[str, Any]) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        masked = mask_webhook_url(url)
        started = time.perf_counter()
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload, headers=headers) as resp:
                    if not 200 <= resp.status < 300:
                        body = await resp.text()
                        raise TransientUpstreamError(
                            f"workflow returned status {resp.status}: {body[:200]}"
                        )
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            log.error(f"WORKFLOW_TIMEOUT | url={masked} | timeout={self.timeout}s")
            raise TransientUpstreamError(f"workflow timed out after {self.timeout}s") from exc
        except aiohttp.ClientError as exc:
            log.error(f"WORKFLOW_CLIENT_ERROR | url={masked} | error={exc} | type={type(exc).__name__}")
            raise TransientUpstreamError(f"workflow call failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            log.error(f"WORKFLOW_BAD_JSON | url={masked} | error={exc}")
            raise TransientUpstreamError("workflow returned invalid JSON") from exc

        log.info(
            f"WORKFLOW_RESPONSE | url={masked} | "
            f"elapsed_ms={(time.perf_counter() - started) * 1000:.1f}"
        )
        return data


class WorkflowDispatcher:
    def __init__(
        self,
        client: WorkflowClient,
        pipeline: FallbackPipeline,
        cfg: BaseConfig | None = None,
    ):
        self.client = client
        self.pipeline = pipeline
        self.cfg = cfg or get_config()

    def resolve_url(self, ctx: AssistantContext) -> Tuple[str, WorkflowType]:
        if is_valid_webhook_url(ctx.workflow_url):
            return ctx.workflow_url.strip(), WorkflowType.CUSTOM
        if ctx.workflow_url:
            log.warning(f"WORKFLOW_CUSTOM_URL_INVALID | shop={ctx.shop} | url={mask_webhook_url(ctx.workflow_url)}")
        if self.cfg.WORKFLOW_WEBHOOK_URL:
            return self.cfg.WORKFLOW_WEBHOOK_URL, WorkflowType.DEFAULT
        raise ConfigurationError("no workflow URL configured")

    @staticmethod
    def build_payload(request: AssistantRequest, inputs: PersonalizationInputs) -> Dict[str, Any]:
        context = request.context.to_dict()
        if inputs.preferences is not None:
            context["userPreferences"] = inputs.preferences.to_dict()
        if inputs.recent_products:
            context["recentProducts"] = inputs.recent_products
        if inputs.policies is not None:
            context["shopPolicies"] = inputs.policies.to_dict()
        return {
            "userMessage": request.utterance,
            "sessionId": request.context.session_id,
            "products": [p.to_dict() for p in request.products],
            "context": context,
        }

    async def try_external(
        self, request: AssistantRequest, inputs: PersonalizationInputs
    ) -> TierResult[AssistantResponse]:
        tier = ResponseTier.WORKFLOW.value
        try:
            url, workflow_type = self.resolve_url(request.context)
        except ConfigurationError as exc:
            return TierResult.fail(tier, "not_configured", exc)
        try:
            data = await self.client.post(url, self.build_payload(request, inputs))
            return TierResult.success(parse_workflow_response(data, workflow_type))
        except TransientUpstreamError as exc:
            log.warning(f"WORKFLOW_FAILED | shop={request.context.shop} | url={mask_webhook_url(url)} | error={exc}")
            return TierResult.fail(tier, "upstream_error", exc)

    async def dispatch(
        self, request: AssistantRequest, inputs: Optional[PersonalizationInputs] = None
    ) -> AssistantResponse:
        inputs = inputs or PersonalizationInputs()
        session_id = request.context.session_id
        started = time.perf_counter()
        state = DispatchState.TRY_EXTERNAL
        response: Optional[AssistantResponse] = None

        while state != DispatchState.DONE:
            if state == DispatchState.TRY_EXTERNAL:
                result = await self.try_external(request, inputs)
                if result.ok:
                    response = result.value
                    smart_log.tier_decision(session_id, state.value, DispatchState.DONE.value)
                    state = DispatchState.DONE
                else:
                    smart_log.tier_decision(
                        session_id, state.value, DispatchState.FALLBACK_PIPELINE.value, result.failure.reason
                    )
                    state = DispatchState.FALLBACK_PIPELINE
            elif state == DispatchState.FALLBACK_PIPELINE:
                response = await self.pipeline.run(request, inputs)
                response.analytics.workflow_type = WorkflowType.NONE
                state = DispatchState.DONE

        response.analytics.response_time_ms = int((time.perf_counter() - started) * 1000)
        return response
