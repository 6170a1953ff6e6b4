from __future__ import annotations

import asyncio
import contextlib

import pytest
from aiohttp import test_utils, web

from storefront_assistant.analytics import AnalyticsAggregator
from storefront_assistant.classifier import IntentClassifier
from storefront_assistant.enums import Intent, ResponseTier, Sentiment, WorkflowType
from storefront_assistant.errors import ConfigurationError, TransientUpstreamError
from storefront_assistant.fallback_pipeline import FallbackPipeline, PersonalizationInputs
from storefront_assistant.llm_service import LLMService
from storefront_assistant.models import AssistantContext, AssistantRequest, UserPreferences
from storefront_assistant.recommendation import KeywordRanker, PersonalizationScorer
from storefront_assistant.response_composer import ResponseComposer
from storefront_assistant.workflow_dispatcher import WorkflowClient, WorkflowDispatcher, parse_workflow_response

DEFAULT_URL = "https://workflows.example.com/webhook/default-0001"
CUSTOM_URL = "https://hooks.merchant.example/webhook/custom-0002"

GOOD_PAYLOAD = {
    "message": "These jackets are perfect for autumn.",
    "messageType": "product_recommendation",
    "recommendations": [{"id": "p2", "title": "Blue Denim Jacket", "price": "120.00", "relevanceScore": 88}],
    "quickReplies": ["Show more"],
    "suggestedActions": [{"label": "Compare", "action": "compare"}],
    "confidence": 0.82,
    "sentiment": "positive",
    "analytics": {"intentDetected": "product_search", "subIntent": "outerwear"},
}


class FakeWorkflowClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def post(self, url, payload):
        self.calls.append((url, payload))
        if self.error is not None:
            raise self.error
        return self.response


def build_dispatcher(cfg, client, default_url=""):
    cfg.WORKFLOW_WEBHOOK_URL = default_url
    pipeline = FallbackPipeline(
        classifier=IntentClassifier(LLMService(cfg=cfg)),
        semantic=None,
        keyword=KeywordRanker(),
        scorer=PersonalizationScorer(),
        composer=ResponseComposer(cfg),
        cfg=cfg,
    )
    return WorkflowDispatcher(client, pipeline, cfg)


def make_request(catalog, workflow_url=None, utterance="Show me red dresses"):
    return AssistantRequest(
        utterance=utterance,
        products=catalog,
        context=AssistantContext(shop="shop.test", session_id="s1", workflow_url=workflow_url),
    )


# ─────────────────────────────────────────────────────────────
# URL resolution
# ─────────────────────────────────────────────────────────────
def test_custom_url_wins(cfg):
    dispatcher = build_dispatcher(cfg, FakeWorkflowClient(), DEFAULT_URL)
    ctx = AssistantContext(shop="shop.test", session_id="s1", workflow_url=CUSTOM_URL)
    assert dispatcher.resolve_url(ctx) == (CUSTOM_URL, WorkflowType.CUSTOM)


@pytest.mark.parametrize("custom", [None, "", "null", "http://insecure.example/hook", "undefined"])
def test_invalid_custom_url_uses_default(cfg, custom):
    dispatcher = build_dispatcher(cfg, FakeWorkflowClient(), DEFAULT_URL)
    ctx = AssistantContext(shop="shop.test", session_id="s1", workflow_url=custom)
    assert dispatcher.resolve_url(ctx) == (DEFAULT_URL, WorkflowType.DEFAULT)


def test_no_url_at_all_raises(cfg):
    dispatcher = build_dispatcher(cfg, FakeWorkflowClient())
    with pytest.raises(ConfigurationError):
        dispatcher.resolve_url(AssistantContext(shop="shop.test", session_id="s1"))


# ─────────────────────────────────────────────────────────────
# Response parsing
# ─────────────────────────────────────────────────────────────
def test_parse_workflow_response():
    response = parse_workflow_response(GOOD_PAYLOAD, WorkflowType.CUSTOM)
    assert response.tier == ResponseTier.WORKFLOW
    assert response.message_type == "product_recommendation"
    assert response.confidence == 0.82
    assert response.intent == Intent.PRODUCT_SEARCH
    assert response.sentiment == Sentiment.POSITIVE
    assert response.recommendations[0].relevance_score == 88

    payload = response.to_dict()
    assert payload["analytics"]["workflowType"] == "custom"
    assert payload["analytics"]["subIntent"] == "outerwear"
    assert payload["suggestedActions"] == [{"label": "Compare", "action": "compare"}]


def test_parse_defaults():
    response = parse_workflow_response({"message": "Hi"}, WorkflowType.DEFAULT)
    assert response.message_type == "workflow"
    assert response.confidence == 0.9
    assert response.intent == Intent.OTHER
    assert response.recommendations == []


@pytest.mark.parametrize(
    "raw,expected",
    [(87, 1.0), (-0.3, 0.0), ("0.4", 0.4), (float("nan"), 0.9), ("high", 0.9), (None, 0.9)],
)
def test_parse_keeps_confidence_in_unit_range(raw, expected):
    response = parse_workflow_response({"message": "hi", "confidence": raw}, WorkflowType.DEFAULT)
    assert response.confidence == pytest.approx(expected)


def test_backend_confidence_cannot_inflate_daily_average(store, clock):
    aggregator = AnalyticsAggregator(store, clock=clock)
    response = parse_workflow_response({"message": "hi", "confidence": 87}, WorkflowType.DEFAULT)
    aggregator.record_message("shop.test", response, 120, WorkflowType.DEFAULT)

    daily = aggregator.get_daily("shop.test", clock().date().isoformat())
    assert daily.avg_confidence == 1.0


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"message": ""},
        {"messageType": "text"},
        {"message": "ok", "recommendations": "p1"},
        {"message": "ok", "recommendations": [{"title": "no id"}]},
    ],
)
def test_parse_rejects_malformed(payload):
    with pytest.raises(TransientUpstreamError):
        parse_workflow_response(payload, WorkflowType.DEFAULT)


# ─────────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_dispatch_uses_external_response(cfg, catalog):
    client = FakeWorkflowClient(response=GOOD_PAYLOAD)
    dispatcher = build_dispatcher(cfg, client, DEFAULT_URL)
    inputs = PersonalizationInputs(preferences=UserPreferences(favorite_colors=["red"]), recent_products=["p3"])

    response = await dispatcher.dispatch(make_request(catalog, CUSTOM_URL), inputs)

    assert response.tier == ResponseTier.WORKFLOW
    assert response.analytics.workflow_type == WorkflowType.CUSTOM
    assert response.analytics.response_time_ms >= 0

    url, payload = client.calls[0]
    assert url == CUSTOM_URL
    assert payload["userMessage"] == "Show me red dresses"
    assert payload["sessionId"] == "s1"
    assert len(payload["products"]) == 5
    assert payload["context"]["recentProducts"] == ["p3"]
    assert payload["context"]["userPreferences"]["favoriteColors"] == ["red"]


@pytest.mark.asyncio
async def test_upstream_timeout_falls_back(cfg, catalog):
    client = FakeWorkflowClient(error=TransientUpstreamError("workflow timed out after 20s"))
    response = await build_dispatcher(cfg, client, DEFAULT_URL).dispatch(make_request(catalog))

    assert len(client.calls) == 1
    assert response.tier == ResponseTier.KEYWORD
    assert response.analytics.workflow_type == WorkflowType.NONE


@pytest.mark.asyncio
async def test_malformed_payload_falls_back(cfg, catalog):
    client = FakeWorkflowClient(response={"recommendations": []})
    response = await build_dispatcher(cfg, client, DEFAULT_URL).dispatch(make_request(catalog))
    assert response.tier == ResponseTier.KEYWORD


@pytest.mark.asyncio
async def test_no_url_skips_external_call(cfg, catalog):
    client = FakeWorkflowClient(response=GOOD_PAYLOAD)
    response = await build_dispatcher(cfg, client).dispatch(make_request(catalog))
    assert client.calls == []
    assert response.tier == ResponseTier.KEYWORD
    assert response.to_dict()["analytics"]["workflowType"] == "none"


@pytest.mark.asyncio
async def test_fallback_error_still_returns_a_response(cfg, catalog):
    class Broken:
        async def classify(self, text, locale_hint=None):
            raise ValueError("boom")

    dispatcher = build_dispatcher(cfg, FakeWorkflowClient())
    dispatcher.pipeline.classifier = Broken()
    response = await dispatcher.dispatch(make_request(catalog))
    assert response.tier == ResponseTier.APOLOGY
    assert response.message


# ─────────────────────────────────────────────────────────────
# WorkflowClient over HTTP
# ─────────────────────────────────────────────────────────────
@contextlib.asynccontextmanager
async def webhook_server(handler):
    app = web.Application()
    app.router.add_post("/webhook/hook-0001", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/webhook/hook-0001"))
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_client_posts_json_with_bearer_key(cfg):
    seen = {}

    async def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = await request.json()
        return web.json_response(GOOD_PAYLOAD)

    cfg.WORKFLOW_API_KEY = "wf-secret"
    async with webhook_server(handler) as url:
        data = await WorkflowClient(cfg).post(url, {"userMessage": "hi"})

    assert data == GOOD_PAYLOAD
    assert seen == {"auth": "Bearer wf-secret", "body": {"userMessage": "hi"}}


@pytest.mark.asyncio
async def test_client_timeout_is_transient(cfg):
    async def handler(request):
        await asyncio.sleep(0.5)
        return web.json_response(GOOD_PAYLOAD)

    cfg.WORKFLOW_TIMEOUT_SECONDS = 0.05
    async with webhook_server(handler) as url:
        with pytest.raises(TransientUpstreamError, match="timed out"):
            await WorkflowClient(cfg).post(url, {})


@pytest.mark.asyncio
async def test_client_error_status_is_transient(cfg):
    async def handler(request):
        return web.Response(status=500, text="workflow crashed")

    async with webhook_server(handler) as url:
        with pytest.raises(TransientUpstreamError, match="status 500"):
            await WorkflowClient(cfg).post(url, {})


@pytest.mark.asyncio
async def test_client_invalid_json_is_transient(cfg):
    async def handler(request):
        return web.Response(text="<html>gateway</html>", content_type="application/json")

    async with webhook_server(handler) as url:
        with pytest.raises(TransientUpstreamError, match="invalid JSON"):
            await WorkflowClient(cfg).post(url, {})


@pytest.mark.asyncio
async def test_slow_backend_falls_back_to_keyword_tier(cfg, catalog):
    async def handler(request):
        await asyncio.sleep(0.5)
        return web.json_response(GOOD_PAYLOAD)

    cfg.WORKFLOW_TIMEOUT_SECONDS = 0.05
    async with webhook_server(handler) as url:
        dispatcher = build_dispatcher(cfg, WorkflowClient(cfg), default_url=url)
        response = await dispatcher.dispatch(make_request(catalog))

    assert response.tier == ResponseTier.KEYWORD
    assert [r.id for r in response.recommendations] == ["p1", "p3"]
    assert response.analytics.workflow_type == WorkflowType.NONE
