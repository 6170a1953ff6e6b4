from __future__ import annotations

import pytest

from storefront_assistant import create_app
from storefront_assistant.models import ShopPolicies

from conftest import FakeEmbeddingClient, make_fake_redis

RETURN_POLICY = "Items can be returned within 30 days of delivery for a full refund, unworn and with tags."

PRODUCTS = [
    {"id": "p1", "title": "Red Summer Dress", "handle": "red-summer-dress",
     "description": "Light cotton dress in bright red", "price": "79.00", "inventory": 3},
    {"id": "p2", "title": "Blue Denim Jacket", "handle": "blue-denim-jacket",
     "description": "Classic jacket with a relaxed cut", "price": "120.00", "compareAtPrice": "150.00"},
    {"id": "p3", "title": "Evening Gown", "handle": "evening-gown",
     "description": "Floor length dress for formal events, deep red satin", "price": "95.00"},
]


@pytest.fixture
def redis_fake():
    return make_fake_redis()


@pytest.fixture
def app(redis_fake, clock):
    app = create_app(
        "testing",
        redis_client=redis_fake,
        embedding_client=FakeEmbeddingClient(configured=False),
        policy_fetcher=lambda shop: ShopPolicies(returns=RETURN_POLICY) if shop == "policies.test" else None,
        clock=clock,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def chat_payload(message="Show me red dresses", shop="shop.test", **context):
    return {
        "message": message,
        "products": PRODUCTS,
        "context": {"shopId": shop, "sessionId": "sess-1", "locale": "en", **context},
    }


# ─────────────────────────────────────────────────────────────
# Chat
# ─────────────────────────────────────────────────────────────
def test_chat_returns_fallback_response(client):
    resp = client.post("/api/assistant/chat", json=chat_payload())
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["messageType"] == "fallback_keyword"
    assert body["confidence"] == 0.65
    assert [r["id"] for r in body["recommendations"]] == ["p1", "p3"]
    assert body["recommendations"][0]["url"] == "https://shop.test/products/red-summer-dress"
    assert body["recommendations"][0]["urgencyMessage"] == "Only 3 left!"
    assert body["analytics"]["workflowType"] == "none"
    assert body["analytics"]["productsShown"] == 2
    assert body["requiresHumanEscalation"] is False


def test_chat_records_history_usage_and_analytics(client, app):
    client.post("/api/assistant/chat", json=chat_payload())

    usage = client.get("/api/usage/shop.test").get_json()
    assert usage["used"] == 1
    assert usage["plan"] == "STARTER"

    overview = client.get("/api/analytics/shop.test?days=7").get_json()
    assert overview["totalMessages"] == 1
    assert overview["intents"] == {"PRODUCT_SEARCH": 1}

    core = app.extensions["assistant_core"]
    profile = core.personalization.get_profile("shop.test", "sess-1")
    ctx = core.personalization.get_personalization_context("shop.test", "sess-1")
    assert profile is not None
    assert [m.role.value for m in ctx["recent_messages"]] == ["user", "assistant"]


def test_chat_uses_clicked_products(client):
    click = client.post("/api/assistant/track-click",
                        json={"shopId": "shop.test", "sessionId": "sess-1", "productId": "p3"})
    assert click.status_code == 200
    assert click.get_json()["browsingHistory"] == ["p3"]

    body = client.post("/api/assistant/chat", json=chat_payload()).get_json()
    scores = {r["id"]: r["relevanceScore"] for r in body["recommendations"]}
    assert scores == {"p1": 100, "p3": 50}


def test_chat_answers_from_fetched_policies(client):
    body = client.post("/api/assistant/chat", json=chat_payload("What's your return policy", shop="policies.test")).get_json()
    assert body["messageType"] == "fallback_policy"
    assert RETURN_POLICY in body["message"]


def test_chat_prefers_request_policies(client):
    payload = chat_payload("Do you offer free shipping?",
                           shopPolicies={"shipping": "Orders leave our warehouse within two business days of payment."})
    body = client.post("/api/assistant/chat", json=payload).get_json()
    assert body["messageType"] == "fallback_policy"
    assert "two business days" in body["message"]


def test_chat_rejects_invalid_json(client):
    resp = client.post("/api/assistant/chat", data="not json", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid JSON format"}


@pytest.mark.parametrize(
    "payload,field",
    [
        ({"context": {"shopId": "shop.test"}}, "message"),
        ({"message": "   ", "context": {"shopId": "shop.test"}}, "message"),
        ({"message": "hi"}, "context"),
        ({"message": "hi", "context": {"sessionId": "x"}}, "shopId"),
        ({"message": "hi", "context": {"shopId": "shop.test"}, "products": "p1"}, "products"),
    ],
)
def test_chat_validation_errors(client, payload, field):
    resp = client.post("/api/assistant/chat", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["field"] == field


def test_chat_quota_exceeded(client, redis_fake, clock):
    redis_fake.zadd("usage:shop.test", {f"seed-{i}": clock().timestamp() for i in range(1000)})
    resp = client.post("/api/assistant/chat", json=chat_payload())
    assert resp.status_code == 429
    body = resp.get_json()
    assert body["error"] == "conversation_limit_reached"
    assert body["used"] == 1000
    assert body["limit"] == 1000


def test_unlimited_plan_is_not_blocked(client, redis_fake, clock):
    redis_fake.zadd("usage:shop.test", {f"seed-{i}": clock().timestamp() for i in range(1000)})
    resp = client.post("/api/assistant/chat", json=chat_payload(plan="PROFESSIONAL"))
    assert resp.status_code == 200


def test_track_click_requires_fields(client):
    resp = client.post("/api/assistant/track-click", json={"shopId": "shop.test"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing required fields: sessionId, productId"


# ─────────────────────────────────────────────────────────────
# Embeddings maintenance
# ─────────────────────────────────────────────────────────────
def test_generate_embeddings_requires_client(client):
    resp = client.post("/api/embeddings/shop.test/generate", json={"products": PRODUCTS})
    assert resp.status_code == 503


def test_embedding_lifecycle(redis_fake, clock):
    app = create_app("testing", redis_client=redis_fake, embedding_client=FakeEmbeddingClient(), clock=clock)
    client = app.test_client()

    assert client.post("/api/embeddings/shop.test/generate", json={"products": []}).status_code == 400

    report = client.post("/api/embeddings/shop.test/generate", json={"products": PRODUCTS}).get_json()
    assert report["shop"] == "shop.test"
    assert report["generated"] == 3

    stats = client.get("/api/embeddings/shop.test/stats").get_json()
    assert stats["totalEmbeddings"] == 3

    similar = client.post("/api/embeddings/shop.test/p1/similar", json={"products": PRODUCTS, "k": 1}).get_json()
    assert similar["productId"] == "p1"
    assert [s["id"] for s in similar["similar"]] == ["p3"]
    assert client.post("/api/embeddings/shop.test/p1/similar", json={}).status_code == 400

    assert client.delete("/api/embeddings/shop.test").get_json() == {"shop": "shop.test", "deleted": 3}


def test_chat_with_embeddings_uses_semantic_tier(redis_fake, clock):
    app = create_app("testing", redis_client=redis_fake, embedding_client=FakeEmbeddingClient(), clock=clock)
    body = app.test_client().post("/api/assistant/chat", json=chat_payload()).get_json()
    assert body["messageType"] == "fallback_semantic"
    assert 0.7 <= body["confidence"] <= 0.95


# ─────────────────────────────────────────────────────────────
# Misc
# ─────────────────────────────────────────────────────────────
@pytest.mark.parametrize("path", ["/health", "/api/health"])
def test_health(client, path):
    resp = client.get(path)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "healthy"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Endpoint not found"


def test_usage_for_custom_plan(client):
    body = client.get("/api/usage/shop.test?plan=BYOK").get_json()
    assert body["limit"] is None
    assert body["remaining"] is None
