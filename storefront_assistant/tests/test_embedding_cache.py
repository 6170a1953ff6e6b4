from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest

from storefront_assistant import embedding_service as embedding_module
from storefront_assistant.embedding_service import (
    EmbeddingCache, EmbeddingClient, cosine_similarity, prepare_product_text
)
from storefront_assistant.errors import ConfigurationError, TransientUpstreamError
from storefront_assistant.models import Product

from conftest import FakeEmbeddingClient


@pytest.fixture
def client():
    return FakeEmbeddingClient()


@pytest.fixture
def cache(store, client, cfg):
    return EmbeddingCache(store, client, cfg=cfg)


def test_cosine_similarity_basics():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([0, 0], [1, 1]) == 0.0


def test_cosine_similarity_rejects_dimension_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1, 0, 0], [1, 0])


def test_prepare_product_text_strips_html_and_truncates():
    product = Product(id="x", title="Silk  Shirt", description="<p>Soft <b>silk</b></p>\n\nshirt")
    assert prepare_product_text(product) == "Silk Shirt | Soft silk shirt"
    assert len(prepare_product_text(Product(id="y", title="a" * 9000))) == 8000
    assert prepare_product_text(Product(id="z", title="Plain")) == "Plain"


@pytest.mark.asyncio
async def test_ensure_persists_and_reuses(cache, client, catalog, fake_redis):
    first = await cache.ensure("shop.test", catalog[0])
    second = await cache.ensure("shop.test", catalog[0])
    assert first == second
    assert len(client.calls) == 1
    stored = json.loads(fake_redis.get("embedding:shop.test:p1"))
    assert stored["model"] == "fake-embed-v1"
    assert stored["product_id"] == "p1"


@pytest.mark.asyncio
async def test_vector_from_other_model_is_a_miss(store, cfg, catalog):
    old = EmbeddingCache(store, FakeEmbeddingClient(model="old-model"), cfg=cfg)
    await old.ensure("shop.test", catalog[0])

    new_client = FakeEmbeddingClient(model="new-model")
    new = EmbeddingCache(store, new_client, cfg=cfg)
    assert new.get("shop.test", "p1") is None
    await new.ensure("shop.test", catalog[0])
    assert len(new_client.calls) == 1
    assert new.get("shop.test", "p1") is not None


def test_unreadable_entry_is_dropped(cache, fake_redis):
    fake_redis.set("embedding:shop.test:p1", "{not json")
    assert cache.get("shop.test", "p1") is None
    assert fake_redis.get("embedding:shop.test:p1") is None


@pytest.mark.asyncio
async def test_ensure_many_skips_failures(store, cfg, catalog):
    cache = EmbeddingCache(store, FakeEmbeddingClient(fail_on=("Leather",)), cfg=cfg)
    vectors, failed = await cache.ensure_many("shop.test", catalog)
    assert failed == ["p4"]
    assert set(vectors) == {"p1", "p2", "p3", "p5"}


@pytest.mark.asyncio
async def test_batch_generate_reports_counts(store, cfg, catalog):
    cache = EmbeddingCache(store, FakeEmbeddingClient(fail_on=("Wool",)), cfg=cfg)
    await cache.ensure("shop.test", catalog[0])

    report = await cache.batch_generate("shop.test", catalog)
    assert report.skipped == 1
    assert report.generated == 3
    assert report.failed == 1
    assert report.to_dict()["failedIds"] == ["p5"]


@pytest.mark.asyncio
async def test_stats_and_clear(cache, catalog):
    await cache.batch_generate("shop.test", catalog[:3])
    await cache.ensure("other.test", catalog[0])

    stats = cache.get_stats("shop.test")
    assert stats["totalEmbeddings"] == 3
    assert stats["currentModel"] == 3
    assert stats["oldestEmbedding"] <= stats["newestEmbedding"]

    assert cache.clear("shop.test") == 3
    assert cache.get_stats("shop.test")["totalEmbeddings"] == 0
    assert cache.get("other.test", "p1") is not None


@pytest.mark.asyncio
async def test_find_similar_products_excludes_anchor(cache, catalog):
    await cache.batch_generate("shop.test", catalog)
    similar = cache.find_similar_products("shop.test", "p1", catalog, k=2)
    ids = [p.id for p, _ in similar]
    assert "p1" not in ids
    assert len(ids) == 2
    assert similar[0][1] >= similar[1][1]


def test_find_similar_without_anchor_vector(cache, catalog):
    assert cache.find_similar_products("shop.test", "p1", catalog) == []


# ─────────────────────────────────────────────────────────────
# OpenAI client
# ─────────────────────────────────────────────────────────────
class StubOpenAI:
    def __init__(self, create):
        self.embeddings = SimpleNamespace(create=create)


@pytest.fixture
def opened_clients(monkeypatch):
    opened = []

    class RecordingOpenAI(StubOpenAI):
        def __init__(self, **kwargs):
            super().__init__(self._create)
            self.kwargs = kwargs
            self.closed = False
            self.loop = None
            opened.append(self)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            self.closed = True

        async def _create(self, model, input):
            self.loop = asyncio.get_running_loop()
            return SimpleNamespace(data=[SimpleNamespace(embedding=[0.25, 0.5])])

    monkeypatch.setattr(embedding_module.openai, "AsyncOpenAI", RecordingOpenAI)
    return opened


def test_each_embed_call_opens_and_closes_its_own_client(cfg, opened_clients):
    cfg.OPENAI_API_KEY = "sk-test"
    client = EmbeddingClient(cfg)

    assert asyncio.run(client.embed("red dress")) == [0.25, 0.5]
    assert asyncio.run(client.embed("blue jacket")) == [0.25, 0.5]

    assert len(opened_clients) == 2
    assert all(c.closed for c in opened_clients)
    assert opened_clients[0].loop is not opened_clients[1].loop
    assert opened_clients[0].kwargs["api_key"] == "sk-test"
    assert opened_clients[0].kwargs["max_retries"] == 0


@pytest.mark.asyncio
async def test_embed_without_key_is_a_configuration_error(cfg):
    client = EmbeddingClient(cfg)
    assert not client.configured
    with pytest.raises(ConfigurationError):
        await client.embed("red dress")


@pytest.mark.asyncio
async def test_embed_timeout_is_transient(cfg):
    async def slow(model, input):
        await asyncio.sleep(1)

    cfg.EMBEDDING_TIMEOUT_SECONDS = 0.05
    with pytest.raises(TransientUpstreamError, match="embedding call failed"):
        await EmbeddingClient(cfg, client=StubOpenAI(slow)).embed("red dress")


@pytest.mark.asyncio
async def test_embed_empty_payload_is_transient(cfg):
    async def empty(model, input):
        return SimpleNamespace(data=[])

    with pytest.raises(TransientUpstreamError, match="malformed embedding payload"):
        await EmbeddingClient(cfg, client=StubOpenAI(empty)).embed("red dress")
