"""
Product embedding cache
=======================

Vectors are stored per (shop, product_id) together with the model that produced them.
A stored vector from another model is a miss, so vectors from different models are
never compared. Generation uses the OpenAI embeddings endpoint.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import openai

from .config import BaseConfig, get_config
from .errors import ConfigurationError, DataError, TransientUpstreamError
from .models import Product, ProductEmbedding
from .redis_manager import RedisStore
from .utils.helpers import iso_now, normalize_whitespace, parse_iso, strip_html

log = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero norm."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"dimension mismatch: {va.shape} vs {vb.shape}")
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def prepare_product_text(product: Product, max_chars: int = 8000) -> str:
    text = f"{product.title} | {product.description}" if product.description else product.title
    return normalize_whitespace(strip_html(text))[:max_chars]


class EmbeddingClient:
    """Thin wrapper over the OpenAI embeddings endpoint with a bounded timeout.

    Without an injected client a fresh AsyncOpenAI is opened and closed around every
    call: async Flask views each run on their own short-lived event loop, and pooled
    connections must not outlive the loop that opened them.
    """

    def __init__(self, cfg: BaseConfig | None = None, client: openai.AsyncOpenAI | None = None):
        self.cfg = cfg or get_config()
        self.model = self.cfg.EMBEDDING_MODEL
        self.api_key = self.cfg.OPENAI_API_KEY or ""
        self._client = client
        if client is None and not self.api_key:
            log.info("EMBEDDINGS_DISABLED | OPENAI_API_KEY not set, semantic ranking off")

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _open(self):
        if self._client is not None:
            return contextlib.nullcontext(self._client)
        return openai.AsyncOpenAI(
            api_key=self.api_key,
            timeout=self.cfg.EMBEDDING_TIMEOUT_SECONDS,
            max_retries=0,
        )

    async def embed(self, text: str) -> List[float]:
        if not self.configured:
            raise ConfigurationError("OPENAI_API_KEY missing")
        try:
            async with self._open() as client:
                resp = await asyncio.wait_for(
                    client.embeddings.create(model=self.model, input=text),
                    timeout=self.cfg.EMBEDDING_TIMEOUT_SECONDS,
                )
        except (asyncio.TimeoutError, openai.OpenAIError) as exc:
            raise TransientUpstreamError(f"embedding call failed: {type(exc).__name__}: {exc}") from exc
        try:
            return [float(x) for x in resp.data[0].embedding]
        except (AttributeError, IndexError, TypeError, ValueError) as exc:
            raise TransientUpstreamError(f"malformed embedding payload: {exc}") from exc


@dataclass
class BatchReport:
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "skipped": self.skipped,
            "failed": self.failed,
            "failedIds": self.failed_ids,
        }


class EmbeddingCache:
    def __init__(self, store: RedisStore, client: EmbeddingClient, cfg: BaseConfig | None = None):
        self.store = store
        self.client = client
        self.cfg = cfg or get_config()

    @property
    def model(self) -> str:
        return self.client.model

    @property
    def available(self) -> bool:
        return self.client.configured

    def _load(self, shop: str, product_id: str) -> Optional[ProductEmbedding]:
        raw = self.store.get_embedding(shop, product_id)
        if raw is None:
            return None
        try:
            return ProductEmbedding.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning(f"EMBEDDING_UNREADABLE | shop={shop} | product={product_id} | error={DataError(str(exc))}")
            return None

    def get(self, shop: str, product_id: str) -> Optional[List[float]]:
        record = self._load(shop, product_id)
        if record is None or record.model != self.model:
            return None
        return record.vector

    async def embed_query(self, text: str) -> List[float]:
        return await self.client.embed(normalize_whitespace(text)[: self.cfg.EMBEDDING_MAX_CHARS])

    async def ensure(self, shop: str, product: Product) -> List[float]:
        """Cached vector, or a freshly generated and persisted one. Raises on upstream failure."""
        cached = self.get(shop, product.id)
        if cached is not None:
            return cached
        vector = await self.client.embed(prepare_product_text(product, self.cfg.EMBEDDING_MAX_CHARS))
        previous = self._load(shop, product.id)
        record = ProductEmbedding(
            shop=shop,
            product_id=product.id,
            vector=vector,
            model=self.model,
            created_at=previous.created_at if previous else iso_now(),
            updated_at=iso_now(),
        )
        self.store.save_embedding(shop, product.id, record.to_dict())
        log.debug(f"EMBEDDING_GENERATED | shop={shop} | product={product.id} | dims={len(vector)}")
        return vector

    async def ensure_many(
        self, shop: str, products: Sequence[Product]
    ) -> Tuple[Dict[str, List[float]], List[str]]:
        """Vectors for every product that could be embedded, plus the ids that failed.

        Cache hits cost nothing; consecutive network calls are spaced by
        EMBEDDING_BATCH_DELAY_SECONDS.
        """
        vectors: Dict[str, List[float]] = {}
        failed: List[str] = []
        called_upstream = False
        for product in products:
            cached = self.get(shop, product.id)
            if cached is not None:
                vectors[product.id] = cached
                continue
            if called_upstream and self.cfg.EMBEDDING_BATCH_DELAY_SECONDS > 0:
                await asyncio.sleep(self.cfg.EMBEDDING_BATCH_DELAY_SECONDS)
            called_upstream = True
            try:
                vectors[product.id] = await self.ensure(shop, product)
            except (ConfigurationError, TransientUpstreamError) as exc:
                log.warning(f"EMBEDDING_SKIPPED | shop={shop} | product={product.id} | error={exc}")
                failed.append(product.id)
        return vectors, failed

    async def batch_generate(self, shop: str, products: Sequence[Product]) -> BatchReport:
        report = BatchReport()
        to_generate = []
        for product in products:
            if self.get(shop, product.id) is not None:
                report.skipped += 1
            else:
                to_generate.append(product)
        vectors, failed = await self.ensure_many(shop, to_generate)
        report.generated = len(vectors)
        report.failed = len(failed)
        report.failed_ids = failed
        log.info(
            f"EMBEDDING_BATCH_COMPLETE | shop={shop} | generated={report.generated} | "
            f"skipped={report.skipped} | failed={report.failed}"
        )
        return report

    def clear(self, shop: str) -> int:
        return self.store.delete_embeddings(shop)

    def get_stats(self, shop: str) -> Dict[str, Any]:
        records = self.store.list_embeddings(shop)
        stamps = [ts for ts in (parse_iso(r.get("updated_at")) for r in records) if ts is not None]
        return {
            "shop": shop,
            "totalEmbeddings": len(records),
            "currentModel": sum(1 for r in records if r.get("model") == self.model),
            "oldestEmbedding": min(stamps).isoformat() if stamps else None,
            "newestEmbedding": max(stamps).isoformat() if stamps else None,
        }

    def find_similar_products(
        self, shop: str, product_id: str, products: Sequence[Product], k: int = 4
    ) -> List[Tuple[Product, float]]:
        """Neighbours of a product using stored vectors only; nothing is generated."""
        anchor = self.get(shop, product_id)
        if anchor is None:
            return []
        scored: List[Tuple[Product, float]] = []
        for product in products:
            if product.id == product_id:
                continue
            vector = self.get(shop, product.id)
            if vector is None or len(vector) != len(anchor):
                continue
            scored.append((product, cosine_similarity(anchor, vector)))
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:k]
