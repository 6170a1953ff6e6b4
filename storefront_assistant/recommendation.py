"""
Product ranking: semantic (embedding similarity), keyword overlap and the
personalization booster applied on top of either shortlist.

All sorts are stable so equal scores keep catalog order.
"""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .embedding_service import EmbeddingCache, cosine_similarity
from .errors import ConfigurationError, TransientUpstreamError
from .intent_config import MIN_TOKEN_LENGTH, STOPWORDS
from .models import Product, RankedProduct, TierResult, UserPreferences

log = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

RECENT_VIEW_BOOST = 10
PRICE_RANGE_BOOST = 5
COLOR_BOOST = 3
MAX_RELEVANCE = 100


def _clamp_relevance(value: float) -> int:
    return int(max(0, min(MAX_RELEVANCE, round(value))))


# ─────────────────────────────────────────────────────────────
# Semantic
# ─────────────────────────────────────────────────────────────
class SemanticRanker:
    TIER = "semantic"

    def __init__(self, cache: EmbeddingCache):
        self.cache = cache

    async def rank(
        self, shop: str, query: str, products: Sequence[Product], k: int = 6
    ) -> TierResult[List[RankedProduct]]:
        if not self.cache.available:
            return TierResult.fail(self.TIER, "embeddings_not_configured",
                                   ConfigurationError("no embedding client"))
        if not products:
            return TierResult.fail(self.TIER, "empty_catalog")

        try:
            query_vector = await self.cache.embed_query(query)
        except (ConfigurationError, TransientUpstreamError) as exc:
            log.warning(f"SEMANTIC_QUERY_EMBED_FAILED | shop={shop} | error={exc}")
            return TierResult.fail(self.TIER, "query_embedding_failed", exc)

        vectors, failed = await self.cache.ensure_many(shop, products)
        if failed:
            log.info(f"SEMANTIC_PRODUCTS_SKIPPED | shop={shop} | count={len(failed)}")

        scored: List[RankedProduct] = []
        for product in products:
            vector = vectors.get(product.id)
            if vector is None:
                continue
            try:
                similarity = cosine_similarity(query_vector, vector)
            except ValueError as exc:
                log.warning(f"SEMANTIC_DIMENSION_MISMATCH | shop={shop} | product={product.id} | error={exc}")
                continue
            scored.append(RankedProduct(
                product=product,
                relevance_score=_clamp_relevance(similarity * 100),
                similarity=similarity,
            ))

        scored.sort(key=lambda r: r.similarity, reverse=True)
        shortlist = scored[:k]
        if not shortlist:
            return TierResult.fail(self.TIER, "no_product_vectors")
        log.info(
            f"SEMANTIC_RANKED | shop={shop} | candidates={len(products)} | "
            f"returned={len(shortlist)} | top={shortlist[0].similarity:.3f}"
        )
        return TierResult.success(shortlist)


# ─────────────────────────────────────────────────────────────
# Keyword
# ─────────────────────────────────────────────────────────────
def tokenize(query: str) -> List[str]:
    seen = set()
    tokens: List[str] = []
    for token in _TOKEN_RE.findall((query or "").lower()):
        if len(token) < MIN_TOKEN_LENGTH or token in STOPWORDS or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def _variants(token: str) -> List[str]:
    """The token plus a naive singular form ('dresses' -> 'dress')."""
    if len(token) > 4 and token.endswith("es"):
        return [token, token[:-2]]
    if len(token) > 3 and token.endswith("s"):
        return [token, token[:-1]]
    return [token]


class KeywordRanker:
    TITLE_WEIGHT = 5
    DESCRIPTION_WEIGHT = 2

    def score(self, tokens: Iterable[str], product: Product) -> int:
        title = product.title.lower()
        description = product.description.lower()
        score = 0
        for token in tokens:
            forms = _variants(token)
            if any(f in title for f in forms):
                score += self.TITLE_WEIGHT
            if any(f in description for f in forms):
                score += self.DESCRIPTION_WEIGHT
        return score

    def rank(self, query: str, products: Sequence[Product], top_n: int = 6) -> List[RankedProduct]:
        tokens = tokenize(query)
        if not tokens:
            return []
        scored = [(self.score(tokens, p), p) for p in products]
        matched = [(s, p) for s, p in scored if s > 0]
        matched.sort(key=lambda pair: pair[0], reverse=True)
        return [
            RankedProduct(product=p, relevance_score=_clamp_relevance(s / 10 * 100))
            for s, p in matched[:top_n]
        ]


# ─────────────────────────────────────────────────────────────
# Personalization
# ─────────────────────────────────────────────────────────────
class PersonalizationScorer:
    """Additive, deterministic boosts from the shopper's profile."""

    def boost(
        self,
        product: Product,
        preferences: Optional[UserPreferences],
        recent_products: Sequence[str],
    ) -> int:
        boost = 0
        if product.id in recent_products:
            boost += RECENT_VIEW_BOOST
        if preferences is not None:
            if preferences.price_range and preferences.price_range.contains(product.price):
                boost += PRICE_RANGE_BOOST
            description = product.description.lower()
            for color in preferences.favorite_colors:
                if color.lower() in description:
                    boost += COLOR_BOOST
        return boost

    def apply(
        self,
        shortlist: Sequence[RankedProduct],
        preferences: Optional[UserPreferences],
        recent_products: Optional[Sequence[str]] = None,
    ) -> List[RankedProduct]:
        recent = list(recent_products or [])
        if not shortlist or ((preferences is None or preferences.is_empty()) and not recent):
            return list(shortlist)
        boosted = [
            replace(r, relevance_score=_clamp_relevance(
                r.relevance_score + self.boost(r.product, preferences, recent)))
            for r in shortlist
        ]
        boosted.sort(key=lambda r: r.relevance_score, reverse=True)
        return boosted
