# storefront_assistant/routes/embeddings.py
"""
Embedding maintenance for a shop's catalog.

POST   /api/embeddings/<shop>/generate   {"products": [...]} → batch report
DELETE /api/embeddings/<shop>            drop every stored vector
GET    /api/embeddings/<shop>/stats      counts and timestamps
POST   /api/embeddings/<shop>/<product_id>/similar   {"products": [...], "k": 4} → nearest stored neighbours
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from ..models import Product
from ..utils.helpers import to_int

log = logging.getLogger(__name__)
bp = Blueprint("embeddings", __name__)


@bp.post("/embeddings/<shop>/generate")
async def generate_embeddings(shop: str) -> tuple[Response, int]:
    cache = current_app.extensions["embedding_cache"]
    if not cache.available:
        return jsonify({"error": "Embedding service not configured"}), 503

    data = request.get_json(silent=True) or {}
    raw_products = data.get("products")
    if not isinstance(raw_products, list) or not raw_products:
        return jsonify({"error": "products must be a non-empty list"}), 400

    products = [Product.from_dict(p) for p in raw_products if isinstance(p, dict) and p.get("id") is not None]
    log.info(f"EMBEDDING_BATCH_REQUEST | shop={shop} | products={len(products)}")
    report = await cache.batch_generate(shop, products)
    return jsonify({"shop": shop, **report.to_dict()}), 200


@bp.delete("/embeddings/<shop>")
def clear_embeddings(shop: str) -> tuple[Response, int]:
    deleted = current_app.extensions["embedding_cache"].clear(shop)
    return jsonify({"shop": shop, "deleted": deleted}), 200


@bp.get("/embeddings/<shop>/stats")
def embedding_stats(shop: str) -> tuple[Response, int]:
    return jsonify(current_app.extensions["embedding_cache"].get_stats(shop)), 200


@bp.post("/embeddings/<shop>/<product_id>/similar")
def similar_products(shop: str, product_id: str) -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    raw_products = data.get("products")
    if not isinstance(raw_products, list):
        return jsonify({"error": "products must be a list"}), 400
    k = to_int(data.get("k")) or 4
    if k < 1:
        return jsonify({"error": "k must be positive"}), 400

    products = [Product.from_dict(p) for p in raw_products if isinstance(p, dict) and p.get("id") is not None]
    pairs = current_app.extensions["embedding_cache"].find_similar_products(shop, product_id, products, k=k)
    log.info(f"EMBEDDING_SIMILAR | shop={shop} | product={product_id} | candidates={len(products)} | found={len(pairs)}")
    return jsonify({
        "shop": shop,
        "productId": product_id,
        "similar": [
            {"id": p.id, "title": p.title, "similarity": round(score, 4)}
            for p, score in pairs
        ],
    }), 200
