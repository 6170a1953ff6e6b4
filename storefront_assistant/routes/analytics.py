# storefront_assistant/routes/analytics.py
from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from ..utils.helpers import to_int

bp = Blueprint("analytics", __name__)


@bp.get("/analytics/<shop>")
def analytics_overview(shop: str) -> tuple[Response, int]:
    days = to_int(request.args.get("days")) or 7
    aggregator = current_app.extensions["analytics"]
    return jsonify(aggregator.get_overview(shop, days)), 200


@bp.get("/usage/<shop>")
def conversation_usage(shop: str) -> tuple[Response, int]:
    usage = current_app.extensions["usage"].get_conversation_usage(shop, request.args.get("plan"))
    return jsonify({"shop": shop, **usage.to_dict()}), 200
