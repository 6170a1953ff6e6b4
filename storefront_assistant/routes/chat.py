# storefront_assistant/routes/chat.py
"""
Chat endpoints
==============

POST /api/assistant/chat         one shopper message → one assistant response
POST /api/assistant/track-click  a recommendation was clicked
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify, request

from ..errors import QuotaExceededError, ValidationError
from ..models import AssistantRequest

log = logging.getLogger(__name__)
bp = Blueprint("chat", __name__)


def _validation_error(exc: ValidationError) -> tuple[Response, int]:
    body: Dict[str, Any] = {"error": str(exc)}
    if exc.field:
        body["field"] = exc.field
    return jsonify(body), 400


@bp.post("/assistant/chat")
async def chat() -> tuple[Response, int]:
    data = request.get_json(silent=True)
    if data is None:
        log.warning("CHAT_INVALID_JSON | body is not JSON")
        return jsonify({"error": "Invalid JSON format"}), 400

    try:
        assistant_request = AssistantRequest.from_payload(data)
    except ValidationError as exc:
        log.warning(f"CHAT_VALIDATION_ERROR | field={exc.field} | error={exc}")
        return _validation_error(exc)

    ctx = assistant_request.context
    log.info(
        f"CHAT_REQUEST | shop={ctx.shop} | session={ctx.session_id} | "
        f"products={len(assistant_request.products)} | message='{assistant_request.utterance[:50]}'"
    )

    core = current_app.extensions["assistant_core"]
    try:
        response = await core.handle_message(assistant_request)
    except QuotaExceededError as exc:
        return jsonify({
            "error": "conversation_limit_reached",
            "message": str(exc),
            "used": exc.used,
            "limit": exc.limit,
        }), 429

    return jsonify(response.to_dict()), 200


@bp.post("/assistant/track-click")
def track_click() -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    shop = data.get("shopId") or data.get("shopDomain") or data.get("shop")
    session_id = data.get("sessionId")
    product_id = data.get("productId")
    missing = [name for name, value in (("shopId", shop), ("sessionId", session_id), ("productId", product_id))
               if not value]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    core = current_app.extensions["assistant_core"]
    result = core.track_click(str(shop), str(session_id), str(product_id))
    return jsonify({"success": True, **result}), 200
