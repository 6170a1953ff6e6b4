# storefront_assistant/routes/health.py
"""
Simple readiness/liveness probe.

Returns HTTP 200 if Flask is running and Redis answers PING, 500 otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify
from redis.exceptions import RedisError

log = logging.getLogger(__name__)
bp = Blueprint("health", __name__)


@bp.get("/health")
def health_check() -> tuple[Dict[str, Any], int]:
    store = current_app.extensions.get("store")
    if store is None:
        return jsonify({"status": "unhealthy", "redis": "not_initialized", "service": "storefront-assistant"}), 500
    try:
        store.redis.ping()
        return jsonify({"status": "healthy", "redis": "connected", "service": "storefront-assistant"}), 200
    except RedisError as exc:
        log.warning(f"HEALTH_REDIS_PING_FAILED | error={exc}")
        return jsonify({"status": "unhealthy", "redis": "disconnected", "service": "storefront-assistant"}), 500
