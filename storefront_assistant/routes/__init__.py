# storefront_assistant/routes/__init__.py
"""
Blueprint registration.

Each route module exposes a flask.Blueprint named **bp**. The app factory
(storefront_assistant/__init__.py) stores shared services such as `store` and
`assistant_core` in `app.extensions`, so route modules reach them through
`flask.current_app`.
"""

from __future__ import annotations

import logging

from flask import Flask

log = logging.getLogger(__name__)

API_PREFIX = "/api"


def register_routes(app: Flask) -> None:
    from .analytics import bp as analytics_bp
    from .chat import bp as chat_bp
    from .embeddings import bp as embeddings_bp
    from .health import bp as health_bp

    app.register_blueprint(chat_bp, url_prefix=API_PREFIX)
    app.register_blueprint(analytics_bp, url_prefix=API_PREFIX)
    app.register_blueprint(embeddings_bp, url_prefix=API_PREFIX)
    app.register_blueprint(health_bp, url_prefix=API_PREFIX)
    # load balancers probe the bare path
    app.register_blueprint(health_bp, name="root_health")
    log.info(f"REGISTER_ROUTES_SUCCESS | prefix={API_PREFIX} | blueprints={sorted(app.blueprints)}")
