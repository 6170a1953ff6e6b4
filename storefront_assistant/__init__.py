"""
Storefront Assistant Application Factory
========================================

Initialization order:
1. Redis store & health check
2. Upstream clients (Anthropic, OpenAI embeddings, workflow webhook)
3. Services wired into AssistantCore
4. Routes and JSON error handlers

Every collaborator can be injected, so tests build the app with in-memory fakes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from flask import Flask
from flask_cors import CORS

from .analytics import AnalyticsAggregator, UsageTracker
from .bot_core import AssistantCore
from .classifier import IntentClassifier
from .config import BaseConfig, get_config
from .embedding_service import EmbeddingCache, EmbeddingClient
from .fallback_pipeline import FallbackPipeline
from .llm_service import LLMService
from .personalization import PersonalizationService
from .policy_cache import PolicyCache, PolicyFetcher, ShopifyPolicyFetcher
from .recommendation import KeywordRanker, PersonalizationScorer, SemanticRanker
from .redis_manager import RedisStore
from .response_composer import ResponseComposer
from .utils.helpers import utc_now
from .workflow_dispatcher import WorkflowClient, WorkflowDispatcher

log = logging.getLogger(__name__)

__version__ = "1.0.0"


def create_app(
    config_name: Optional[str] = None,
    *,
    redis_client: Any = None,
    anthropic_client: Any = None,
    embedding_client: Optional[EmbeddingClient] = None,
    workflow_client: Optional[WorkflowClient] = None,
    policy_fetcher: Optional[PolicyFetcher] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Flask:
    cfg: BaseConfig = get_config(config_name)
    testing = bool(getattr(cfg, "TESTING", False))

    app = Flask(__name__)
    app.config.from_object(cfg)

    cors_origins_env = (cfg.CORS_ALLOW_ORIGINS or "").strip()
    allowed_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()] or ["*"]
    CORS(
        app,
        resources={r"/api/*": {
            "origins": allowed_origins,
            "methods": ["GET", "POST", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }},
        supports_credentials=False,
    )

    # ────────────────────────────────────────────────────────
    # STEP 1: Redis
    # ────────────────────────────────────────────────────────
    store = RedisStore(client=redis_client, cfg=cfg)
    if redis_client is None and not testing:
        health = store.health_check()
        if not health.get("ping_success"):
            log.error(f"INIT_REDIS_FAILED | health={health}")
            raise RuntimeError(f"Redis connection failed: {health.get('error')}")
        if not health.get("connection_healthy"):
            log.warning(f"INIT_REDIS_WARNING | ping ok but set/get check failed | health={health}")
        log.info(f"INIT_REDIS_SUCCESS | memory_usage={health['memory_info'].get('used_memory_human', 'unknown')}")

    # ────────────────────────────────────────────────────────
    # STEP 2: Upstream clients
    # ────────────────────────────────────────────────────────
    llm = LLMService(cfg=cfg, client=anthropic_client)
    embeddings = embedding_client or EmbeddingClient(cfg=cfg)
    if policy_fetcher is None and cfg.SHOPIFY_ADMIN_TOKEN:
        policy_fetcher = ShopifyPolicyFetcher(cfg)

    # ────────────────────────────────────────────────────────
    # STEP 3: Services
    # ────────────────────────────────────────────────────────
    embedding_cache = EmbeddingCache(store, embeddings, cfg=cfg)
    composer = ResponseComposer(cfg)
    pipeline = FallbackPipeline(
        classifier=IntentClassifier(llm),
        semantic=SemanticRanker(embedding_cache),
        keyword=KeywordRanker(),
        scorer=PersonalizationScorer(),
        composer=composer,
        cfg=cfg,
    )
    dispatcher = WorkflowDispatcher(workflow_client or WorkflowClient(cfg), pipeline, cfg=cfg)
    analytics = AnalyticsAggregator(store, clock=clock)
    usage = UsageTracker(store, clock=clock)
    policy_cache = PolicyCache(policy_fetcher, cfg=cfg)

    app.extensions["store"] = store
    app.extensions["embedding_cache"] = embedding_cache
    app.extensions["analytics"] = analytics
    app.extensions["usage"] = usage
    app.extensions["policy_cache"] = policy_cache
    app.extensions["assistant_core"] = AssistantCore(
        dispatcher=dispatcher,
        personalization=PersonalizationService(store, llm, cfg=cfg, clock=clock),
        analytics=analytics,
        usage=usage,
        composer=composer,
        policy_cache=policy_cache,
        cfg=cfg,
    )
    log.info(
        f"INIT_SERVICES_SUCCESS | llm={llm.configured} | embeddings={embeddings.configured} | "
        f"workflow_default={bool(cfg.WORKFLOW_WEBHOOK_URL)} | policies={policy_fetcher is not None}"
    )

    # ────────────────────────────────────────────────────────
    # STEP 4: Routes & error handlers
    # ────────────────────────────────────────────────────────
    from .routes import register_routes
    register_routes(app)

    @app.errorhandler(500)
    def handle_internal_error(error):
        log.error(f"INTERNAL_ERROR | error={error}", exc_info=True)
        return {
            "error": "Internal server error",
            "timestamp": datetime.now().isoformat(),
            "details": str(error) if app.debug else "Contact support",
        }, 500

    @app.errorhandler(404)
    def handle_not_found(error):
        return {
            "error": "Endpoint not found",
            "timestamp": datetime.now().isoformat(),
        }, 404

    log.info(f"APP_INIT_COMPLETE | extensions={sorted(app.extensions)} | version={__version__}")
    return app
