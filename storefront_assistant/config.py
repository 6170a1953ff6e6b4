"""
Configuration for the storefront assistant.
Plain class attributes read from the environment, one subclass per APP_ENV.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    JSON_SORT_KEYS: bool = False
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "")

    # Redis
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB: int = int(os.getenv("REDIS_DB", 0))
    REDIS_DECODE_RESPONSES: bool = True

    # Anthropic (intent / sentiment / preference extraction)
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "claude-3-5-sonnet-20241022")
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "300"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "5"))

    # OpenAI embeddings
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_TIMEOUT_SECONDS: float = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "5"))
    EMBEDDING_BATCH_DELAY_SECONDS: float = float(os.getenv("EMBEDDING_BATCH_DELAY_SECONDS", "0.1"))
    EMBEDDING_MAX_CHARS: int = int(os.getenv("EMBEDDING_MAX_CHARS", "8000"))

    # External workflow backend
    WORKFLOW_WEBHOOK_URL: str = os.getenv("WORKFLOW_WEBHOOK_URL", "").strip()
    WORKFLOW_API_KEY: str = os.getenv("WORKFLOW_API_KEY", "")
    WORKFLOW_TIMEOUT_SECONDS: float = float(os.getenv("WORKFLOW_TIMEOUT_SECONDS", "20"))

    # Shop policies
    POLICY_CACHE_TTL_SECONDS: int = int(os.getenv("POLICY_CACHE_TTL_SECONDS", "3600"))
    POLICY_STALE_TTL_SECONDS: int = int(os.getenv("POLICY_STALE_TTL_SECONDS", "86400"))
    POLICY_FETCH_TIMEOUT_SECONDS: int = int(os.getenv("POLICY_FETCH_TIMEOUT_SECONDS", "10"))
    SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2024-10")
    SHOPIFY_ADMIN_TOKEN: str = os.getenv("SHOPIFY_ADMIN_TOKEN", "")

    # Profiles / sessions
    SESSION_REUSE_SECONDS: int = int(os.getenv("SESSION_REUSE_SECONDS", "3600"))
    BROWSING_HISTORY_LIMIT: int = int(os.getenv("BROWSING_HISTORY_LIMIT", "50"))
    INTERACTION_LIMIT: int = int(os.getenv("INTERACTION_LIMIT", "100"))
    ENABLE_PREFERENCE_LEARNING: bool = os.getenv("ENABLE_PREFERENCE_LEARNING", "true").lower() in _TRUTHY

    # Ranking
    SEMANTIC_TOP_K: int = int(os.getenv("SEMANTIC_TOP_K", "6"))
    KEYWORD_TOP_N: int = int(os.getenv("KEYWORD_TOP_N", "6"))
    FEATURED_COUNT: int = int(os.getenv("FEATURED_COUNT", "3"))
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


class TestingConfig(BaseConfig):
    TESTING: bool = True
    REDIS_DB: int = 15
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    WORKFLOW_WEBHOOK_URL: str = ""
    SHOPIFY_ADMIN_TOKEN: str = ""
    EMBEDDING_BATCH_DELAY_SECONDS: float = 0.0


def get_config(env: str | None = None) -> BaseConfig:
    """Get configuration instance for `env`, defaulting to APP_ENV."""
    env = (env or os.getenv("APP_ENV", os.getenv("FLASK_ENV", "development"))).lower()
    mapping = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = mapping.get(env, DevelopmentConfig)
    cfg = config_class()

    log = logging.getLogger(__name__)
    if not hasattr(get_config, "_logged_startup"):
        log.info(f"⚙️ CONFIG_STARTUP | env={env} | config_class={config_class.__name__}")
        log.info(
            f"🤖 LLM_CONFIG | model={cfg.LLM_MODEL} | timeout={cfg.LLM_TIMEOUT_SECONDS}s | "
            f"configured={bool(cfg.ANTHROPIC_API_KEY)}"
        )
        log.info(
            f"🧮 EMBEDDING_CONFIG | model={cfg.EMBEDDING_MODEL} | timeout={cfg.EMBEDDING_TIMEOUT_SECONDS}s | "
            f"configured={bool(cfg.OPENAI_API_KEY)}"
        )
        log.info(
            f"🔀 WORKFLOW_CONFIG | configured={bool(cfg.WORKFLOW_WEBHOOK_URL)} | "
            f"timeout={cfg.WORKFLOW_TIMEOUT_SECONDS}s | has_api_key={bool(cfg.WORKFLOW_API_KEY)}"
        )
        log.info(f"💾 REDIS_CONFIG | host={cfg.REDIS_HOST} | port={cfg.REDIS_PORT} | db={cfg.REDIS_DB}")
        get_config._logged_startup = True

    return cfg
