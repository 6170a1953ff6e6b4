#!/usr/bin/env python3
"""
Storefront Assistant entry point.
- `gunicorn run:app` imports the module-level app.
- `python run.py` starts the Flask dev server.
Smart logging is configured once per process before the app is built.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Tuple

from dotenv import load_dotenv
from flask import request

# Config classes read the environment at import time
load_dotenv()

from storefront_assistant import create_app  # noqa: E402
from storefront_assistant.utils.smart_logger import LogLevel, configure_logging  # noqa: E402

_LOGGING_INITIALIZED = False

_STDLIB_LEVELS = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.STANDARD: logging.INFO,
    LogLevel.DETAILED: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def setup_smart_logging() -> LogLevel:
    """Resolve BOT_LOG_LEVEL and configure root handlers exactly once."""
    global _LOGGING_INITIALIZED

    desired = os.getenv("BOT_LOG_LEVEL", "STANDARD").upper()
    valid = {lvl.name for lvl in LogLevel}
    if desired not in valid:
        print(f"Warning: Invalid BOT_LOG_LEVEL '{desired}'. Valid options: {', '.join(sorted(valid))}")
        log_level = LogLevel.STANDARD
    else:
        log_level = LogLevel[desired]

    if not _LOGGING_INITIALIZED:
        if not logging.getLogger().handlers:
            configure_logging(
                level=log_level,
                format_string="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                silence_external=True,
            )
        _LOGGING_INITIALIZED = True

    return log_level


def validate_environment(strict: bool) -> None:
    """REDIS_HOST is required; LLM, embedding and workflow keys only enable optional tiers."""
    if not os.getenv("REDIS_HOST"):
        msg = "Missing required environment variable: REDIS_HOST (required for profiles, analytics and quota)"
        if strict:
            print("Error:", msg)
            sys.exit(1)
        logging.getLogger(__name__).warning(msg)

    optional = {
        "ANTHROPIC_API_KEY": "LLM intent/sentiment fallback",
        "OPENAI_API_KEY": "semantic ranking",
        "WORKFLOW_WEBHOOK_URL": "default workflow backend",
    }
    for key, feature in optional.items():
        if not os.getenv(key):
            logging.getLogger(__name__).info(f"ENV_OPTIONAL_MISSING | key={key} | disables={feature}")


def create_application(strict_env: bool = False):
    validate_environment(strict=strict_env)
    log_level = setup_smart_logging()
    app = create_app()

    if app.logger.handlers:
        app.logger.handlers.clear()
    app.logger.propagate = True
    app.logger.setLevel(_STDLIB_LEVELS.get(log_level, logging.INFO))

    @app.before_request
    def _log_request():
        app.logger.info("→ %s %s", request.method, request.path)

    return app


def _resolve_server_config() -> Tuple[str, int, bool]:
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8080"))
    flask_debug = os.getenv("FLASK_DEBUG", "").lower()
    if flask_debug in ("1", "true", "yes", "on"):
        debug = True
    elif flask_debug in ("0", "false", "no", "off"):
        debug = False
    else:
        debug = os.getenv("APP_ENV", "development").lower() == "development"
    return host, port, debug


def main() -> None:
    app = create_application(strict_env=True)
    host, port, debug = _resolve_server_config()

    print("Storefront Assistant Starting")
    print("=" * 60)
    print(f"Server:       http://{host}:{port}")
    print(f"Chat:         http://{host}:{port}/api/assistant/chat")
    print(f"Health check: http://{host}:{port}/health")
    print(f"Environment:  {os.getenv('APP_ENV', 'development')}")
    print(f"Debug mode:   {debug}")
    print("=" * 60)

    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")


# WSGI entrypoint for Gunicorn: `gunicorn run:app`
if __name__ == "__main__":
    main()
else:
    app = create_application(strict_env=False)
