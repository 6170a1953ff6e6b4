# storefront_assistant/utils/smart_logger.py
"""
Smart, modular logging for the assistant pipeline.
Provides clean, contextual logs with configurable verbosity levels.
"""

import logging
import os
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    MINIMAL = 1      # Only request start/finish and errors
    STANDARD = 2     # Tier decisions and classification
    DETAILED = 3     # Timings and sizes
    DEBUG = 4        # Everything including upstream calls


class SmartLogger:
    def __init__(self, name: str, level: LogLevel = LogLevel.STANDARD):
        self.logger = logging.getLogger(name)
        self.level = level
        self._request_contexts: Dict[str, str] = {}

    def set_level(self, level: LogLevel):
        """Change logging verbosity at runtime"""
        self.level = level

    def _should_log(self, required_level: LogLevel) -> bool:
        return self.level.value >= required_level.value

    def _format_request_id(self, session_id: str) -> str:
        timestamp = datetime.now().strftime('%H%M%S')
        return f"{session_id[-6:]}_{timestamp}"

    def _clean_log(self, level: str, emoji: str, category: str, message: str, **kwargs):
        details = " | ".join([f"{k}={v}" for k, v in kwargs.items() if v is not None])
        if details:
            full_message = f"{emoji} {category} | {message} | {details}"
        else:
            full_message = f"{emoji} {category} | {message}"
        getattr(self.logger, level.lower())(full_message)

    # ═══════════════════════════════════════════════════════════
    # FLOW EVENTS
    # ═══════════════════════════════════════════════════════════

    def query_start(self, session_id: str, shop: str, query: str, product_count: int):
        if not self._should_log(LogLevel.MINIMAL):
            return
        req_id = self._format_request_id(session_id)
        self._request_contexts[session_id] = req_id
        query_preview = query[:50] + "..." if len(query) > 50 else query
        self._clean_log("info", "🚀", "QUERY_START", f"'{query_preview}'",
                        req=req_id, shop=shop, products=product_count)

    def tier_decision(self, session_id: str, state: str, outcome: str, reason: Optional[str] = None):
        """Log a dispatcher state transition"""
        if not self._should_log(LogLevel.STANDARD):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        self._clean_log("info", "🎯", "TIER", f"{state}→{outcome}", req=req_id, reason=reason)

    def intent_classified(self, session_id: str, intent: str, sentiment: str, source: str):
        if not self._should_log(LogLevel.STANDARD):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        self._clean_log("info", "🧠", "INTENT", intent, req=req_id, sentiment=sentiment, source=source)

    def response_generated(self, session_id: str, message_type: str, confidence: float,
                           products: int = 0, elapsed_ms: Optional[int] = None):
        if not self._should_log(LogLevel.MINIMAL):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        self._clean_log("info", "✅", "RESPONSE", message_type, req=req_id,
                        confidence=f"{confidence:.2f}", products=products,
                        time=f"{elapsed_ms}ms" if elapsed_ms is not None else None)
        self._request_contexts.pop(session_id, None)

    def performance_metric(self, session_id: str, operation: str, duration_ms: Optional[int] = None,
                           data_size: Optional[int] = None):
        if not self._should_log(LogLevel.DETAILED):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        self._clean_log("debug", "⚡", "PERF", operation, req=req_id,
                        duration_ms=duration_ms, size=data_size)

    def error_occurred(self, session_id: str, error_type: str, operation: str, error_msg: Optional[str] = None):
        # Errors are always logged regardless of level
        req_id = self._request_contexts.get(session_id, "unknown")
        self._clean_log("error", "❌", "ERROR", f"{error_type} in {operation}",
                        req=req_id, msg=error_msg)

    def api_call(self, session_id: str, service: str, operation: str, status: str = "started"):
        if not self._should_log(LogLevel.DEBUG):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        emoji = "📡" if status == "started" else "✅" if status == "success" else "❌"
        self._clean_log("debug", emoji, "API", f"{service}.{operation}", req=req_id, status=status)

    def debug_state(self, session_id: str, state_name: str, state_data: Dict[str, Any]):
        if not self._should_log(LogLevel.DEBUG):
            return
        req_id = self._request_contexts.get(session_id, "unknown")
        summary = {k: len(v) if isinstance(v, (list, dict, str)) else str(v)[:20]
                   for k, v in state_data.items()}
        self._clean_log("debug", "🔍", "STATE", state_name, req=req_id, **summary)


# ═══════════════════════════════════════════════════════════════════════════════
# GLOBAL LOGGER REGISTRY AND CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

_loggers: Dict[str, SmartLogger] = {}


def get_smart_logger(module_name: str, level: Optional[LogLevel] = None) -> SmartLogger:
    """Get or create a smart logger for a module"""
    if module_name not in _loggers:
        default_level = getattr(LogLevel, os.getenv('BOT_LOG_LEVEL', 'STANDARD').upper(), LogLevel.STANDARD)
        _loggers[module_name] = SmartLogger(module_name, level or default_level)
    if level:
        _loggers[module_name].set_level(level)
    return _loggers[module_name]


def configure_logging(level: LogLevel = LogLevel.STANDARD,
                      format_string: Optional[str] = None,
                      silence_external: bool = True):
    """Configure the entire logging system"""
    if not format_string:
        format_string = '%(asctime)s | %(message)s'

    logging.basicConfig(
        level=logging.DEBUG if level == LogLevel.DEBUG else logging.INFO,
        format=format_string,
        datefmt='%H:%M:%S',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if silence_external:
        for noisy in ('httpcore', 'httpx', 'anthropic', 'openai', 'werkzeug', 'urllib3', 'aiohttp.access'):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    for smart_logger in _loggers.values():
        smart_logger.set_level(level)
