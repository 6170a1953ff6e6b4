"""
Intent, sentiment and language classification
─────────────────────────────────────────────
Pattern rules first; the LLM is consulted only when no rule matches.
classify() never raises: every LLM failure degrades to OTHER / neutral.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .enums import Intent, Sentiment
from .intent_config import INTENT_PATTERNS, LANGUAGE_PATTERNS, SENTIMENT_PATTERNS
from .llm_service import LLMService
from .locales import DEFAULT_LOCALE, normalize_locale

log = logging.getLogger(__name__)


@dataclass
class Classification:
    intent: Intent
    sentiment: Sentiment
    language: str
    intent_source: str = "rules"
    sentiment_source: str = "rules"


def match_intent(text: str) -> Optional[Intent]:
    lowered = (text or "").lower().strip()
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return None


def match_sentiment(text: str) -> Optional[Sentiment]:
    lowered = (text or "").lower()
    for sentiment, pattern in SENTIMENT_PATTERNS:
        if pattern.search(lowered):
            return sentiment
    return None


def detect_language(text: str, locale_hint: Optional[str] = None) -> str:
    """Requested locale wins; otherwise guess from a handful of common words."""
    if locale_hint:
        return normalize_locale(locale_hint)
    for lang, pattern in LANGUAGE_PATTERNS:
        if pattern.search(text or ""):
            return lang
    return DEFAULT_LOCALE


class IntentClassifier:
    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm

    async def classify_intent(self, text: str) -> tuple[Intent, str]:
        matched = match_intent(text)
        if matched is not None:
            return matched, "rules"
        if self.llm is None or not self.llm.configured:
            return Intent.OTHER, "default"
        result = await self.llm.classify_intent(text)
        if result.ok:
            return result.value, "llm"
        log.info(f"INTENT_LLM_DEGRADED | reason={result.failure.reason}")
        return Intent.OTHER, "default"

    async def classify_sentiment(self, text: str) -> tuple[Sentiment, str]:
        matched = match_sentiment(text)
        if matched is not None:
            return matched, "rules"
        if self.llm is None or not self.llm.configured:
            return Sentiment.NEUTRAL, "default"
        result = await self.llm.classify_sentiment(text)
        if result.ok:
            return result.value, "llm"
        log.info(f"SENTIMENT_LLM_DEGRADED | reason={result.failure.reason}")
        return Sentiment.NEUTRAL, "default"

    async def classify(self, text: str, locale_hint: Optional[str] = None) -> Classification:
        try:
            intent, intent_source = await self.classify_intent(text)
        except Exception as exc:  # noqa: BLE001
            log.error(f"INTENT_CLASSIFY_ERROR | error={exc}", exc_info=True)
            intent, intent_source = Intent.OTHER, "default"
        try:
            sentiment, sentiment_source = await self.classify_sentiment(text)
        except Exception as exc:  # noqa: BLE001
            log.error(f"SENTIMENT_CLASSIFY_ERROR | error={exc}", exc_info=True)
            sentiment, sentiment_source = Sentiment.NEUTRAL, "default"
        return Classification(
            intent=intent,
            sentiment=sentiment,
            language=detect_language(text, locale_hint),
            intent_source=intent_source,
            sentiment_source=sentiment_source,
        )
