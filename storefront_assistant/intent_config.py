"""
Central pattern tables for classification and language detection.

Order matters: INTENT_PATTERNS is evaluated top to bottom and the first match wins.
"""

import re
from typing import List, Tuple

from .enums import Intent, Sentiment

# ─────────────────────────────────────────────────────────────
# Intent rules (evaluated against the lowercased utterance)
# ─────────────────────────────────────────────────────────────
INTENT_PATTERNS: List[Tuple[Intent, "re.Pattern[str]"]] = [
    (Intent.PRODUCT_SEARCH, re.compile(r"(looking for|need|want|show me|find|search|recommend)")),
    (Intent.PRICE_INQUIRY, re.compile(r"(how much|cost|price|expensive|cheap|budget|afford)")),
    (Intent.COMPARISON, re.compile(r"(compare|difference|better|vs|versus|which one)")),
    (Intent.AVAILABILITY, re.compile(r"(in stock|available|when|sold out|inventory)")),
    (Intent.SHIPPING, re.compile(r"(shipping|delivery|ship|arrive|tracking|when will)")),
    (Intent.RETURNS, re.compile(r"(return|refund|exchange|money back|warranty)")),
    (Intent.SIZE_FIT, re.compile(r"(size|fit|measurements|dimensions|how big|how small)")),
    (Intent.SUPPORT, re.compile(r"(help|problem|issue|broken|not working|support)")),
    (Intent.GREETING, re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)")),
    (Intent.THANKS, re.compile(r"(thank|thanks|appreciate|grateful)")),
]

SENTIMENT_PATTERNS: List[Tuple[Sentiment, "re.Pattern[str]"]] = [
    (Sentiment.POSITIVE, re.compile(r"(great|amazing|awesome|love|perfect|excellent|wonderful|happy)")),
    (Sentiment.NEGATIVE, re.compile(r"(bad|terrible|awful|hate|disappointed|frustrated|angry|upset)")),
]

# ─────────────────────────────────────────────────────────────
# Language detection (used only when the request carries no locale)
# ─────────────────────────────────────────────────────────────
LANGUAGE_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("fr", re.compile(r"(bonjour|salut|merci|montre|produit|cherche|voudrais|pourrais)", re.I)),
    ("es", re.compile(r"(hola|gracias|producto|busco|quiero|puedo)", re.I)),
    ("de", re.compile(r"(hallo|danke|produkt|suche|möchte|kann)", re.I)),
    ("pt", re.compile(r"(olá|obrigado|produto|procuro|gostaria|posso)", re.I)),
    ("it", re.compile(r"(ciao|grazie|prodotto|cerco|vorrei|posso)", re.I)),
]

# ─────────────────────────────────────────────────────────────
# Keyword ranker
# ─────────────────────────────────────────────────────────────
STOPWORDS = frozenset({
    "the", "and", "or", "for", "with", "can", "you", "show", "me",
    "voir", "montre", "des", "les", "une", "un",
    "under", "over", "what", "your", "have",
})

MIN_TOKEN_LENGTH = 3

# ─────────────────────────────────────────────────────────────
# LLM tool schemas
# ─────────────────────────────────────────────────────────────
INTENT_TOOL = {
    "name": "classify_intent",
    "description": "Classify a shopper message into exactly one intent category",
    "input_schema": {
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": [i.value for i in Intent],
                "description": "The single best matching intent",
            }
        },
        "required": ["intent"],
    },
}

SENTIMENT_TOOL = {
    "name": "classify_sentiment",
    "description": "Classify the sentiment of a shopper message",
    "input_schema": {
        "type": "object",
        "properties": {
            "sentiment": {
                "type": "string",
                "enum": [s.value for s in Sentiment],
            }
        },
        "required": ["sentiment"],
    },
}

PREFERENCES_TOOL = {
    "name": "extract_preferences",
    "description": "Extract shopping preferences stated or clearly implied in the conversation",
    "input_schema": {
        "type": "object",
        "properties": {
            "favoriteColors": {"type": "array", "items": {"type": "string"}},
            "categories": {"type": "array", "items": {"type": "string"}},
            "styles": {"type": "array", "items": {"type": "string"}},
            "priceRange": {
                "type": "object",
                "properties": {"min": {"type": "number"}, "max": {"type": "number"}},
            },
        },
        "required": [],
    },
}
