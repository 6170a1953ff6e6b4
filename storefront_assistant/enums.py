# storefront_assistant/enums.py
from enum import Enum


class Intent(str, Enum):
    PRODUCT_SEARCH = "PRODUCT_SEARCH"
    PRICE_INQUIRY = "PRICE_INQUIRY"
    COMPARISON = "COMPARISON"
    AVAILABILITY = "AVAILABILITY"
    SHIPPING = "SHIPPING"
    RETURNS = "RETURNS"
    SIZE_FIT = "SIZE_FIT"
    SUPPORT = "SUPPORT"
    GREETING = "GREETING"
    THANKS = "THANKS"
    OTHER = "OTHER"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ResponseTier(str, Enum):
    """Which stage of the degradation chain produced an answer."""
    WORKFLOW = "workflow"
    SEMANTIC = "fallback_semantic"
    KEYWORD = "fallback_keyword"
    POLICY = "fallback_policy"
    FEATURED = "fallback_featured"
    GENERIC = "fallback_generic"
    APOLOGY = "fallback_error"


class WorkflowType(str, Enum):
    DEFAULT = "default"
    CUSTOM = "custom"
    NONE = "none"


class ActionType(str, Enum):
    VIEW_PRODUCT = "view_product"
    ADD_TO_CART = "add_to_cart"
    COMPARE = "compare"
    CUSTOM = "custom"


class PlanCode(str, Enum):
    BYOK = "BYOK"
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"


class InteractionType(str, Enum):
    MESSAGE = "message"
    PRODUCT_VIEW = "product_view"
    PRODUCT_CLICK = "product_click"


# Intents answered from shop policy text rather than the catalog
SUPPORT_INTENTS = frozenset({Intent.SHIPPING, Intent.RETURNS})

# Intents where the semantic ranker is attempted
SEMANTIC_INTENTS = frozenset({Intent.PRODUCT_SEARCH, Intent.COMPARISON, Intent.OTHER})
