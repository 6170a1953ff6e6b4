"""
Dataclass models for the assistant: catalog items, shopper profiles, chat records,
analytics rows and the request/response envelopes.

Wire format is camelCase (to_dict / from_dict); attributes are snake_case.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .enums import (
    ActionType, Intent, MessageRole, PlanCode, ResponseTier, Sentiment, WorkflowType
)
from .errors import ValidationError
from .utils.helpers import iso_now, str_list, to_float, to_int, unique

T = TypeVar("T")


def new_id() -> str:
    return uuid.uuid4().hex


# ─────────────────────────────────────────────────────────────
# Tier results
# ─────────────────────────────────────────────────────────────
@dataclass
class TierFailure:
    """Why a tier could not produce a value."""
    tier: str
    reason: str
    error: Optional[BaseException] = None


@dataclass
class TierResult(Generic[T]):
    value: Optional[T] = None
    failure: Optional[TierFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "TierResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, tier: str, reason: str, error: Optional[BaseException] = None) -> "TierResult[T]":
        return cls(failure=TierFailure(tier=tier, reason=reason, error=error))


# ─────────────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────────────
@dataclass
class Product:
    id: str
    title: str
    handle: str = ""
    description: str = ""
    price: float = 0.0
    image: Optional[str] = None
    available: bool = True
    inventory: Optional[int] = None
    compare_at_price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        compare_at = data.get("compareAtPrice", data.get("compare_at_price"))
        inventory = to_int(data.get("inventory", data.get("inventoryQuantity")))
        available = data.get("available", data.get("isAvailable"))
        if available is None:
            available = inventory is None or inventory > 0
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            handle=str(data.get("handle") or ""),
            description=str(data.get("description") or ""),
            price=to_float(data.get("price")),
            image=data.get("image") or data.get("imageUrl"),
            available=bool(available),
            inventory=inventory,
            compare_at_price=to_float(compare_at) if compare_at not in (None, "") else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "handle": self.handle,
            "description": self.description,
            "price": f"{self.price:.2f}",
            "image": self.image,
            "available": self.available,
            "inventory": self.inventory,
            "compareAtPrice": f"{self.compare_at_price:.2f}" if self.compare_at_price is not None else None,
        }


@dataclass
class ProductEmbedding:
    shop: str
    product_id: str
    vector: List[float]
    model: str
    created_at: str = field(default_factory=iso_now)
    updated_at: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop": self.shop,
            "product_id": self.product_id,
            "vector": self.vector,
            "model": self.model,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductEmbedding":
        return cls(
            shop=data["shop"],
            product_id=str(data["product_id"]),
            vector=[float(x) for x in data["vector"]],
            model=data["model"],
            created_at=data.get("created_at") or iso_now(),
            updated_at=data.get("updated_at") or iso_now(),
        )


@dataclass
class ShopPolicies:
    shop_name: Optional[str] = None
    returns: Optional[str] = None
    shipping: Optional[str] = None
    privacy: Optional[str] = None
    terms_of_service: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ShopPolicies":
        if not isinstance(data, dict):
            return cls()

        def _text(*keys: str) -> Optional[str]:
            for key in keys:
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
            return None

        return cls(
            shop_name=_text("shopName", "shop_name"),
            returns=_text("returns", "refund"),
            shipping=_text("shipping"),
            privacy=_text("privacy"),
            terms_of_service=_text("termsOfService", "terms_of_service"),
            contact_email=_text("contactEmail", "contact_email"),
            contact_phone=_text("contactPhone", "contact_phone"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shopName": self.shop_name,
            "returns": self.returns,
            "shipping": self.shipping,
            "privacy": self.privacy,
            "termsOfService": self.terms_of_service,
            "contactEmail": self.contact_email,
            "contactPhone": self.contact_phone,
        }


# ─────────────────────────────────────────────────────────────
# Shopper profile and chat history
# ─────────────────────────────────────────────────────────────
@dataclass
class PriceRange:
    min: float
    max: float

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


@dataclass
class UserPreferences:
    favorite_colors: List[str] = field(default_factory=list)
    price_range: Optional[PriceRange] = None
    categories: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "UserPreferences":
        """Malformed bags degrade to empty preferences rather than raising."""
        if not isinstance(data, dict):
            return cls()
        price_range = None
        raw_range = data.get("priceRange", data.get("price_range"))
        if isinstance(raw_range, dict) and "min" in raw_range and "max" in raw_range:
            low, high = to_float(raw_range["min"]), to_float(raw_range["max"])
            price_range = PriceRange(min=min(low, high), max=max(low, high))
        return cls(
            favorite_colors=str_list(data.get("favoriteColors", data.get("favorite_colors"))),
            price_range=price_range,
            categories=str_list(data.get("categories")),
            styles=str_list(data.get("styles")),
            interests=str_list(data.get("interests")),
        )

    def merged_with(self, other: "UserPreferences") -> "UserPreferences":
        return UserPreferences(
            favorite_colors=unique(self.favorite_colors + other.favorite_colors),
            price_range=other.price_range or self.price_range,
            categories=unique(self.categories + other.categories),
            styles=unique(self.styles + other.styles),
            interests=unique(self.interests + other.interests),
        )

    def is_empty(self) -> bool:
        return not (self.favorite_colors or self.price_range or self.categories
                    or self.styles or self.interests)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "favoriteColors": self.favorite_colors,
            "categories": self.categories,
            "styles": self.styles,
            "interests": self.interests,
        }
        if self.price_range:
            result["priceRange"] = {"min": self.price_range.min, "max": self.price_range.max}
        return result


@dataclass
class UserProfile:
    shop: str
    session_id: str
    id: str = field(default_factory=new_id)
    customer_id: Optional[str] = None
    preferences: UserPreferences = field(default_factory=UserPreferences)
    browsing_history: List[str] = field(default_factory=list)
    interactions: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = field(default_factory=iso_now)
    updated_at: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shop": self.shop,
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "preferences": self.preferences.to_dict(),
            "browsing_history": self.browsing_history,
            "interactions": self.interactions,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        interactions = data.get("interactions")
        return cls(
            id=data.get("id") or new_id(),
            shop=data["shop"],
            session_id=data["session_id"],
            customer_id=data.get("customer_id"),
            preferences=UserPreferences.from_dict(data.get("preferences")),
            browsing_history=str_list(data.get("browsing_history")),
            interactions=[i for i in interactions if isinstance(i, dict)] if isinstance(interactions, list) else [],
            created_at=data.get("created_at") or iso_now(),
            updated_at=data.get("updated_at") or iso_now(),
        )


@dataclass
class ChatSession:
    profile_id: str
    shop: str
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=iso_now)
    last_message_at: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "shop": self.shop,
            "created_at": self.created_at,
            "last_message_at": self.last_message_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatSession":
        return cls(
            id=data["id"],
            profile_id=data["profile_id"],
            shop=data["shop"],
            created_at=data.get("created_at") or iso_now(),
            last_message_at=data.get("last_message_at") or iso_now(),
        )


@dataclass
class ChatMessage:
    session_id: str
    role: MessageRole
    content: str
    intent: Optional[str] = None
    sentiment: Optional[str] = None
    confidence: Optional[float] = None
    products_shown: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "intent": self.intent,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "products_shown": self.products_shown,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data.get("id") or new_id(),
            session_id=data["session_id"],
            role=MessageRole(data.get("role", "user")),
            content=data.get("content", ""),
            intent=data.get("intent"),
            sentiment=data.get("sentiment"),
            confidence=data.get("confidence"),
            products_shown=str_list(data.get("products_shown")),
            created_at=data.get("created_at") or iso_now(),
        )


# ─────────────────────────────────────────────────────────────
# Analytics / usage
# ─────────────────────────────────────────────────────────────
@dataclass
class DailyAnalytics:
    shop: str
    date: str
    total_messages: int = 0
    total_response_time_ms: float = 0.0
    total_confidence: float = 0.0
    product_clicks: int = 0
    intents: Dict[str, int] = field(default_factory=dict)
    sentiments: Dict[str, int] = field(default_factory=dict)
    products: Dict[str, int] = field(default_factory=dict)
    workflow: Dict[str, int] = field(default_factory=dict)

    @property
    def avg_response_time_ms(self) -> float:
        return self.total_response_time_ms / self.total_messages if self.total_messages else 0.0

    @property
    def avg_confidence(self) -> float:
        return self.total_confidence / self.total_messages if self.total_messages else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shop": self.shop,
            "date": self.date,
            "totalMessages": self.total_messages,
            "avgResponseTimeMs": round(self.avg_response_time_ms, 1),
            "avgConfidence": round(self.avg_confidence, 3),
            "productClicks": self.product_clicks,
            "topIntents": self.intents,
            "sentimentBreakdown": self.sentiments,
            "topProducts": self.products,
            "workflowUsage": self.workflow,
        }


@dataclass
class ConversationUsage:
    plan: PlanCode
    used: int
    limit: Optional[int]
    period_start: str
    period_end: str
    days_until_reset: int

    @property
    def unlimited(self) -> bool:
        return self.limit is None

    @property
    def exceeded(self) -> bool:
        return self.limit is not None and self.used >= self.limit

    @property
    def remaining(self) -> Optional[int]:
        return None if self.limit is None else max(0, self.limit - self.used)

    @property
    def percentage(self) -> float:
        if not self.limit:
            return 0.0
        return round(min(100.0, self.used / self.limit * 100), 1)

    @property
    def is_approaching_limit(self) -> bool:
        return self.limit is not None and self.percentage >= 90

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.value,
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentage": self.percentage,
            "exceeded": self.exceeded,
            "isApproachingLimit": self.is_approaching_limit,
            "periodStart": self.period_start,
            "periodEnd": self.period_end,
            "daysUntilReset": self.days_until_reset,
        }


# ─────────────────────────────────────────────────────────────
# Request envelope
# ─────────────────────────────────────────────────────────────
@dataclass
class AssistantContext:
    """Everything the pipeline knows about the shop and shopper for one message."""
    shop: str
    session_id: str
    locale: Optional[str] = None
    currency: str = "USD"
    customer_id: Optional[str] = None
    user_preferences: Optional[UserPreferences] = None
    recent_products: Optional[List[str]] = None
    shop_policies: Optional[ShopPolicies] = None
    plan: str = PlanCode.STARTER.value
    workflow_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssistantContext":
        shop = data.get("shopId") or data.get("shopDomain") or data.get("shop")
        if not shop or not isinstance(shop, str):
            raise ValidationError("context.shopId is required", field="shopId")
        session_id = data.get("sessionId") or data.get("session_id") or new_id()
        prefs = data.get("userPreferences")
        recent = data.get("recentProducts")
        policies = data.get("shopPolicies")
        return cls(
            shop=shop.strip(),
            session_id=str(session_id),
            locale=data.get("locale") if isinstance(data.get("locale"), str) else None,
            currency=str(data.get("currency") or "USD"),
            customer_id=str(data["customerId"]) if data.get("customerId") else None,
            user_preferences=UserPreferences.from_dict(prefs) if prefs is not None else None,
            recent_products=[str(p) for p in recent] if isinstance(recent, list) else None,
            shop_policies=ShopPolicies.from_dict(policies) if policies is not None else None,
            plan=str(data.get("plan") or PlanCode.STARTER.value),
            workflow_url=data.get("workflowUrl") if isinstance(data.get("workflowUrl"), str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shopDomain": self.shop,
            "sessionId": self.session_id,
            "locale": self.locale,
            "currency": self.currency,
            "customerId": self.customer_id,
            "userPreferences": self.user_preferences.to_dict() if self.user_preferences else None,
            "recentProducts": self.recent_products,
            "shopPolicies": self.shop_policies.to_dict() if self.shop_policies else None,
        }


@dataclass
class AssistantRequest:
    utterance: str
    products: List[Product]
    context: AssistantContext

    @classmethod
    def from_payload(cls, data: Any) -> "AssistantRequest":
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        utterance = data.get("message", data.get("utterance"))
        if not isinstance(utterance, str) or not utterance.strip():
            raise ValidationError("message is required", field="message")
        context = data.get("context")
        if not isinstance(context, dict):
            raise ValidationError("context is required", field="context")
        raw_products = data.get("products") or []
        if not isinstance(raw_products, list):
            raise ValidationError("products must be a list", field="products")
        products = [Product.from_dict(p) for p in raw_products if isinstance(p, dict) and p.get("id") is not None]
        return cls(
            utterance=utterance.strip(),
            products=products,
            context=AssistantContext.from_dict(context),
        )

    @property
    def has_products(self) -> bool:
        return bool(self.products)


# ─────────────────────────────────────────────────────────────
# Response envelope
# ─────────────────────────────────────────────────────────────
@dataclass
class RankedProduct:
    """A shortlisted product plus the decorations the widget renders."""
    product: Product
    relevance_score: int = 0
    similarity: Optional[float] = None
    price_formatted: Optional[str] = None
    url: Optional[str] = None
    is_low_stock: bool = False
    urgency_message: Optional[str] = None
    discount_percent: Optional[int] = None
    badge: Optional[str] = None
    cta: Optional[str] = None

    @property
    def id(self) -> str:
        return self.product.id

    def to_dict(self) -> Dict[str, Any]:
        p = self.product
        result: Dict[str, Any] = {
            "id": p.id,
            "title": p.title,
            "handle": p.handle,
            "price": f"{p.price:.2f}",
            "image": p.image,
            "description": p.description,
            "isAvailable": p.available,
            "relevanceScore": self.relevance_score,
        }
        optional = {
            "priceFormatted": self.price_formatted,
            "url": self.url,
            "inventory": p.inventory,
            "isLowStock": self.is_low_stock or None,
            "urgencyMessage": self.urgency_message,
            "originalPrice": (
                f"{p.compare_at_price:.2f}"
                if self.discount_percent and p.compare_at_price is not None else None
            ),
            "discountPercent": self.discount_percent,
            "badge": self.badge,
            "cta": self.cta,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RankedProduct":
        """Parse a recommendation produced by the external workflow backend."""
        product = Product.from_dict(data)
        if "originalPrice" in data and product.compare_at_price is None:
            product.compare_at_price = to_float(data.get("originalPrice"))
        return cls(
            product=product,
            relevance_score=to_int(data.get("relevanceScore")) or 0,
            price_formatted=data.get("priceFormatted"),
            url=data.get("url"),
            is_low_stock=bool(data.get("isLowStock", False)),
            urgency_message=data.get("urgencyMessage"),
            discount_percent=to_int(data.get("discountPercent")),
            badge=data.get("badge"),
            cta=data.get("cta"),
        )


@dataclass
class SuggestedAction:
    label: str
    action: ActionType
    data: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"label": self.label, "action": self.action.value}
        if self.data:
            result["data"] = self.data
        return result


@dataclass
class ResponseAnalytics:
    intent_detected: Optional[str] = None
    sub_intent: Optional[str] = None
    response_time_ms: int = 0
    products_shown: int = 0
    workflow_type: WorkflowType = WorkflowType.NONE

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "intentDetected": self.intent_detected,
            "responseTimeMs": self.response_time_ms,
            "productsShown": self.products_shown,
            "workflowType": self.workflow_type.value,
        }
        if self.sub_intent:
            result["subIntent"] = self.sub_intent
        return result


@dataclass
class AssistantResponse:
    message: str
    message_type: str
    tier: ResponseTier
    confidence: float
    recommendations: List[RankedProduct] = field(default_factory=list)
    quick_replies: List[str] = field(default_factory=list)
    suggested_actions: List[SuggestedAction] = field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    intent: Intent = Intent.OTHER
    requires_human_escalation: bool = False
    analytics: ResponseAnalytics = field(default_factory=ResponseAnalytics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "messageType": self.message_type,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "quickReplies": self.quick_replies,
            "suggestedActions": [a.to_dict() for a in self.suggested_actions],
            "confidence": round(max(0.0, min(1.0, self.confidence)), 3),
            "sentiment": self.sentiment.value,
            "requiresHumanEscalation": self.requires_human_escalation,
            "analytics": self.analytics.to_dict(),
        }
