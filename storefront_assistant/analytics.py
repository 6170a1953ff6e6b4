"""
Daily analytics counters and monthly conversation quota.

Counters live in Redis hashes and are only ever incremented, so concurrent
messages for the same shop and day never lose updates.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict

from .enums import PlanCode, WorkflowType
from .errors import QuotaExceededError
from .models import AssistantResponse, ConversationUsage, DailyAnalytics, new_id
from .plans import billing_period, conversation_limit, days_until_reset, normalize_plan_code
from .redis_manager import RedisStore
from .utils.helpers import to_float, to_int, utc_now

log = logging.getLogger(__name__)

TOP_PRODUCTS = 10


def _day(ts: datetime) -> str:
    return ts.date().isoformat()


def _int_map(raw: Dict[str, Any]) -> Dict[str, int]:
    return {k: to_int(v) or 0 for k, v in (raw or {}).items()}


class AnalyticsAggregator:
    def __init__(self, store: RedisStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def record_message(
        self,
        shop: str,
        response: AssistantResponse,
        response_time_ms: int,
        workflow_type: WorkflowType = WorkflowType.NONE,
    ) -> bool:
        maps = {
            "intents": [response.intent.value],
            "sentiments": [response.sentiment.value],
            "products": [r.id for r in response.recommendations],
            "workflow": [workflow_type.value],
        }
        counters = {
            "totalMessages": 1,
            "totalResponseTimeMs": int(response_time_ms),
            "totalConfidence": float(response.confidence),
        }
        ok = self.store.increment_daily(shop, _day(self.clock()), counters, maps)
        if not ok:
            log.warning(f"ANALYTICS_NOT_RECORDED | shop={shop}")
        return ok

    def record_product_click(self, shop: str, product_id: str) -> bool:
        return self.store.increment_daily(
            shop, _day(self.clock()), {"productClicks": 1}, {"products": [product_id]}
        )

    def get_daily(self, shop: str, date: str) -> DailyAnalytics:
        raw = self.store.get_daily(shop, date)
        counters = raw.get("counters", {})
        return DailyAnalytics(
            shop=shop,
            date=date,
            total_messages=to_int(counters.get("totalMessages")) or 0,
            total_response_time_ms=to_float(counters.get("totalResponseTimeMs")),
            total_confidence=to_float(counters.get("totalConfidence")),
            product_clicks=to_int(counters.get("productClicks")) or 0,
            intents=_int_map(raw.get("intents")),
            sentiments=_int_map(raw.get("sentiments")),
            products=_int_map(raw.get("products")),
            workflow=_int_map(raw.get("workflow")),
        )

    def get_overview(self, shop: str, days: int = 7) -> Dict[str, Any]:
        """Roll the last `days` UTC days (today included) into one report."""
        days = max(1, min(int(days), 90))
        today = self.clock()
        rows = [self.get_daily(shop, _day(today - timedelta(days=offset))) for offset in range(days)]

        total_messages = sum(r.total_messages for r in rows)
        total_time = sum(r.total_response_time_ms for r in rows)
        total_confidence = sum(r.total_confidence for r in rows)
        intents: Counter = Counter()
        sentiments: Counter = Counter()
        products: Counter = Counter()
        workflow: Counter = Counter()
        for r in rows:
            intents.update(r.intents)
            sentiments.update(r.sentiments)
            products.update(r.products)
            workflow.update(r.workflow)

        return {
            "shop": shop,
            "days": days,
            "totalMessages": total_messages,
            "avgResponseTimeMs": round(total_time / total_messages, 1) if total_messages else 0.0,
            "avgConfidence": round(total_confidence / total_messages, 3) if total_messages else 0.0,
            "productClicks": sum(r.product_clicks for r in rows),
            "intents": dict(intents.most_common()),
            "sentiments": dict(sentiments),
            "topProducts": [{"productId": pid, "count": n} for pid, n in products.most_common(TOP_PRODUCTS)],
            "workflowUsage": dict(workflow),
            "daily": [r.to_dict() for r in reversed(rows)],
        }


class UsageTracker:
    """Counts billed conversations in the current UTC month against the plan limit."""

    def __init__(self, store: RedisStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def _usage(self, shop: str, plan: PlanCode, now: datetime) -> ConversationUsage:
        start, end = billing_period(now)
        limit = conversation_limit(plan)
        used = self.store.count_usage(shop, start.timestamp(), end.timestamp())
        return ConversationUsage(
            plan=plan,
            used=used,
            limit=limit,
            period_start=start.isoformat(),
            period_end=end.isoformat(),
            days_until_reset=days_until_reset(now),
        )

    def get_conversation_usage(self, shop: str, plan: Any = None) -> ConversationUsage:
        return self._usage(shop, normalize_plan_code(plan), self.clock())

    def check_conversation_limit(self, shop: str, plan: Any = None) -> ConversationUsage:
        """Read-only: exceeded once used >= limit."""
        return self.get_conversation_usage(shop, plan)

    def reserve_conversation(self, shop: str, plan: Any = None) -> ConversationUsage:
        """Add a usage record, then verify the window is still within the limit.

        When the count overshoots, the record is removed again and QuotaExceededError
        is raised. Concurrent reservations at the boundary may both be refused.
        """
        plan_code = normalize_plan_code(plan)
        now = self.clock()
        limit = conversation_limit(plan_code)
        record_id = new_id()
        self.store.add_usage_record(shop, record_id, now.timestamp())
        usage = self._usage(shop, plan_code, now)
        if limit is not None and usage.used > limit:
            self.store.remove_usage_record(shop, record_id)
            log.warning(f"QUOTA_EXCEEDED | shop={shop} | plan={plan_code.value} | used={usage.used - 1} | limit={limit}")
            raise QuotaExceededError(shop, usage.used - 1, limit)
        if usage.is_approaching_limit:
            log.info(f"QUOTA_APPROACHING | shop={shop} | used={usage.used} | limit={limit}")
        return usage
