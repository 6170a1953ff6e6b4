"""
Plan codes, monthly conversation limits and the UTC billing window.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from .enums import PlanCode

# None means unlimited
PLAN_LIMITS: Dict[PlanCode, Optional[int]] = {
    PlanCode.BYOK: None,
    PlanCode.STARTER: 1000,
    PlanCode.PROFESSIONAL: None,
}


def normalize_plan_code(raw: object) -> PlanCode:
    if isinstance(raw, PlanCode):
        return raw
    try:
        return PlanCode(str(raw or "").strip().upper())
    except ValueError:
        return PlanCode.STARTER


def conversation_limit(plan: PlanCode) -> Optional[int]:
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[PlanCode.STARTER])


def billing_period(now: datetime) -> Tuple[datetime, datetime]:
    """[first instant of the UTC month, first instant of the next UTC month)."""
    now = now.astimezone(timezone.utc) if now.tzinfo else now.replace(tzinfo=timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def days_until_reset(now: datetime) -> int:
    _, end = billing_period(now)
    now = now.astimezone(timezone.utc) if now.tzinfo else now.replace(tzinfo=timezone.utc)
    return max(0, math.ceil((end - now).total_seconds() / 86400))
