"""
Shop policy cache
─────────────────
Per-process cache of shop policies fetched from the Shopify Admin REST API.

• fresh for POLICY_CACHE_TTL_SECONDS
• stale entries are still served for POLICY_STALE_TTL_SECONDS when a refetch fails
• the fetcher is any callable (shop) -> ShopPolicies | None, so tests inject their own
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from .config import BaseConfig, get_config
from .errors import ConfigurationError, TransientUpstreamError
from .models import ShopPolicies

log = logging.getLogger(__name__)

PolicyFetcher = Callable[[str], Optional[ShopPolicies]]


class ShopifyPolicyFetcher:
    """GET https://{shop}/admin/api/{version}/policies.json with the admin token."""

    def __init__(self, cfg: BaseConfig | None = None, access_token: Optional[str] = None):
        self.cfg = cfg or get_config()
        self.access_token = access_token or self.cfg.SHOPIFY_ADMIN_TOKEN

    @staticmethod
    def _slot(title: str) -> Optional[str]:
        t = title.lower()
        if "refund" in t or "return" in t:
            return "returns"
        if "shipping" in t or "delivery" in t:
            return "shipping"
        if "privacy" in t:
            return "privacy"
        if "terms" in t or "service" in t:
            return "terms_of_service"
        return None

    def __call__(self, shop: str) -> Optional[ShopPolicies]:
        if not self.access_token:
            raise ConfigurationError("SHOPIFY_ADMIN_TOKEN missing")
        url = f"https://{shop}/admin/api/{self.cfg.SHOPIFY_API_VERSION}/policies.json"
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }
        try:
            resp = requests.get(url, headers=headers, timeout=self.cfg.POLICY_FETCH_TIMEOUT_SECONDS)
            resp.raise_for_status()
            data = resp.json() or {}
        except requests.Timeout as exc:
            raise TransientUpstreamError(f"policy fetch timed out for {shop}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise TransientUpstreamError(f"policy fetch failed for {shop}: {exc}") from exc

        found: Dict[str, str] = {}
        for policy in data.get("policies") or []:
            if not isinstance(policy, dict) or not policy.get("title") or not policy.get("body"):
                continue
            slot = self._slot(str(policy["title"]))
            if slot:
                found[slot] = str(policy["body"])

        log.info(
            f"POLICIES_FETCHED | shop={shop} | returns={'returns' in found} | "
            f"shipping={'shipping' in found} | total={len(data.get('policies') or [])}"
        )
        return ShopPolicies(shop_name=shop, **found)


@dataclass
class _Entry:
    policies: ShopPolicies
    fetched_at: float


class PolicyCache:
    def __init__(
        self,
        fetcher: Optional[PolicyFetcher] = None,
        cfg: BaseConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg or get_config()
        self.fetcher = fetcher
        self.clock = clock
        self._entries: Dict[str, _Entry] = {}

    def _cached(self, shop: str, *, allow_stale: bool) -> Optional[ShopPolicies]:
        entry = self._entries.get(shop)
        if entry is None:
            return None
        age = self.clock() - entry.fetched_at
        if age < self.cfg.POLICY_CACHE_TTL_SECONDS:
            return entry.policies
        if age < self.cfg.POLICY_STALE_TTL_SECONDS:
            return entry.policies if allow_stale else None
        self._entries.pop(shop, None)
        return None

    def set(self, shop: str, policies: ShopPolicies) -> None:
        self._entries[shop] = _Entry(policies=policies, fetched_at=self.clock())

    def get_policies(self, shop: str) -> Optional[ShopPolicies]:
        fresh = self._cached(shop, allow_stale=False)
        if fresh is not None:
            return fresh
        if self.fetcher is None:
            return self._cached(shop, allow_stale=True)

        try:
            policies = self.fetcher(shop)
        except (ConfigurationError, TransientUpstreamError) as exc:
            log.warning(f"POLICY_FETCH_FAILED | shop={shop} | error={exc}")
            stale = self._cached(shop, allow_stale=True)
            if stale is not None:
                log.info(f"POLICY_STALE_SERVED | shop={shop}")
            return stale

        if policies is None:
            return self._cached(shop, allow_stale=True)
        self.set(shop, policies)
        return policies

    async def aget_policies(self, shop: str) -> Optional[ShopPolicies]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.get_policies(shop))

    def invalidate(self, shop: str) -> None:
        self._entries.pop(shop, None)
        log.debug(f"POLICY_CACHE_INVALIDATED | shop={shop}")

    def clear(self) -> None:
        self._entries.clear()
        log.info("POLICY_CACHE_CLEARED")

    def get_stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "shops": sorted(self._entries)}
