"""
Anthropic-backed classification calls.

Every call is a single forced tool call at temperature 0 with a bounded timeout and
no client-side retries: when the call fails the caller falls back to its default.
"""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, List, Optional

import anthropic

from .config import BaseConfig, get_config
from .enums import Intent, Sentiment
from .errors import ConfigurationError, TransientUpstreamError
from .intent_config import INTENT_TOOL, PREFERENCES_TOOL, SENTIMENT_TOOL
from .models import TierResult, UserPreferences

log = logging.getLogger(__name__)


def pick_tool(resp: Any, name: str):  # noqa: ANN401
    for c in getattr(resp, "content", None) or []:
        if getattr(c, "type", None) == "tool_use" and getattr(c, "name", None) == name:
            return c
    return None


class LLMService:
    """Service class for all LLM interactions.

    An AsyncAnthropic client is opened per call unless one is injected, so no
    connection is shared across the per-request event loops of async views.
    """

    def __init__(self, cfg: BaseConfig | None = None, client: anthropic.AsyncAnthropic | None = None) -> None:
        self.cfg = cfg or get_config()
        self.api_key = self.cfg.ANTHROPIC_API_KEY or ""
        self._client = client
        if client is None and self.api_key and not self.api_key.startswith("sk-ant-"):
            log.warning("LLM_KEY_FORMAT | ANTHROPIC_API_KEY does not start with 'sk-ant-'")
        elif client is None and not self.api_key:
            log.info("LLM_DISABLED | ANTHROPIC_API_KEY not set, pattern rules only")

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _open(self):
        if self._client is not None:
            return contextlib.nullcontext(self._client)
        return anthropic.AsyncAnthropic(
            api_key=self.api_key,
            timeout=self.cfg.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )

    async def _tool_call(self, tier: str, prompt: str, tool: dict) -> TierResult[dict]:
        if not self.configured:
            return TierResult.fail(tier, "llm_not_configured", ConfigurationError("ANTHROPIC_API_KEY missing"))
        try:
            async with self._open() as client:
                resp = await asyncio.wait_for(
                    client.messages.create(
                        model=self.cfg.LLM_MODEL,
                        messages=[{"role": "user", "content": prompt}],
                        tools=[tool],
                        tool_choice={"type": "tool", "name": tool["name"]},
                        temperature=0,
                        max_tokens=self.cfg.LLM_MAX_TOKENS,
                    ),
                    timeout=self.cfg.LLM_TIMEOUT_SECONDS,
                )
        except (asyncio.TimeoutError, anthropic.APIError) as exc:
            log.warning(f"LLM_CALL_FAILED | tier={tier} | error_type={type(exc).__name__} | error={exc}")
            return TierResult.fail(tier, "upstream_error", TransientUpstreamError(str(exc)))

        tool_use = pick_tool(resp, tool["name"])
        if tool_use is None or not isinstance(tool_use.input, dict):
            log.warning(f"LLM_NO_TOOL_USE | tier={tier}")
            return TierResult.fail(tier, "malformed_response", TransientUpstreamError("no tool_use block"))
        return TierResult.success(tool_use.input)

    async def classify_intent(self, text: str) -> TierResult[Intent]:
        categories = ", ".join(i.value for i in Intent)
        prompt = (
            "Classify this e-commerce customer message into exactly one category.\n"
            f"Categories: {categories}\n\n"
            f'Message: "{text}"\n\n'
            "Return ONLY the classification tool call."
        )
        result = await self._tool_call("llm_intent", prompt, INTENT_TOOL)
        if not result.ok:
            return TierResult(failure=result.failure)
        try:
            return TierResult.success(Intent(str(result.value.get("intent", "")).upper()))
        except ValueError as exc:
            return TierResult.fail("llm_intent", "unknown_category", TransientUpstreamError(str(exc)))

    async def classify_sentiment(self, text: str) -> TierResult[Sentiment]:
        prompt = (
            "Analyze the sentiment of this customer message. "
            "Respond with positive, neutral or negative.\n\n"
            f'Message: "{text}"'
        )
        result = await self._tool_call("llm_sentiment", prompt, SENTIMENT_TOOL)
        if not result.ok:
            return TierResult(failure=result.failure)
        try:
            return TierResult.success(Sentiment(str(result.value.get("sentiment", "")).lower()))
        except ValueError as exc:
            return TierResult.fail("llm_sentiment", "unknown_category", TransientUpstreamError(str(exc)))

    async def extract_preferences(self, messages: List[str]) -> TierResult[UserPreferences]:
        conversation = "\n".join(f"- {m}" for m in messages if m)
        prompt = (
            "From these shopper messages, extract the shopping preferences that are stated "
            "or clearly implied: favorite colors, product categories, styles and a price range. "
            "Leave out anything not mentioned.\n\n"
            f"{conversation}"
        )
        result = await self._tool_call("llm_preferences", prompt, PREFERENCES_TOOL)
        if not result.ok:
            return TierResult(failure=result.failure)
        log.debug(f"LLM_PREFERENCES_RAW | data={json.dumps(result.value)[:200]}")
        return TierResult.success(UserPreferences.from_dict(result.value))
