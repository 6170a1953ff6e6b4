"""
Shopper profiles, chat sessions and message history.

Profiles are keyed by (shop, session_id) and only ever updated field by field.
A chat session is reused while its last message is younger than SESSION_REUSE_SECONDS.
Two concurrent first messages may both create a session; the newest one wins the
active slot.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import BaseConfig, get_config
from .enums import InteractionType, MessageRole
from .llm_service import LLMService
from .models import (
    ChatMessage, ChatSession, UserPreferences, UserProfile
)
from .redis_manager import RedisStore
from .utils.helpers import parse_iso, unique, utc_now

log = logging.getLogger(__name__)


class PersonalizationService:
    def __init__(
        self,
        store: RedisStore,
        llm: Optional[LLMService] = None,
        cfg: BaseConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.llm = llm
        self.cfg = cfg or get_config()
        self.clock = clock

    # ────────────────────────────────────────────────────────
    # Profiles
    # ────────────────────────────────────────────────────────

    def get_profile(self, shop: str, session_id: str) -> Optional[UserProfile]:
        raw = self.store.get_profile(shop, session_id)
        if not isinstance(raw, dict):
            return None
        try:
            return UserProfile.from_dict(raw)
        except KeyError as exc:
            log.warning(f"PROFILE_UNREADABLE | shop={shop} | session={session_id} | missing={exc}")
            return None

    def save_profile(self, profile: UserProfile) -> bool:
        profile.updated_at = self.clock().isoformat()
        return self.store.save_profile(profile.shop, profile.session_id, profile.to_dict())

    def get_or_create_profile(
        self, shop: str, session_id: str, customer_id: Optional[str] = None
    ) -> UserProfile:
        profile = self.get_profile(shop, session_id)
        if profile is not None:
            if customer_id and profile.customer_id != customer_id:
                profile.customer_id = customer_id
                self.save_profile(profile)
            return profile

        now = self.clock().isoformat()
        profile = UserProfile(
            shop=shop,
            session_id=session_id,
            customer_id=customer_id,
            created_at=now,
            updated_at=now,
        )
        self.save_profile(profile)
        log.info(f"PROFILE_CREATED | shop={shop} | session={session_id} | profile={profile.id}")
        return profile

    def update_preferences(self, profile: UserProfile, preferences: UserPreferences) -> UserProfile:
        profile.preferences = profile.preferences.merged_with(preferences)
        self.save_profile(profile)
        return profile

    def track_product_view(self, profile: UserProfile, product_id: str) -> UserProfile:
        history = [product_id] + [p for p in profile.browsing_history if p != product_id]
        profile.browsing_history = history[: self.cfg.BROWSING_HISTORY_LIMIT]
        self._append_interaction(profile, InteractionType.PRODUCT_VIEW, {"productId": product_id})
        self.save_profile(profile)
        return profile

    def track_interaction(
        self, profile: UserProfile, kind: InteractionType, data: Optional[Dict[str, Any]] = None
    ) -> UserProfile:
        self._append_interaction(profile, kind, data or {})
        self.save_profile(profile)
        return profile

    def _append_interaction(self, profile: UserProfile, kind: InteractionType, data: Dict[str, Any]) -> None:
        profile.interactions.append({
            "type": kind.value,
            "data": data,
            "timestamp": self.clock().isoformat(),
        })
        overflow = len(profile.interactions) - self.cfg.INTERACTION_LIMIT
        if overflow > 0:
            del profile.interactions[:overflow]

    # ────────────────────────────────────────────────────────
    # Sessions and messages
    # ────────────────────────────────────────────────────────

    def get_or_create_chat_session(self, profile: UserProfile) -> ChatSession:
        now = self.clock()
        raw = self.store.get_latest_chat_session(profile.id)
        if isinstance(raw, dict):
            try:
                session = ChatSession.from_dict(raw)
            except KeyError:
                session = None
            last = parse_iso(session.last_message_at) if session else None
            if last is not None and now - last < timedelta(seconds=self.cfg.SESSION_REUSE_SECONDS):
                return session

        session = ChatSession(
            profile_id=profile.id,
            shop=profile.shop,
            created_at=now.isoformat(),
            last_message_at=now.isoformat(),
        )
        self.store.save_chat_session(session.to_dict(), now.timestamp())
        log.info(f"CHAT_SESSION_CREATED | shop={profile.shop} | profile={profile.id} | chat_session={session.id}")
        return session

    def save_message(self, session: ChatSession, message: ChatMessage) -> bool:
        now = self.clock()
        message.session_id = session.id
        message.created_at = now.isoformat()
        saved = self.store.append_message(session.id, message.to_dict())
        session.last_message_at = now.isoformat()
        self.store.save_chat_session(session.to_dict(), now.timestamp())
        return saved

    def get_session_history(self, session_id: str, limit: int = 50) -> List[ChatMessage]:
        out: List[ChatMessage] = []
        for raw in self.store.get_messages(session_id, limit):
            try:
                out.append(ChatMessage.from_dict(raw))
            except (KeyError, ValueError):
                log.warning(f"MESSAGE_UNREADABLE | session={session_id}")
        return out

    def get_personalization_context(self, shop: str, session_id: str) -> Dict[str, Any]:
        profile = self.get_profile(shop, session_id)
        if profile is None:
            return {"preferences": UserPreferences(), "recent_products": [], "recent_messages": []}
        session_raw = self.store.get_latest_chat_session(profile.id)
        messages: List[ChatMessage] = []
        if isinstance(session_raw, dict) and session_raw.get("id"):
            messages = self.get_session_history(session_raw["id"], limit=10)
        return {
            "preferences": profile.preferences,
            "recent_products": profile.browsing_history[:10],
            "recent_messages": messages,
        }

    # ────────────────────────────────────────────────────────
    # Preference learning
    # ────────────────────────────────────────────────────────

    async def learn_preferences(self, profile: UserProfile, utterances: Sequence[str]) -> UserProfile:
        """Merge preferences the LLM can read out of recent shopper messages."""
        if self.llm is None or not self.llm.configured or not utterances:
            return profile
        result = await self.llm.extract_preferences(unique(list(utterances)))
        if not result.ok:
            log.info(f"PREFERENCE_LEARNING_SKIPPED | profile={profile.id} | reason={result.failure.reason}")
            return profile
        if result.value.is_empty():
            return profile
        log.info(f"PREFERENCES_LEARNED | profile={profile.id} | prefs={result.value.to_dict()}")
        return self.update_preferences(profile, result.value)

    def recent_user_utterances(self, session_id: str, limit: int = 5) -> List[str]:
        history = self.get_session_history(session_id, limit=limit * 2)
        return [m.content for m in history if m.role == MessageRole.USER][-limit:]
