"""
Redis persistence for the assistant
===================================

One store, keyed by natural unique keys so every write is an upsert:

  embedding:{shop}:{product_id}          JSON   ProductEmbedding
  profile:{shop}:{session_id}            JSON   UserProfile
  chat_session:{id}                      JSON   ChatSession
  profile_sessions:{profile_id}          ZSET   session ids scored by last activity
  chat_messages:{session_id}             LIST   ChatMessage JSON, append-only
  analytics:{shop}:{date}                HASH   counters
  analytics:{shop}:{date}:{map}          HASH   frequency maps (intents, sentiments, ...)
  usage:{shop}                           ZSET   usage record ids scored by epoch seconds

Reads degrade to defaults on Redis errors; writes report success as bool.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from .config import BaseConfig, get_config

log = logging.getLogger(__name__)

ANALYTICS_MAPS = ("intents", "sentiments", "products", "workflow")


class RedisStore:
    """Upsert-by-key persistence for embeddings, profiles, sessions, messages and counters."""

    def __init__(self, client: redis.Redis | None = None, cfg: BaseConfig | None = None):
        cfg = cfg or get_config()
        self.redis: redis.Redis = client or redis.Redis(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            decode_responses=cfg.REDIS_DECODE_RESPONSES,
            socket_timeout=10,
            socket_connect_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    # ────────────────────────────────────────────────────────
    # JSON helpers with retry
    # ────────────────────────────────────────────────────────

    def _get_json_with_retry(self, key: str, *, default: Any = None, max_retries: int = 3) -> Any:
        for attempt in range(max_retries):
            try:
                raw = self.redis.get(key)
                if raw is None:
                    return default
                try:
                    return json.loads(raw)
                except json.JSONDecodeError as je:
                    log.warning(f"REDIS_GET_JSON_ERROR | key={key} | error={je}")
                    # Unreadable entries are dropped and treated as a miss
                    self.redis.delete(key)
                    return default
            except (ConnectionError, TimeoutError) as ce:
                log.warning(f"REDIS_GET_CONNECTION_ERROR | key={key} | attempt={attempt + 1} | error={ce}")
                if attempt == max_retries - 1:
                    return default
                time.sleep(0.1 * (attempt + 1))
            except RedisError as re:
                log.error(f"REDIS_GET_ERROR | key={key} | error={re}")
                return default
        return default

    def _set_json_with_retry(self, key: str, value: Any, *, max_retries: int = 3) -> bool:
        json_data = json.dumps(value)
        for attempt in range(max_retries):
            try:
                if self.redis.set(key, json_data):
                    log.debug(f"REDIS_SET_SUCCESS | key={key} | size={len(json_data)}")
                    return True
                log.warning(f"REDIS_SET_FAILED | key={key} | attempt={attempt + 1}")
            except (ConnectionError, TimeoutError) as ce:
                log.warning(f"REDIS_SET_CONNECTION_ERROR | key={key} | attempt={attempt + 1} | error={ce}")
                if attempt == max_retries - 1:
                    return False
                time.sleep(0.1 * (attempt + 1))
            except RedisError as e:
                log.error(f"REDIS_SET_ERROR | key={key} | error={e}")
                return False
        return False

    def _delete_matching(self, pattern: str) -> int:
        try:
            keys = list(self.redis.scan_iter(match=pattern))
            if not keys:
                return 0
            with self.redis.pipeline() as pipe:
                for key in keys:
                    pipe.delete(key)
                return sum(pipe.execute())
        except RedisError as e:
            log.error(f"REDIS_DELETE_MATCHING_ERROR | pattern={pattern} | error={e}")
            return 0

    # ────────────────────────────────────────────────────────
    # Embeddings
    # ────────────────────────────────────────────────────────

    @staticmethod
    def _embedding_key(shop: str, product_id: str) -> str:
        return f"embedding:{shop}:{product_id}"

    def get_embedding(self, shop: str, product_id: str) -> Optional[Dict[str, Any]]:
        return self._get_json_with_retry(self._embedding_key(shop, product_id))

    def save_embedding(self, shop: str, product_id: str, record: Dict[str, Any]) -> bool:
        return self._set_json_with_retry(self._embedding_key(shop, product_id), record)

    def list_embeddings(self, shop: str) -> List[Dict[str, Any]]:
        try:
            keys = list(self.redis.scan_iter(match=f"embedding:{shop}:*"))
        except RedisError as e:
            log.error(f"EMBEDDING_SCAN_ERROR | shop={shop} | error={e}")
            return []
        records = (self._get_json_with_retry(k) for k in keys)
        return [r for r in records if isinstance(r, dict)]

    def delete_embeddings(self, shop: str) -> int:
        deleted = self._delete_matching(f"embedding:{shop}:*")
        log.info(f"EMBEDDINGS_DELETED | shop={shop} | count={deleted}")
        return deleted

    # ────────────────────────────────────────────────────────
    # Profiles, sessions, messages
    # ────────────────────────────────────────────────────────

    def get_profile(self, shop: str, session_id: str) -> Optional[Dict[str, Any]]:
        return self._get_json_with_retry(f"profile:{shop}:{session_id}")

    def save_profile(self, shop: str, session_id: str, record: Dict[str, Any]) -> bool:
        return self._set_json_with_retry(f"profile:{shop}:{session_id}", record)

    def get_chat_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._get_json_with_retry(f"chat_session:{session_id}")

    def save_chat_session(self, record: Dict[str, Any], last_activity_ts: float) -> bool:
        saved = self._set_json_with_retry(f"chat_session:{record['id']}", record)
        try:
            self.redis.zadd(f"profile_sessions:{record['profile_id']}", {record["id"]: last_activity_ts})
        except RedisError as e:
            log.error(f"SESSION_INDEX_ERROR | session={record['id']} | error={e}")
            return False
        return saved

    def get_latest_chat_session(self, profile_id: str) -> Optional[Dict[str, Any]]:
        try:
            latest = self.redis.zrange(f"profile_sessions:{profile_id}", -1, -1)
        except RedisError as e:
            log.error(f"SESSION_INDEX_READ_ERROR | profile={profile_id} | error={e}")
            return None
        if not latest:
            return None
        return self.get_chat_session(latest[0])

    def append_message(self, session_id: str, record: Dict[str, Any]) -> bool:
        try:
            self.redis.rpush(f"chat_messages:{session_id}", json.dumps(record))
            return True
        except RedisError as e:
            log.error(f"MESSAGE_APPEND_ERROR | session={session_id} | error={e}")
            return False

    def get_messages(self, session_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            raw = self.redis.lrange(f"chat_messages:{session_id}", -limit, -1)
        except RedisError as e:
            log.error(f"MESSAGE_READ_ERROR | session={session_id} | error={e}")
            return []
        out: List[Dict[str, Any]] = []
        for item in raw:
            try:
                out.append(json.loads(item))
            except json.JSONDecodeError:
                log.warning(f"MESSAGE_DECODE_SKIPPED | session={session_id}")
        return out

    # ────────────────────────────────────────────────────────
    # Daily analytics counters
    # ────────────────────────────────────────────────────────

    def increment_daily(
        self,
        shop: str,
        date: str,
        counters: Dict[str, float],
        maps: Dict[str, List[str]] | None = None,
    ) -> bool:
        """Atomic per-field increments; concurrent messages never lose counts."""
        base = f"analytics:{shop}:{date}"
        try:
            with self.redis.pipeline() as pipe:
                for name, amount in counters.items():
                    if isinstance(amount, int):
                        pipe.hincrby(base, name, amount)
                    else:
                        pipe.hincrbyfloat(base, name, amount)
                for map_name, members in (maps or {}).items():
                    for member in members:
                        pipe.hincrby(f"{base}:{map_name}", member, 1)
                pipe.execute()
            return True
        except RedisError as e:
            log.error(f"ANALYTICS_INCREMENT_ERROR | shop={shop} | date={date} | error={e}")
            return False

    def get_daily(self, shop: str, date: str) -> Dict[str, Dict[str, str]]:
        base = f"analytics:{shop}:{date}"
        try:
            result = {"counters": self.redis.hgetall(base) or {}}
            for map_name in ANALYTICS_MAPS:
                result[map_name] = self.redis.hgetall(f"{base}:{map_name}") or {}
            return result
        except RedisError as e:
            log.error(f"ANALYTICS_READ_ERROR | shop={shop} | date={date} | error={e}")
            return {"counters": {}, **{m: {} for m in ANALYTICS_MAPS}}

    # ────────────────────────────────────────────────────────
    # Conversation usage records
    # ────────────────────────────────────────────────────────

    def add_usage_record(self, shop: str, record_id: str, ts: float) -> bool:
        try:
            self.redis.zadd(f"usage:{shop}", {record_id: ts})
            return True
        except RedisError as e:
            log.error(f"USAGE_RECORD_ERROR | shop={shop} | error={e}")
            return False

    def remove_usage_record(self, shop: str, record_id: str) -> bool:
        try:
            return bool(self.redis.zrem(f"usage:{shop}", record_id))
        except RedisError as e:
            log.error(f"USAGE_REMOVE_ERROR | shop={shop} | error={e}")
            return False

    def count_usage(self, shop: str, start_ts: float, end_ts: float) -> int:
        """Records with start_ts <= ts < end_ts."""
        try:
            return int(self.redis.zcount(f"usage:{shop}", start_ts, f"({end_ts}"))
        except RedisError as e:
            log.error(f"USAGE_COUNT_ERROR | shop={shop} | error={e}")
            return 0

    # ────────────────────────────────────────────────────────
    # Health
    # ────────────────────────────────────────────────────────

    def health_check(self) -> Dict[str, Any]:
        health_data: Dict[str, Any] = {
            "connection_healthy": False,
            "ping_success": False,
            "memory_info": {},
            "error": None,
        }
        try:
            health_data["ping_success"] = bool(self.redis.ping())
            test_key = f"health_check:{int(time.time())}"
            self.redis.setex(test_key, 10, "test")
            test_value = self.redis.get(test_key)
            self.redis.delete(test_key)
            health_data["connection_healthy"] = test_value == "test"
            info = self.redis.info("memory")
            health_data["memory_info"] = {
                "used_memory_human": info.get("used_memory_human", "unknown"),
                "maxmemory_human": info.get("maxmemory_human", "unknown"),
            }
        except RedisError as e:
            health_data["error"] = str(e)
        return health_data
