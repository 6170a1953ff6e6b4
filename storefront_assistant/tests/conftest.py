from __future__ import annotations

import os
import re
import zlib
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import fakeredis
import pytest

os.environ.setdefault("APP_ENV", "testing")

from storefront_assistant.config import TestingConfig  # noqa: E402
from storefront_assistant.errors import TransientUpstreamError  # noqa: E402
from storefront_assistant.models import Product  # noqa: E402
from storefront_assistant.redis_manager import RedisStore  # noqa: E402


def make_fake_redis() -> fakeredis.FakeRedis:
    """Isolated in-memory server per call, decoding like the production client."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


# ─────────────────────────────────────────────────────────────
# Deterministic embeddings: hashed bag of stemmed words
# ─────────────────────────────────────────────────────────────
_WORD = re.compile(r"[a-z]+")
EMBED_DIMS = 256


def _stem(word: str) -> str:
    if len(word) > 4 and word.endswith("es"):
        word = word[:-2]
    if len(word) > 3 and word.endswith("s"):
        word = word[:-1]
    return word


def bag_of_words(text: str) -> List[float]:
    vector = [0.0] * EMBED_DIMS
    for word in _WORD.findall(text.lower()):
        if len(word) < 3:
            continue
        vector[zlib.crc32(_stem(word).encode()) % EMBED_DIMS] += 1.0
    return vector


class FakeEmbeddingClient:
    def __init__(self, model: str = "fake-embed-v1", configured: bool = True, fail_on: tuple = ()):
        self.model = model
        self.configured = configured
        self.fail_on = fail_on
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise TransientUpstreamError(f"scripted failure for {text[:20]}")
        return bag_of_words(text)


# ─────────────────────────────────────────────────────────────
# Scripted Anthropic client
# ─────────────────────────────────────────────────────────────
class FakeAnthropic:
    """messages.create returns a tool_use block with the scripted input for that tool."""

    def __init__(self, scripted: Optional[Dict[str, Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.scripted = scripted or {}
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.messages = SimpleNamespace(create=self._create)

    async def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        name = kwargs["tool_choice"]["name"]
        if name not in self.scripted:
            return SimpleNamespace(content=[SimpleNamespace(type="text", text="no idea")])
        return SimpleNamespace(content=[SimpleNamespace(type="tool_use", name=name, input=self.scripted[name])])


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def cfg() -> TestingConfig:
    return TestingConfig()


@pytest.fixture
def fake_redis() -> fakeredis.FakeRedis:
    return make_fake_redis()


@pytest.fixture
def store(fake_redis, cfg) -> RedisStore:
    return RedisStore(client=fake_redis, cfg=cfg)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def catalog() -> List[Product]:
    return [
        Product(id="p1", title="Red Summer Dress", handle="red-summer-dress",
                description="Light cotton dress in bright red", price=79.0, inventory=3),
        Product(id="p2", title="Blue Denim Jacket", handle="blue-denim-jacket",
                description="Classic jacket with a relaxed cut", price=120.0, inventory=20,
                compare_at_price=150.0),
        Product(id="p3", title="Evening Gown", handle="evening-gown",
                description="Floor length dress for formal events, deep red satin", price=95.0),
        Product(id="p4", title="Leather Boots", handle="leather-boots",
                description="Waterproof leather boots", price=140.0, inventory=0, available=False),
        Product(id="p5", title="Wool Scarf", handle="wool-scarf",
                description="Warm knitted scarf in navy", price=25.0),
    ]
