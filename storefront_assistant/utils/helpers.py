"""
Utility helpers
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_PRICE_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


def strip_html(text: str) -> str:
    return _TAG_RE.sub(" ", text or "")


def normalize_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def to_float(value: Any, default: float = 0.0) -> float:
    """Lenient price parsing: numbers, '19.99', 'USD 19,99'."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    m = _PRICE_RE.search(str(value))
    if not m:
        return default
    try:
        return float(m.group().replace(",", "."))
    except ValueError:
        return default


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def parse_iso(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def unique(seq: Iterable[Any]) -> List[Any]:
    seen: set[Any] = set()
    out: List[Any] = []
    for x in seq:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return out


def str_list(raw: Any) -> List[str]:
    """Keep only non-empty strings from a possibly malformed list."""
    if not isinstance(raw, list):
        return []
    return [s.strip() for s in raw if isinstance(s, str) and s.strip()]


def mask_webhook_url(url: str) -> str:
    """Hide the webhook id (last path segment) so URLs can be logged."""
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return "[INVALID URL FORMAT]"
        segments = parts.path.split("/")
        last = segments[-1]
        if len(last) > 8:
            segments[-1] = f"{last[:4]}****{last[-4:]}"
        return urlunsplit((parts.scheme, parts.netloc, "/".join(segments), "", ""))
    except ValueError:
        return "[INVALID URL FORMAT]"


def is_valid_webhook_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    url = url.strip()
    if url.lower() in {"", "null", "undefined"}:
        return False
    return url.startswith("https://") and len(url) > 8
