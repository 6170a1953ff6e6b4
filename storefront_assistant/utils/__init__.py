# storefront_assistant/utils/__init__.py
"""
Expose helpers at package-level for convenience:

    from storefront_assistant.utils import mask_webhook_url
"""

from .helpers import (  # noqa: F401
    iso_now,
    is_valid_webhook_url,
    mask_webhook_url,
    normalize_whitespace,
    strip_html,
    to_float,
    unique,
    utc_now,
)

__all__ = [
    "iso_now",
    "is_valid_webhook_url",
    "mask_webhook_url",
    "normalize_whitespace",
    "strip_html",
    "to_float",
    "unique",
    "utc_now",
]
