"""
Error taxonomy shared by every tier of the assistant.

ConfigurationError and TransientUpstreamError never reach the shopper: tiers turn
them into a TierFailure and the dispatcher moves on. ValidationError and
QuotaExceededError are raised before the pipeline starts and map to 4xx responses.
"""
from __future__ import annotations


class AssistantError(Exception):
    """Base class for assistant errors."""


class ConfigurationError(AssistantError):
    """Credentials or endpoint for an upstream service are missing."""


class TransientUpstreamError(AssistantError):
    """Timeout, 5xx or malformed payload from an LLM, embedding or workflow call."""


class DataError(AssistantError):
    """A stored record could not be read back."""


class ValidationError(AssistantError):
    """The inbound request is unusable."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class QuotaExceededError(AssistantError):
    """The shop has used its monthly conversation allowance."""

    def __init__(self, shop: str, used: int, limit: int):
        super().__init__(f"Conversation limit reached for {shop}: {used}/{limit}")
        self.shop = shop
        self.used = used
        self.limit = limit
