"""Exceptions raised by the sales intelligence services."""

from typing import Optional


class SalesIntelligenceError(Exception):
    """Base class for expected, user-facing failures."""


class NotFoundError(SalesIntelligenceError):
    """A requested row does not exist in the current tenant."""

    def __init__(self, entity: str, item_id: Optional[str] = None):
        self.entity = entity
        self.item_id = item_id
        super().__init__(f"{entity} not found" + (f": {item_id}" if item_id else ""))


class InvalidStateError(SalesIntelligenceError):
    """The operation is not allowed in the row's current state, or an argument is missing."""


class ProviderNotConfiguredError(SalesIntelligenceError):
    """No API key is available for an external provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} API key is not configured")


class ProviderError(SalesIntelligenceError):
    """An external provider call failed."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} error: {message}")

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429
