"""Holded connector."""

from connectors.holded.holded_client import (
    HoldedApiClient,
    HoldedApiConfig,
    LedgerApiError,
    LedgerAuthenticationError,
    LedgerNotFoundError,
    LedgerRateLimitError,
    LedgerValidationError,
)
from connectors.holded.holded_connector import HoldedConnector

__all__ = [
    "HoldedApiClient",
    "HoldedApiConfig",
    "HoldedConnector",
    "LedgerApiError",
    "LedgerAuthenticationError",
    "LedgerNotFoundError",
    "LedgerRateLimitError",
    "LedgerValidationError",
]
