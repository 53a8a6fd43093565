"""Ledger Connectors - accounting ledger integration.

This package contains the abstract ledger interface and the Holded
implementation.

Canonical commerce models are ledger-neutral. This package handles:
- Ledger authentication (API key)
- Data transformation (canonical payloads -> ledger wire format)
- API communication and error mapping

Key Design Principle:
- The sync engine depends ONLY on the LedgerConnector interface
- Reads return NORMALIZED types (LedgerProductRef, NamedRef, ...)
- No Holded-specific types leak through the interface
"""

from connectors.ledger_base import (
    # Core interface
    LedgerConnector,
    LedgerDocumentType,

    # Normalized reference types
    LedgerProductRef,
    LedgerContactRef,
    NamedRef,

    # Payloads
    ProductPayload,
    ContactPayload,
    DocumentItemPayload,
    DocumentPayload,
    PaymentPayload,
    ProductTaxPayload,
)

__all__ = [
    # Core interface
    "LedgerConnector",
    "LedgerDocumentType",

    # Normalized reference types
    "LedgerProductRef",
    "LedgerContactRef",
    "NamedRef",

    # Payloads
    "ProductPayload",
    "ContactPayload",
    "DocumentItemPayload",
    "DocumentPayload",
    "PaymentPayload",
    "ProductTaxPayload",
]
