"""Core data models - ledger-neutral canonical types.

This package contains the canonical commerce records shared by every
source adapter and every ledger destination.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DecimalValue,
    TextValue,

    # Catalog
    Product,

    # Sales
    Customer,
    LineItem,
    Order,
)

__all__ = [
    # Base
    "CanonicalBase",
    "DecimalValue",
    "TextValue",

    # Catalog
    "Product",

    # Sales
    "Customer",
    "LineItem",
    "Order",
]
