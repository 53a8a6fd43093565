"""Core canonical data models - ledger-neutral commerce records.

Every source adapter (WooCommerce, SumUp, Square, hotel bookings) produces
these shapes and every ledger destination consumes them. They are closed
record types: unknown fields are rejected at the adapter boundary so a
source that drifts from the contract fails loudly instead of leaking
untyped data into the sync engine.

Ledger-specific payload shapes live in /connectors/.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle the loose numeric formats sources return)
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from strings, ints and floats without float artefacts."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        s = s.replace("€", "").replace(",", "")
        return Decimal(s)
    return value


def _parse_optional_text(value):
    """Sources send null, numbers or strings for free-text identifiers."""
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return value


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
TextValue = Annotated[str, BeforeValidator(_parse_optional_text)]


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical records.

    Records are immutable within a sync run; use ``model_copy(update=...)``
    to derive a filtered variant (the router does this for orders).
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


# =============================================================================
# Catalog
# =============================================================================

class Product(CanonicalBase):
    """A catalog product as published by one storefront site."""
    source: str = "woocommerce"
    site_prefix: str = ""
    site_name: Optional[str] = None
    id: Optional[TextValue] = None

    sku: str
    name: str
    description: TextValue = ""

    price: DecimalValue = Decimal("0")
    regular_price: Optional[DecimalValue] = None
    sale_price: Optional[DecimalValue] = None
    cost: DecimalValue = Decimal("0")

    # Whether ``price`` already contains VAT; the ledger always receives net
    prices_include_tax: bool = False
    default_vat_rate: Optional[DecimalValue] = None
    tax_class: Optional[str] = None

    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    stock: DecimalValue = Decimal("0")
    manage_stock: Optional[bool] = None
    weight: DecimalValue = Decimal("0")


# =============================================================================
# Sales
# =============================================================================

class Customer(CanonicalBase):
    """Buyer identity and billing address.

    Contact lookups use ``email``, then ``dni``, then ``vat_number``.
    """
    name: TextValue = ""
    email: TextValue = ""
    phone: TextValue = ""
    company: TextValue = ""
    dni: TextValue = ""
    vat_number: TextValue = ""

    address: TextValue = ""
    city: TextValue = ""
    postal_code: TextValue = ""
    province: TextValue = ""
    country: TextValue = "ES"
    country_name: TextValue = "España"

    @property
    def is_anonymous(self) -> bool:
        return not self.name and not self.email


class LineItem(CanonicalBase):
    """One sold line. Monetary fields are tax-exclusive unless named otherwise."""
    sku: str
    name: str
    description: TextValue = ""
    quantity: DecimalValue = Field(default=Decimal("1"), gt=0)

    price: DecimalValue = Decimal("0")
    total: DecimalValue = Decimal("0")
    total_with_tax: Optional[DecimalValue] = None
    tax: DecimalValue = Decimal("0")

    # None lets the destination decide from its own product configuration
    tax_rate: Optional[DecimalValue] = None
    # Percentage applied by the ledger on top of the subtotal
    discount: DecimalValue = Decimal("0")

    category: Optional[str] = None


class Order(CanonicalBase):
    """A completed sale, booking or card transaction."""
    source: str
    site_prefix: str = ""
    site_name: Optional[str] = None
    id: TextValue
    order_number: Optional[TextValue] = None
    transaction_code: Optional[TextValue] = None
    status: Optional[str] = None

    date: datetime
    currency: str = "EUR"
    total: DecimalValue = Decimal("0")
    subtotal: DecimalValue = Decimal("0")
    tax: DecimalValue = Decimal("0")

    payment_method: Optional[str] = None
    payment_type: Optional[str] = None

    customer: Optional[Customer] = None
    items: List[LineItem] = Field(default_factory=list)

    # Source-declared payment status; only an explicit False skips payment marking
    paid: bool = True

    # Destination hints, resolved by name against the ledger's reference cache
    sales_channel: Optional[str] = None
    warehouse: Optional[str] = None

    notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str:
        """Human order reference used in logs and document descriptions."""
        return str(self.order_number or self.transaction_code or self.id)

    @property
    def skus(self) -> List[str]:
        return [item.sku for item in self.items]
