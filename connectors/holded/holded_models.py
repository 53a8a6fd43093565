"""Holded data models.

These are Holded-specific models that map to the Holded API schema.
They are separate from the canonical models in /core/models/ and from the
normalized refs in connectors/ledger_base.py.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Holded API Models
# =============================================================================

class HoldedBaseModel(BaseModel):
    """Base model for Holded API entities. Unknown fields are ignored."""
    model_config = ConfigDict(populate_by_name=True)


class HoldedProduct(HoldedBaseModel):
    """Holded product.

    Maps to: GET /products
    """
    id: str
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    tax: Optional[float] = None
    # Tax identifiers such as "s_iva_21"
    taxes: List[str] = Field(default_factory=list)
    kind: Optional[str] = None

    @field_validator("taxes", mode="before")
    @classmethod
    def _coerce_taxes(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    @property
    def tax_code(self) -> Optional[str]:
        return self.taxes[0] if self.taxes else None


class HoldedContact(HoldedBaseModel):
    """Holded contact.

    Maps to: GET /contacts
    """
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    code: Optional[str] = None
    vatnumber: Optional[str] = None
    type: Optional[str] = None


class HoldedNamedEntity(HoldedBaseModel):
    """Sales channel, warehouse or payment method.

    Maps to: GET /saleschannels, /warehouses, /paymentmethods
    """
    id: str
    name: Optional[str] = None
