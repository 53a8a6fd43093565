"""Abstract Ledger Connector Interface.

This module defines the interface the sync engine uses to talk to an
accounting ledger. Exactly one ledger kind is supported; the interface exists
so the engine can be driven against an in-memory ledger in tests and so the
engine never touches HTTP details.

Connectors implement this interface to:
1. Read reference data (products, sales channels, warehouses, payment methods)
2. Search and create contacts
3. Create and update products
4. Create documents (invoices, receipts, ...) and mark them as paid

Key Design Principles:
- Reads return NORMALIZED refs (LedgerProductRef, NamedRef, ...), not raw JSON
- Writes take payload models whose serialized form is the exact wire shape;
  absent optional fields are omitted, never sent as null
- Transport failures raise LedgerApiError subclasses (see holded_client)
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_serializers import PlainSerializer
from typing_extensions import Annotated


# =============================================================================
# Enums
# =============================================================================

class LedgerDocumentType(str, Enum):
    """Document kinds the ledger can create from an order."""
    INVOICE = "invoice"
    SALES_RECEIPT = "salesreceipt"
    CREDIT_NOTE = "creditnote"
    SALES_ORDER = "salesorder"
    PROFORMA = "proform"
    WAYBILL = "waybill"
    ESTIMATE = "estimate"


# Amounts travel as JSON numbers
LedgerAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# Normalized Reference Models
# =============================================================================

class LedgerProductRef(BaseModel):
    """Existing ledger product, keyed by sku in the reference cache.

    ``tax_code`` is the ledger's own tax identifier for the product
    (e.g. ``s_iva_21``). It is None for products created during the current
    run, whose tax the engine already decided.
    """
    id: str = Field(..., description="Ledger product id for API calls")
    sku: str
    name: str = ""
    tax_code: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class LedgerContactRef(BaseModel):
    """Ledger contact as returned by a contact search."""
    id: str
    name: str = ""
    email: str = ""
    code: str = Field(default="", description="National id (DNI/NIF)")
    vat_number: str = ""

    model_config = ConfigDict(frozen=True)


class NamedRef(BaseModel):
    """Sales channel, warehouse or payment method."""
    id: str
    name: str

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Write Payloads
# =============================================================================

class LedgerPayload(BaseModel):
    """Base for outbound payloads. Field aliases are the ledger's wire names."""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProductPayload(LedgerPayload):
    name: str
    sku: str
    desc: str = ""
    price: LedgerAmount
    purchase_price: LedgerAmount = Field(default=Decimal("0"), alias="purchasePrice")
    tags: List[str] = Field(default_factory=list)
    kind: str = "simple"
    # Only set on create; updates keep the ledger's tax configuration
    tax: Optional[LedgerAmount] = None


class ContactPayload(LedgerPayload):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    trade_name: Optional[str] = Field(default=None, alias="tradeName")
    code: Optional[str] = None
    vatnumber: Optional[str] = None
    type: str = "client"
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    province: Optional[str] = None
    country: str = "ES"
    country_name: str = Field(default="España", alias="countryName")


class DocumentItemPayload(LedgerPayload):
    name: str
    desc: str = ""
    sku: str = ""
    units: LedgerAmount
    subtotal: LedgerAmount
    discount: LedgerAmount = Decimal("0")
    tax: LedgerAmount


class DocumentPayload(LedgerPayload):
    """Invoice-like document.

    At most one contact linkage is set: ``contactId``, else ``contactCode``,
    else the inline ``contact*`` fields.
    """
    contact_id: Optional[str] = Field(default=None, alias="contactId")
    contact_code: Optional[str] = Field(default=None, alias="contactCode")
    contact_name: Optional[str] = Field(default=None, alias="contactName")
    contact_email: Optional[str] = Field(default=None, alias="contactEmail")
    contact_address: Optional[str] = Field(default=None, alias="contactAddress")
    contact_city: Optional[str] = Field(default=None, alias="contactCity")
    contact_cp: Optional[str] = Field(default=None, alias="contactCp")
    contact_province: Optional[str] = Field(default=None, alias="contactProvince")
    contact_country: Optional[str] = Field(default=None, alias="contactCountry")
    contact_country_name: Optional[str] = Field(default=None, alias="contactCountryName")

    desc: str
    date: int = Field(..., description="Epoch seconds")
    due_date: int = Field(..., alias="dueDate")
    currency: str = "EUR"
    items: List[DocumentItemPayload] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    sales_channel: Optional[str] = Field(default=None, alias="salesChannel")
    warehouse: Optional[str] = None
    notes: Optional[str] = None


class ProductTaxPayload(LedgerPayload):
    """Tax-only product update used by bulk maintenance."""
    tax: LedgerAmount


class PaymentPayload(LedgerPayload):
    date: int
    amount: LedgerAmount
    desc: str
    payment_method_id: Optional[str] = Field(default=None, alias="paymentMethodId")


# =============================================================================
# Abstract Connector Interface
# =============================================================================

class LedgerConnector(ABC):
    """Abstract base class for the ledger connector.

    The sync engine depends ONLY on this interface. Every method may raise
    LedgerApiError; the engine decides per call whether that is fatal.

    Implementations:
    - connectors/holded/holded_connector.py
    - conftest.FakeLedger (tests)
    """

    name: str = "ledger"

    # =========================================================================
    # Reference Reads
    # =========================================================================

    @abstractmethod
    async def list_products(self) -> List[LedgerProductRef]:
        """Read every product (all pages). Products without a sku are skipped."""
        pass

    @abstractmethod
    async def list_sales_channels(self) -> List[NamedRef]:
        pass

    @abstractmethod
    async def list_warehouses(self) -> List[NamedRef]:
        pass

    @abstractmethod
    async def list_payment_methods(self) -> List[NamedRef]:
        pass

    # =========================================================================
    # Contacts
    # =========================================================================

    @abstractmethod
    async def search_contacts(
        self,
        email: Optional[str] = None,
        code: Optional[str] = None,
        vat_number: Optional[str] = None,
    ) -> List[LedgerContactRef]:
        """Search contacts by exactly one identity field.

        Callers must still check the returned contacts for an exact match;
        the ledger's search is not guaranteed to be exact.
        """
        pass

    @abstractmethod
    async def create_contact(self, payload: ContactPayload) -> Optional[str]:
        """Create a contact and return its id."""
        pass

    # =========================================================================
    # Products
    # =========================================================================

    @abstractmethod
    async def create_product(self, payload: ProductPayload) -> str:
        """Create a product and return its id."""
        pass

    @abstractmethod
    async def update_product(self, product_id: str, payload: LedgerPayload) -> None:
        """Partial update; only the fields present in the payload change."""
        pass

    # =========================================================================
    # Documents
    # =========================================================================

    @abstractmethod
    async def create_document(
        self,
        doc_type: LedgerDocumentType,
        payload: DocumentPayload,
    ) -> Optional[str]:
        """Create a document and return its id."""
        pass

    @abstractmethod
    async def pay_document(
        self,
        doc_type: LedgerDocumentType,
        document_id: str,
        payload: PaymentPayload,
    ) -> None:
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
