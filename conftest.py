"""Shared test fixtures: an in-memory ledger and canonical record builders."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from connectors.holded.holded_client import LedgerApiError
from connectors.ledger_base import (
    ContactPayload,
    DocumentPayload,
    LedgerConnector,
    LedgerContactRef,
    LedgerDocumentType,
    LedgerPayload,
    LedgerProductRef,
    NamedRef,
    PaymentPayload,
    ProductPayload,
)
from core.models import Customer, LineItem, Order, Product


class FakeLedger(LedgerConnector):
    """In-memory LedgerConnector that records every call.

    Set ``fail`` to a dict of method name -> exception to inject failures.
    """

    def __init__(self, name: str = "primary"):
        self.name = name
        self.products: List[LedgerProductRef] = []
        self.contacts: List[LedgerContactRef] = []
        self.sales_channels: List[NamedRef] = []
        self.warehouses: List[NamedRef] = []
        self.payment_methods: List[NamedRef] = []
        self.fail: Dict[str, Exception] = {}

        self.created_products: List[dict] = []
        self.updated_products: List[tuple] = []
        self.created_contacts: List[dict] = []
        self.created_documents: List[tuple] = []
        self.payments: List[tuple] = []
        self.searches: List[dict] = []
        self.closed = False
        self._next_id = 1

    def _check(self, method: str) -> None:
        if method in self.fail:
            raise self.fail[method]

    def _new_id(self, prefix: str) -> str:
        new_id = f"{prefix}{self._next_id}"
        self._next_id += 1
        return new_id

    async def list_products(self) -> List[LedgerProductRef]:
        self._check("list_products")
        return list(self.products)

    async def list_sales_channels(self) -> List[NamedRef]:
        self._check("list_sales_channels")
        return list(self.sales_channels)

    async def list_warehouses(self) -> List[NamedRef]:
        self._check("list_warehouses")
        return list(self.warehouses)

    async def list_payment_methods(self) -> List[NamedRef]:
        self._check("list_payment_methods")
        return list(self.payment_methods)

    async def search_contacts(
        self,
        email: Optional[str] = None,
        code: Optional[str] = None,
        vat_number: Optional[str] = None,
    ) -> List[LedgerContactRef]:
        self._check("search_contacts")
        self.searches.append({"email": email, "code": code, "vat_number": vat_number})
        return [
            c for c in self.contacts
            if (email and c.email == email) or (code and c.code == code) or (vat_number and c.vat_number == vat_number)
        ]

    async def create_contact(self, payload: ContactPayload) -> Optional[str]:
        self._check("create_contact")
        contact_id = self._new_id("c")
        self.created_contacts.append(payload.to_wire())
        self.contacts.append(LedgerContactRef(
            id=contact_id,
            name=payload.name,
            email=payload.email or "",
            code=payload.code or "",
            vat_number=payload.vatnumber or "",
        ))
        return contact_id

    async def create_product(self, payload: ProductPayload) -> str:
        self._check("create_product")
        product_id = self._new_id("p")
        self.created_products.append(payload.to_wire())
        return product_id

    async def update_product(self, product_id: str, payload: LedgerPayload) -> None:
        self._check("update_product")
        self.updated_products.append((product_id, payload.to_wire()))

    async def create_document(self, doc_type: LedgerDocumentType, payload: DocumentPayload) -> Optional[str]:
        self._check("create_document")
        document_id = self._new_id("d")
        self.created_documents.append((doc_type, payload.to_wire()))
        return document_id

    async def pay_document(self, doc_type: LedgerDocumentType, document_id: str, payload: PaymentPayload) -> None:
        self._check("pay_document")
        self.payments.append((doc_type, document_id, payload.to_wire()))

    async def close(self) -> None:
        self.closed = True


def api_error(status: int = 500, body: str = '{"error": "boom"}') -> LedgerApiError:
    return LedgerApiError(f"HTTP {status}", status_code=status, response_body=body)


def make_product(sku: str = "SKU-1", **kwargs) -> Product:
    fields = dict(sku=sku, name=f"Product {sku}", price=Decimal("10"))
    fields.update(kwargs)
    return Product(**fields)


def make_item(sku: str = "SKU-1", **kwargs) -> LineItem:
    fields = dict(sku=sku, name=f"Item {sku}", quantity=1, price=Decimal("10"), total=Decimal("10"))
    fields.update(kwargs)
    return LineItem(**fields)


def make_order(*skus: str, **kwargs) -> Order:
    fields = dict(
        source="woocommerce",
        site_prefix="S1",
        site_name="Shop",
        id="1001",
        order_number="1001",
        date=datetime(2025, 3, 10, 12, 0, 0),
        total=Decimal("12.10"),
        items=[make_item(sku) for sku in (skus or ("SKU-1",))],
    )
    fields.update(kwargs)
    return Order(**fields)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def customer() -> Customer:
    return Customer(
        name="Anna Puig",
        email="anna@example.com",
        dni="12345678Z",
        address="Carrer Major 1",
        city="Girona",
        postal_code="17001",
        province="Girona",
    )
