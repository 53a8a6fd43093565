"""Idempotent writes against one ledger account.

- Products: create-or-update keyed by sku. Updates never carry ``tax`` so the
  ledger's own tax configuration survives later syncs.
- Contacts: find-or-create keyed by email (else name). Lookup order is email,
  then national id, then VAT number.
- Documents: create-only, followed by an optional payment marking.

Errors from the ledger are converted to outcomes here; nothing in this module
raises LedgerApiError to its caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from connectors.holded.holded_client import LedgerApiError
from connectors.ledger_base import (
    ContactPayload,
    DocumentItemPayload,
    DocumentPayload,
    LedgerConnector,
    LedgerDocumentType,
    LedgerProductRef,
    PaymentPayload,
    ProductPayload,
)
from core.dates import DEFAULT_TIMEZONE, to_epoch_seconds
from core.models import Customer, LineItem, Order, Product
from core.observability import get_logger
from sync_engine.cache import ReferenceCache
from sync_engine.tax import (
    TaxDefaults,
    line_subtotal,
    product_net_price,
    resolve_line_rate,
    resolve_product_rate,
)

logger = get_logger(__name__)

FALLBACK_CONTACT_NAME = "Cliente"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


@dataclass
class DocumentResult:
    outcome: UpsertOutcome
    document_id: Optional[str] = None
    paid: bool = False
    error: Optional[str] = None


def _or_none(value: Optional[str]) -> Optional[str]:
    return value if value else None


def _log_ledger_error(action: str, error: LedgerApiError) -> None:
    logger.error(
        f"Failed to {action}: {error}",
        extra_fields={"status_code": error.status_code, "response_body": error.response_body},
    )


class UpsertEngine:
    """Create-or-update operations for one destination, fronted by its cache."""

    def __init__(
        self,
        connector: LedgerConnector,
        cache: ReferenceCache,
        defaults: Optional[TaxDefaults] = None,
        doc_type: LedgerDocumentType = LedgerDocumentType.INVOICE,
        timezone: str = DEFAULT_TIMEZONE,
        default_sales_channel: Optional[str] = None,
        default_warehouse: Optional[str] = None,
    ):
        self.connector = connector
        self.cache = cache
        self.defaults = defaults or TaxDefaults()
        self.doc_type = doc_type
        self.timezone = timezone
        self.default_sales_channel = default_sales_channel
        self.default_warehouse = default_warehouse

    # =========================================================================
    # Products
    # =========================================================================

    def build_product(self, product: Product, existing: Optional[LedgerProductRef]) -> ProductPayload:
        """Payload for a create (with ``tax``) or an update (without)."""
        rate = resolve_product_rate(product, existing.tax_code if existing else None, self.defaults)
        payload = ProductPayload(
            name=product.name,
            sku=product.sku,
            desc=product.description,
            price=product_net_price(product, rate),
            purchase_price=product.cost,
            tags=list(product.tags),
        )
        if existing is None:
            payload.tax = rate
        return payload

    async def upsert_product(self, product: Product) -> UpsertOutcome:
        existing = self.cache.product(product.sku)
        payload = self.build_product(product, existing)

        try:
            if existing:
                await self.connector.update_product(existing.id, payload)
                logger.debug(f"Updated product {product.sku}")
                return UpsertOutcome.UPDATED

            product_id = await self.connector.create_product(payload)
        except LedgerApiError as e:
            _log_ledger_error(f"sync product {product.sku}", e)
            return UpsertOutcome.ERROR

        if product_id:
            self.cache.remember_product(LedgerProductRef(id=product_id, sku=product.sku, name=product.name))
        else:
            logger.warning(f"Ledger returned no id for new product {product.sku}; a later duplicate will be created again")
        logger.debug(f"Created product {product.sku} (tax {payload.tax}%)")
        return UpsertOutcome.CREATED

    # =========================================================================
    # Contacts
    # =========================================================================

    def build_contact(self, customer: Customer) -> ContactPayload:
        return ContactPayload(
            name=customer.name or customer.email or FALLBACK_CONTACT_NAME,
            email=_or_none(customer.email),
            phone=_or_none(customer.phone),
            trade_name=_or_none(customer.company),
            code=_or_none(customer.dni),
            vatnumber=_or_none(customer.vat_number),
            address=_or_none(customer.address),
            city=_or_none(customer.city),
            postal_code=_or_none(customer.postal_code),
            province=_or_none(customer.province),
            country=customer.country or "ES",
            country_name=customer.country_name or "España",
        )

    async def _search_contact(self, customer: Customer) -> Optional[str]:
        lookups = (
            ("email", customer.email),
            ("code", customer.dni),
            ("vat_number", customer.vat_number),
        )
        for field_name, value in lookups:
            if not value:
                continue
            candidates = await self.connector.search_contacts(**{field_name: value})
            for contact in candidates:
                if getattr(contact, field_name) == value:
                    logger.debug(f"Matched contact {contact.id} by {field_name}")
                    return contact.id
        return None

    async def find_or_create_contact(self, customer: Optional[Customer]) -> Optional[str]:
        """Resolve the ledger contact id for a customer.

        Returns None for anonymous customers (no name and no email) and when
        the ledger could not be searched or written; the document then falls
        back to contact code or inline contact fields.
        """
        if customer is None or customer.is_anonymous:
            return None

        key = customer.email or customer.name
        cached = self.cache.contact(key)
        if cached:
            return cached

        try:
            contact_id = await self._search_contact(customer)
            if contact_id is None:
                contact_id = await self.connector.create_contact(self.build_contact(customer))
                if contact_id:
                    logger.debug(f"Created contact {customer.name or customer.email}")
        except LedgerApiError as e:
            logger.warning(
                f"Failed to resolve contact for {customer.name or customer.email}: {e}",
                extra_fields={"response_body": e.response_body},
            )
            return None

        if contact_id:
            self.cache.remember_contact(key, contact_id)
        return contact_id

    # =========================================================================
    # Documents
    # =========================================================================

    def build_item(self, item: LineItem, order: Order) -> DocumentItemPayload:
        rate = resolve_line_rate(item, order, self.cache.tax_code_for(item.sku), self.defaults)
        return DocumentItemPayload(
            name=item.name,
            desc=item.description,
            sku=item.sku,
            units=item.quantity,
            subtotal=line_subtotal(item, rate),
            discount=item.discount,
            tax=rate,
        )

    def build_document(self, order: Order, contact_id: Optional[str] = None) -> DocumentPayload:
        timestamp = to_epoch_seconds(order.date, self.timezone)
        payload = DocumentPayload(
            desc=f"{order.source.upper()} - {order.site_name or order.source} #{order.reference}",
            date=timestamp,
            due_date=timestamp,
            currency=order.currency or "EUR",
            items=[self.build_item(item, order) for item in order.items],
            tags=[t for t in (order.source, order.site_prefix, order.payment_method or order.payment_type) if t],
            sales_channel=self.cache.sales_channel_id(order.sales_channel or self.default_sales_channel),
            warehouse=self.cache.warehouse_id(order.warehouse or self.default_warehouse),
            notes=order.notes or f"Imported from {order.source}",
        )

        customer = order.customer
        if contact_id:
            payload.contact_id = contact_id
        elif customer is not None and customer.vat_number:
            payload.contact_code = customer.vat_number
        elif customer is not None:
            payload.contact_name = customer.name or FALLBACK_CONTACT_NAME
            payload.contact_email = customer.email
            payload.contact_address = customer.address
            payload.contact_city = customer.city
            payload.contact_cp = customer.postal_code
            payload.contact_province = customer.province
            payload.contact_country = customer.country or "ES"
            payload.contact_country_name = customer.country_name or "España"

        return payload

    def build_payment(self, order: Order) -> PaymentPayload:
        method = order.payment_method or order.payment_type
        return PaymentPayload(
            date=to_epoch_seconds(order.date, self.timezone),
            amount=order.total,
            desc=f"Pago {method or 'auto'}",
            payment_method_id=self.cache.payment_method_id(method),
        )

    async def pay_document(self, document_id: str, order: Order) -> bool:
        """Mark a document as paid. Failure is logged and reported as False."""
        try:
            await self.connector.pay_document(self.doc_type, document_id, self.build_payment(order))
        except Exception as e:
            logger.warning(f"Could not mark {self.doc_type.value} {document_id} as paid: {e}")
            return False
        logger.debug(f"Marked {self.doc_type.value} {document_id} as paid")
        return True

    async def create_document(self, order: Order) -> DocumentResult:
        """
        Create the ledger document for an order and mark it paid.

        Create-only: there is no search by order reference, so syncing the
        same date range twice produces duplicate documents.
        """
        contact_id = await self.find_or_create_contact(order.customer)
        payload = self.build_document(order, contact_id)

        try:
            document_id = await self.connector.create_document(self.doc_type, payload)
        except LedgerApiError as e:
            _log_ledger_error(f"create {self.doc_type.value} for {order.reference}", e)
            return DocumentResult(UpsertOutcome.ERROR, error=str(e))

        logger.debug(f"Created {self.doc_type.value} for order {order.reference}: {document_id}")

        paid = False
        if document_id and order.paid is not False:
            paid = await self.pay_document(document_id, order)
        return DocumentResult(UpsertOutcome.CREATED, document_id=document_id, paid=paid)
