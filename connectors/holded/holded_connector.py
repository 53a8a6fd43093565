"""Holded Ledger Connector.

Implements the LedgerConnector interface for Holded (invoicing API v1).
"""

from typing import List, Optional

from connectors.holded.holded_client import HoldedApiClient, HoldedApiConfig
from connectors.holded.holded_models import HoldedContact, HoldedNamedEntity, HoldedProduct
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
from core.observability import get_logger

logger = get_logger(__name__)


class HoldedConnector(LedgerConnector):
    """Holded connector implementation.

    One instance per ledger account. The primary and secondary accounts use
    separate instances with their own API keys.
    """

    def __init__(self, api_client: HoldedApiClient, name: str = "primary"):
        self._api_client = api_client
        self.name = name

    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        name: str = "primary",
        base_url: Optional[str] = None,
        timeout_seconds: int = 30,
    ) -> "HoldedConnector":
        config = HoldedApiConfig(api_key=api_key, timeout_seconds=timeout_seconds)
        if base_url:
            config.base_url = base_url
        return cls(HoldedApiClient(config), name=name)

    async def close(self) -> None:
        await self._api_client.disconnect()

    # =========================================================================
    # Reference Reads
    # =========================================================================

    async def list_products(self) -> List[LedgerProductRef]:
        results = await self._api_client.list_all("products")

        products = []
        for data in results:
            p = HoldedProduct.model_validate(data)
            if not p.sku:
                continue
            products.append(LedgerProductRef(
                id=p.id,
                sku=p.sku,
                name=p.name or "",
                tax_code=p.tax_code,
            ))
        return products

    async def _list_named(self, endpoint: str) -> List[NamedRef]:
        results = await self._api_client.list_all(endpoint)
        refs = []
        for data in results:
            entity = HoldedNamedEntity.model_validate(data)
            if entity.name:
                refs.append(NamedRef(id=entity.id, name=entity.name))
        return refs

    async def list_sales_channels(self) -> List[NamedRef]:
        return await self._list_named("saleschannels")

    async def list_warehouses(self) -> List[NamedRef]:
        return await self._list_named("warehouses")

    async def list_payment_methods(self) -> List[NamedRef]:
        return await self._list_named("paymentmethods")

    # =========================================================================
    # Contacts
    # =========================================================================

    async def search_contacts(
        self,
        email: Optional[str] = None,
        code: Optional[str] = None,
        vat_number: Optional[str] = None,
    ) -> List[LedgerContactRef]:
        params = {}
        if email:
            params["email"] = email
        if code:
            params["code"] = code
        if vat_number:
            params["vatnumber"] = vat_number
        if not params:
            return []

        results = await self._api_client.list("contacts", params=params)

        contacts = []
        for data in results:
            c = HoldedContact.model_validate(data)
            contacts.append(LedgerContactRef(
                id=c.id,
                name=c.name or "",
                email=c.email or "",
                code=c.code or "",
                vat_number=c.vatnumber or "",
            ))
        return contacts

    async def create_contact(self, payload: ContactPayload) -> Optional[str]:
        response = await self._api_client.create("contacts", payload.to_wire())
        return response.get("id")

    # =========================================================================
    # Products
    # =========================================================================

    async def create_product(self, payload: ProductPayload) -> str:
        response = await self._api_client.create("products", payload.to_wire())
        return response.get("id")

    async def update_product(self, product_id: str, payload: LedgerPayload) -> None:
        await self._api_client.update("products", product_id, payload.to_wire())

    # =========================================================================
    # Documents
    # =========================================================================

    async def create_document(
        self,
        doc_type: LedgerDocumentType,
        payload: DocumentPayload,
    ) -> Optional[str]:
        response = await self._api_client.create(f"documents/{doc_type.value}", payload.to_wire())
        document_id = response.get("id")
        logger.debug(f"Created {doc_type.value} {document_id}")
        return document_id

    async def pay_document(
        self,
        doc_type: LedgerDocumentType,
        document_id: str,
        payload: PaymentPayload,
    ) -> None:
        await self._api_client.post_action(
            f"documents/{doc_type.value}",
            document_id,
            "pay",
            payload.to_wire(),
        )
