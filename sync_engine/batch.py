"""Batch controller for one ledger account.

Each sync call runs Initialize -> Iterate -> Summarize:

1. Initialize: rebuild the reference cache from the ledger
2. Iterate: upsert each record in input order, awaiting every write and
   sleeping a fixed delay afterwards (products 0.1s, documents 0.2s)
3. Summarize: return additive outcome counts

A failing record becomes an ``errors`` count; the batch never stops early
and no exception escapes a sync call.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional

from connectors.ledger_base import LedgerConnector, LedgerDocumentType
from core.dates import DEFAULT_TIMEZONE
from core.models import Order, Product
from core.observability import get_logger, with_correlation
from sync_engine.cache import ReferenceCache
from sync_engine.tax import TaxDefaults
from sync_engine.upsert import UpsertEngine, UpsertOutcome

logger = get_logger(__name__)

PRODUCT_DELAY_SECONDS = 0.1
DOCUMENT_DELAY_SECONDS = 0.2


@dataclass
class ProductSyncResult:
    created: int = 0
    updated: int = 0
    errors: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        if outcome == UpsertOutcome.CREATED:
            self.created += 1
        elif outcome == UpsertOutcome.UPDATED:
            self.updated += 1
        else:
            self.errors += 1

    @property
    def synced(self) -> int:
        return self.created + self.updated

    def __add__(self, other: "ProductSyncResult") -> "ProductSyncResult":
        return ProductSyncResult(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            errors=self.errors + other.errors,
        )


@dataclass
class OrderSyncResult:
    created: int = 0
    errors: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        if outcome == UpsertOutcome.CREATED:
            self.created += 1
        else:
            self.errors += 1

    @property
    def synced(self) -> int:
        return self.created

    def __add__(self, other: "OrderSyncResult") -> "OrderSyncResult":
        return OrderSyncResult(
            created=self.created + other.created,
            errors=self.errors + other.errors,
        )


class LedgerSession:
    """Owns the connector, cache and upsert engine of one ledger account.

    Writes through one session are strictly sequential. The primary and the
    secondary sessions may run concurrently since they share no state.
    """

    def __init__(
        self,
        connector: LedgerConnector,
        defaults: Optional[TaxDefaults] = None,
        doc_type: LedgerDocumentType = LedgerDocumentType.INVOICE,
        timezone: str = DEFAULT_TIMEZONE,
        product_delay: float = PRODUCT_DELAY_SECONDS,
        document_delay: float = DOCUMENT_DELAY_SECONDS,
        default_sales_channel: Optional[str] = None,
        default_warehouse: Optional[str] = None,
        name: Optional[str] = None,
    ):
        self.name = name or connector.name
        self.connector = connector
        self.cache = ReferenceCache(connector)
        self.engine = UpsertEngine(
            connector,
            self.cache,
            defaults=defaults,
            doc_type=doc_type,
            timezone=timezone,
            default_sales_channel=default_sales_channel,
            default_warehouse=default_warehouse,
        )
        self.product_delay = product_delay
        self.document_delay = document_delay

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def sync_products(self, products: Iterable[Product]) -> ProductSyncResult:
        result = ProductSyncResult()

        with with_correlation(destination=self.name, phase="products"):
            self.cache.reset()
            await self.cache.load_products()

            for product in products:
                with with_correlation(sku=product.sku, source=product.source):
                    try:
                        outcome = await self.engine.upsert_product(product)
                    except Exception:
                        logger.exception(f"Unexpected error syncing product {product.sku}")
                        outcome = UpsertOutcome.ERROR
                    result.record(outcome)
                await self._pause(self.product_delay)

            logger.info(
                f"Product sync complete: {result.created} created, "
                f"{result.updated} updated, {result.errors} errors"
            )
        return result

    async def sync_orders(self, orders: Iterable[Order]) -> OrderSyncResult:
        result = OrderSyncResult()
        doc_label = self.engine.doc_type.value

        with with_correlation(destination=self.name, phase="orders"):
            await self.cache.load_references()

            for order in orders:
                with with_correlation(order_id=order.reference, source=order.source):
                    try:
                        outcome = (await self.engine.create_document(order)).outcome
                    except Exception:
                        logger.exception(f"Unexpected error creating {doc_label} for {order.reference}")
                        outcome = UpsertOutcome.ERROR
                    result.record(outcome)
                await self._pause(self.document_delay)

            logger.info(
                f"Order sync complete: {result.created} {doc_label}s created, {result.errors} errors"
            )
        return result

    async def close(self) -> None:
        await self.connector.close()
