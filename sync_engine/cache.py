"""Per-destination reference cache.

Snapshot of the ledger's existing products and reference entities, taken at
the start of every product sync and every order sync. Owned by exactly one
LedgerSession; never shared between destinations or runs.

Failure policy:
- Sales channels, warehouses, payment methods: a failed load leaves that map
  empty and the feature becomes "unmapped" (warning).
- Existing products: a failed load leaves the map empty (never partial) and
  is logged as an error plus an explicit degradation warning, because every
  product will then be treated as new.
"""

import asyncio
from typing import Dict, Optional

from connectors.ledger_base import LedgerConnector, LedgerProductRef
from core.observability import get_logger

logger = get_logger(__name__)


class ReferenceCache:
    """In-memory indexes of one ledger account."""

    def __init__(self, connector: LedgerConnector):
        self.connector = connector
        self.existing_products: Dict[str, LedgerProductRef] = {}
        self.existing_contacts: Dict[str, str] = {}
        self.sales_channels: Dict[str, str] = {}
        self.warehouses: Dict[str, str] = {}
        self.payment_methods: Dict[str, str] = {}
        self.products_loaded = False

    # =========================================================================
    # Loading
    # =========================================================================

    def reset(self) -> None:
        self.existing_products = {}
        self.existing_contacts = {}
        self.sales_channels = {}
        self.warehouses = {}
        self.payment_methods = {}
        self.products_loaded = False

    async def load_products(self) -> None:
        logger.info(f"Loading existing products from {self.connector.name} ledger...")
        try:
            refs = await self.connector.list_products()
        except Exception as e:
            self.existing_products = {}
            self.products_loaded = False
            logger.error(f"Failed to load existing products: {e}")
            logger.warning(
                "Product index unavailable: every product is treated as new and duplicates are possible"
            )
            return

        products = {}
        for ref in refs:
            products[ref.sku] = ref
        self.existing_products = products
        self.products_loaded = True
        logger.info(f"Loaded {len(products)} existing products")

    async def _load_named(self, label: str, loader, lowercase: bool = False) -> Dict[str, str]:
        try:
            refs = await loader()
        except Exception as e:
            logger.warning(f"Failed to load {label}: {e}; continuing without {label} mapping")
            return {}
        mapping = {}
        for ref in refs:
            key = ref.name.lower() if lowercase else ref.name
            mapping[key] = ref.id
        logger.debug(f"Loaded {len(mapping)} {label}")
        return mapping

    async def load_references(self) -> None:
        """Load the product index and all reference maps concurrently."""
        self.reset()
        _, channels, warehouses, methods = await asyncio.gather(
            self.load_products(),
            self._load_named("sales channels", self.connector.list_sales_channels),
            self._load_named("warehouses", self.connector.list_warehouses),
            self._load_named("payment methods", self.connector.list_payment_methods, lowercase=True),
        )
        self.sales_channels = channels
        self.warehouses = warehouses
        self.payment_methods = methods

    # =========================================================================
    # Lookups
    # =========================================================================

    def product(self, sku: str) -> Optional[LedgerProductRef]:
        return self.existing_products.get(sku)

    def tax_code_for(self, sku: str) -> Optional[str]:
        ref = self.existing_products.get(sku)
        return ref.tax_code if ref else None

    def remember_product(self, ref: LedgerProductRef) -> None:
        self.existing_products[ref.sku] = ref

    def contact(self, key: str) -> Optional[str]:
        return self.existing_contacts.get(key)

    def remember_contact(self, key: str, contact_id: str) -> None:
        self.existing_contacts[key] = contact_id

    def sales_channel_id(self, name: Optional[str]) -> Optional[str]:
        return self.sales_channels.get(name) if name else None

    def warehouse_id(self, name: Optional[str]) -> Optional[str]:
        return self.warehouses.get(name) if name else None

    def payment_method_id(self, name: Optional[str]) -> Optional[str]:
        return self.payment_methods.get(name.lower()) if name else None
