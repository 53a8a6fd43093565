"""Destination routing.

Splits canonical products and orders between the primary and the secondary
ledger account by SKU:

- A product goes to the secondary ledger iff its sku is in the secondary set.
- An order goes to the secondary ledger iff ANY of its (surviving) line items
  has a secondary sku. Orders are never split between ledgers.
- Globally excluded skus (case-insensitive) are removed first. A product with
  an excluded sku is dropped; an order left with no items is dropped.

Input order is preserved in both outputs.
"""

from dataclasses import dataclass, field
from typing import Generic, Iterable, List, TypeVar

from core.models import Order, Product
from core.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RoutedRecords(Generic[T]):
    """Records split per destination, plus what was dropped."""
    primary: List[T] = field(default_factory=list)
    secondary: List[T] = field(default_factory=list)
    dropped: int = 0

    @property
    def total(self) -> int:
        return len(self.primary) + len(self.secondary)


class SkuRouter:
    """Routes records using the configured secondary and excluded sku lists.

    Secondary membership is an exact match; exclusion ignores case.
    """

    def __init__(self, secondary_skus: Iterable[str] = (), excluded_skus: Iterable[str] = ()):
        self.secondary_skus = frozenset(sku for sku in secondary_skus if sku)
        self.excluded_skus = frozenset(sku.lower() for sku in excluded_skus if sku)

    def is_excluded(self, sku: str) -> bool:
        return bool(sku) and sku.lower() in self.excluded_skus

    def is_secondary(self, sku: str) -> bool:
        return sku in self.secondary_skus

    def route_products(self, products: Iterable[Product]) -> RoutedRecords[Product]:
        routed: RoutedRecords[Product] = RoutedRecords()
        seen = set()

        for product in products:
            if self.is_excluded(product.sku):
                routed.dropped += 1
                logger.debug(f"Excluded product {product.sku}")
                continue

            if product.sku in seen:
                logger.warning(
                    f"Duplicate sku {product.sku} in product input; the later record updates the earlier one",
                    extra_fields={"sku": product.sku, "site": product.site_prefix},
                )
            seen.add(product.sku)

            if self.is_secondary(product.sku):
                routed.secondary.append(product)
            else:
                routed.primary.append(product)

        logger.info(
            f"Routed products: {len(routed.primary)} primary, "
            f"{len(routed.secondary)} secondary, {routed.dropped} excluded"
        )
        return routed

    def filter_order(self, order: Order) -> Order:
        """Return the order without excluded line items (same object if none removed)."""
        kept = [item for item in order.items if not self.is_excluded(item.sku)]
        if len(kept) == len(order.items):
            return order
        return order.model_copy(update={"items": kept})

    def route_orders(self, orders: Iterable[Order]) -> RoutedRecords[Order]:
        routed: RoutedRecords[Order] = RoutedRecords()

        for order in orders:
            filtered = self.filter_order(order)

            if not filtered.items:
                routed.dropped += 1
                logger.info(
                    f"Dropped order {order.reference}: every line item is excluded",
                    extra_fields={
                        "order_id": order.id,
                        "skus": order.skus,
                        "date": order.date.isoformat(),
                        "source": order.source,
                    },
                )
                continue

            if any(self.is_secondary(item.sku) for item in filtered.items):
                routed.secondary.append(filtered)
            else:
                routed.primary.append(filtered)

        logger.info(
            f"Routed orders: {len(routed.primary)} primary, "
            f"{len(routed.secondary)} secondary, {routed.dropped} dropped"
        )
        return routed


def route_products(
    products: Iterable[Product],
    secondary_skus: Iterable[str] = (),
    excluded_skus: Iterable[str] = (),
) -> RoutedRecords[Product]:
    return SkuRouter(secondary_skus, excluded_skus).route_products(products)


def route_orders(
    orders: Iterable[Order],
    secondary_skus: Iterable[str] = (),
    excluded_skus: Iterable[str] = (),
) -> RoutedRecords[Order]:
    return SkuRouter(secondary_skus, excluded_skus).route_orders(orders)
