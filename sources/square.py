"""Square point-of-sale adapter.

Completed payments are read for the range and, when a payment references a
Square order, the order is fetched for its line items and tax rates.
Amounts are integer cents in the API.

Each line's catalog category picks a ledger sales channel (the channel
decides the ledger's income account), and the payment kind picks the ledger
payment account.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import SquareConfig
from core.models import Customer, LineItem, Order
from core.observability import get_logger
from sources.base import SourceAdapter, SourceError, implied_rate, to_decimal

logger = get_logger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 1000

# Square catalog category -> ledger sales channel
CATEGORY_SALES_CHANNELS = {
    "00. Begudes Bar Amrita": "Restaurant i Bar",
    "01. Tapes Bar Amrita": "Restaurant i Bar",
    "02. Restaurant Amrita": "Restaurant i Bar",
    "02. Entrepans Amrita": "Restaurant i Bar",
    "03. Vins Amrita": "Restaurant i Bar",
    "04. Llibres": "Cantir",
    "05. Artesanies": "Cantir",
    "07. Hotel Can Bordoi": "Hotel",
}
DEFAULT_SALES_CHANNEL = "Restaurant i Bar"

# Ledger payment accounts
CASH_CLEARING = "Square Cash Clearing"
OTHER_CLEARING = "Square Other Payments Clearing"
SQUARE_BALANCE = "Square Balance"


def sales_channel_for_category(category: Optional[str]) -> str:
    """Ledger sales channel for a Square category (exact, then case-insensitive)."""
    if not category:
        return DEFAULT_SALES_CHANNEL
    if category in CATEGORY_SALES_CHANNELS:
        return CATEGORY_SALES_CHANNELS[category]
    lowered = category.lower()
    for name, channel in CATEGORY_SALES_CHANNELS.items():
        if name.lower() == lowered:
            return channel
    return DEFAULT_SALES_CHANNEL


def ledger_payment_method(payment: Dict[str, Any]) -> str:
    if payment.get("cash_details"):
        return CASH_CLEARING
    if payment.get("bank_account_details") or payment.get("external_details"):
        return OTHER_CLEARING
    # Card, wallet and buy-now-pay-later settle to the Square balance
    return SQUARE_BALANCE


def payment_type(payment: Dict[str, Any]) -> str:
    if payment.get("card_details"):
        brand = ((payment["card_details"].get("card") or {}).get("card_brand")) or "Unknown"
        return f"Card ({brand})"
    if payment.get("cash_details"):
        return "Cash"
    if payment.get("bank_account_details"):
        return "Bank Transfer"
    if payment.get("external_details"):
        return payment["external_details"].get("type") or "External"
    if payment.get("source_type") == "SQUARE_ACCOUNT":
        return "Square Account"
    return "Square"


def money(value: Optional[Dict[str, Any]]) -> Decimal:
    """Square money object (integer minor units) to a decimal amount."""
    if not value or not value.get("amount"):
        return Decimal("0")
    return Decimal(int(value["amount"])) / 100


class SquareSource(SourceAdapter):
    name = "square"

    def __init__(self, config: SquareConfig, **kwargs):
        super().__init__(**kwargs)
        self.config = config
        # catalog object id (item or variation) -> info
        self.catalog_items: Dict[str, Dict[str, Any]] = {}
        self.categories: Dict[str, str] = {}

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
            "Square-Version": self.config.api_version,
        }

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _list_cursor(self, path: str, key: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        cursor = None
        for _ in range(MAX_PAGES):
            page_params = dict(params)
            if cursor:
                page_params["cursor"] = cursor
            data, _ = await self._get_json(self._url(path), params=page_params, headers=self._headers())
            data = data or {}
            records.extend(data.get(key) or [])
            cursor = data.get("cursor")
            if not cursor:
                break
        else:
            logger.warning(f"Hit maximum pages limit ({MAX_PAGES}) for Square {path}")
        return records

    # =========================================================================
    # Catalog
    # =========================================================================

    async def load_catalog(self) -> None:
        """Load categories and items; failure only loses category mapping."""
        logger.info("Loading Square catalog...")
        try:
            categories = await self._list_cursor(
                "catalog/list", "objects", {"types": "CATEGORY", "limit": str(PAGE_SIZE)}
            )
            for obj in categories:
                if obj.get("type") == "CATEGORY" and obj.get("category_data"):
                    self.categories[obj["id"]] = obj["category_data"].get("name")

            items = await self._list_cursor(
                "catalog/list", "objects", {"types": "ITEM", "limit": str(PAGE_SIZE)}
            )
        except SourceError as e:
            logger.warning(f"Could not load Square catalog: {e}")
            return

        for obj in items:
            item_data = obj.get("item_data")
            if obj.get("type") != "ITEM" or not item_data:
                continue
            category_id = item_data.get("category_id") or (item_data.get("reporting_category") or {}).get("id")
            info = {
                "name": item_data.get("name"),
                "category": self.categories.get(category_id) if category_id else None,
                "description": item_data.get("description") or "",
                "sku": "",
            }
            self.catalog_items[obj["id"]] = info
            for variation in item_data.get("variations") or []:
                variation_data = variation.get("item_variation_data") or {}
                self.catalog_items[variation["id"]] = dict(
                    info,
                    sku=variation_data.get("sku") or "",
                    variation_name=variation_data.get("name"),
                )

        logger.info(f"Loaded {len(self.catalog_items)} catalog items from Square")

    # =========================================================================
    # Payments
    # =========================================================================

    async def fetch_orders(self, date_from: str, date_to: str) -> List[Order]:
        await self.load_catalog()

        logger.info(f"Fetching Square payments ({date_from} to {date_to})...")
        params = {
            "begin_time": f"{date_from}T00:00:00Z",
            "end_time": f"{date_to}T23:59:59Z",
            "sort_order": "ASC",
            "limit": str(PAGE_SIZE),
        }
        if self.config.location_id:
            params["location_id"] = self.config.location_id

        payments = [
            p for p in await self._list_cursor("payments", "payments", params)
            if p.get("status") == "COMPLETED"
        ]

        orders = []
        for payment in payments:
            square_order = None
            if payment.get("order_id"):
                try:
                    data, _ = await self._get_json(
                        self._url(f"orders/{payment['order_id']}"), headers=self._headers()
                    )
                    square_order = (data or {}).get("order")
                except SourceError as e:
                    logger.warning(f"Could not fetch order {payment['order_id']} for payment {payment['id']}: {e}")
            orders.extend(self._normalize_all(
                [payment], lambda p, o=square_order: self.normalize_payment(p, o), "payment"
            ))
        return orders

    def normalize_line_item(self, item: Dict[str, Any], tax_rates: Dict[str, Decimal]) -> LineItem:
        quantity = to_decimal(item.get("quantity"), Decimal("1")) or Decimal("1")
        gross = money(item.get("gross_sales_money"))
        discount = money(item.get("total_discount_money"))
        tax = money(item.get("total_tax_money"))
        with_tax = money(item.get("total_money"))
        net = gross - discount

        catalog_id = item.get("catalog_object_id")
        info = self.catalog_items.get(catalog_id) if catalog_id else None
        variation_name = item.get("variation_name")

        if info and info.get("sku"):
            sku = info["sku"]
        elif catalog_id:
            sku = f"SQUARE-{catalog_id[:12]}"
        elif variation_name:
            sku = "SQUARE-" + "-".join(variation_name.split())[:20]
        else:
            sku = f"SQUARE-{item.get('uid') or 'ITEM'}"

        rate = None
        for applied in item.get("applied_taxes") or []:
            rate = tax_rates.get(applied.get("tax_uid"))
            break
        if rate is None:
            rate = implied_rate(net, tax)

        return LineItem(
            sku=sku,
            name=item.get("name") or (info or {}).get("name") or "Square Item",
            description=variation_name or (info or {}).get("variation_name") or item.get("note") or "",
            quantity=quantity,
            price=net / quantity,
            total=net,
            total_with_tax=with_tax,
            tax=tax,
            tax_rate=rate,
            # total_money already nets out discounts
            discount=0,
            category=(info or {}).get("category"),
        )

    def normalize_payment(self, payment: Dict[str, Any], square_order: Optional[Dict[str, Any]] = None) -> Order:
        amount = money(payment.get("amount_money"))
        tip = money(payment.get("tip_money"))

        tax_rates: Dict[str, Decimal] = {}
        for tax in (square_order or {}).get("taxes") or []:
            if tax.get("uid") and tax.get("percentage"):
                tax_rates[tax["uid"]] = Decimal(str(tax["percentage"]))

        line_items = (square_order or {}).get("line_items") or []
        if line_items:
            items = [self.normalize_line_item(item, tax_rates) for item in line_items]
        else:
            net_amount = amount - tip
            items = [LineItem(
                sku=f"SQUARE-{payment['id'][:12]}",
                name=payment.get("note") or "Square POS Sale",
                quantity=1,
                price=net_amount,
                total=net_amount,
                total_with_tax=net_amount,
            )]

        customer = None
        buyer_email = payment.get("buyer_email_address")
        customer_id = (square_order or {}).get("customer_id")
        if buyer_email or customer_id:
            customer = Customer(
                email=buyer_email,
                name=f"Square Customer {customer_id[:8]}" if customer_id else "",
            )

        total_with_tax = sum((item.total_with_tax or item.total for item in items), Decimal("0"))
        total_tax = sum((item.tax for item in items), Decimal("0"))
        category = next((item.category for item in items if item.category), None)

        return Order(
            source="square",
            site_prefix="SQUARE",
            site_name="Square",
            id=payment["id"],
            order_number=payment.get("receipt_number") or payment["id"][:12],
            transaction_code=payment["id"],
            status=payment.get("status"),
            date=payment["created_at"],
            currency=(payment.get("amount_money") or {}).get("currency") or "EUR",
            total=total_with_tax + tip,
            subtotal=total_with_tax - total_tax,
            tax=total_tax,
            payment_method=ledger_payment_method(payment),
            payment_type=payment_type(payment),
            customer=customer,
            items=items,
            paid=payment.get("status") == "COMPLETED",
            sales_channel=sales_channel_for_category(category),
            metadata={
                "square_payment_id": payment["id"],
                "square_order_id": payment.get("order_id"),
                "square_location_id": payment.get("location_id"),
                "receipt_url": payment.get("receipt_url"),
                "tip": str(tip),
            },
        )
