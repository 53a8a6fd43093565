"""WooCommerce storefront adapter (REST API wc/v3).

Products and orders are read with basic auth (consumer key / secret) and
``x-wp-totalpages`` page counting. WPML multilingual sites get a ``lang``
parameter so only one translation of each product is returned.
"""

from typing import Any, Dict, List, Optional

import aiohttp

from core.config import WooCommerceSiteConfig
from core.models import Customer, LineItem, Order, Product
from core.observability import get_logger
from sources.base import SourceAdapter, country_name, implied_rate, strip_html, to_decimal

logger = get_logger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 1000
ORDER_STATUSES = ("completed", "processing")

DNI_META_KEYS = ("_billing_dni",)
VAT_META_KEYS = ("_billing_vat", "_billing_nif", "billing_vat", "_vat_number")


def _meta_value(meta_data: List[Dict[str, Any]], keys) -> str:
    for entry in meta_data or []:
        if entry.get("key") in keys and entry.get("value"):
            return str(entry["value"])
    return ""


class WooCommerceSource(SourceAdapter):
    """One WooCommerce site."""

    def __init__(self, site: WooCommerceSiteConfig, **kwargs):
        super().__init__(**kwargs)
        self.site = site
        self.name = f"woocommerce:{site.prefix}"
        self._auth = aiohttp.BasicAuth(site.consumer_key, site.consumer_secret or "")

    def _url(self, resource: str) -> str:
        return f"{self.site.url.rstrip('/')}/wp-json/wc/v3/{resource}"

    async def _get_all(self, resource: str, params: List[tuple]) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        page = 1

        while page <= MAX_PAGES:
            page_params = params + [("per_page", str(PAGE_SIZE)), ("page", str(page))]
            if self.site.wpml_lang:
                page_params.append(("lang", self.site.wpml_lang))

            data, headers = await self._get_json(self._url(resource), params=page_params, auth=self._auth)
            if not data:
                break
            records.extend(data)

            total_pages_header = headers.get("x-wp-totalpages") or headers.get("X-WP-TotalPages")
            try:
                total_pages = int(total_pages_header) if total_pages_header else 1
            except ValueError:
                total_pages = 0
            if total_pages <= 0 or total_pages > MAX_PAGES:
                logger.warning(f"Invalid total pages ({total_pages_header}) from {self.site.name}, stopping pagination")
                break

            if page >= total_pages:
                break
            page += 1
        else:
            logger.warning(f"Hit maximum pages limit ({MAX_PAGES}) for {self.site.name}")

        return records

    # =========================================================================
    # Products
    # =========================================================================

    async def fetch_products(self) -> List[Product]:
        lang = f" (lang={self.site.wpml_lang})" if self.site.wpml_lang else ""
        logger.info(f"Fetching products from {self.site.name}{lang}...")
        raw = await self._get_all("products", [("status", "publish")])
        return self._normalize_all(raw, self.normalize_product, "product")

    def normalize_product(self, data: Dict[str, Any]) -> Product:
        return Product(
            source="woocommerce",
            site_prefix=self.site.prefix,
            site_name=self.site.name,
            id=data.get("id"),
            sku=data.get("sku") or f"{self.site.prefix}-{data['id']}",
            name=data.get("name") or "",
            description=strip_html(data.get("short_description") or data.get("description")),
            price=to_decimal(data.get("price")),
            regular_price=to_decimal(data.get("regular_price")),
            sale_price=to_decimal(data.get("sale_price")),
            prices_include_tax=self.site.prices_include_tax,
            default_vat_rate=self.site.default_vat_rate,
            tax_class=data.get("tax_class") or None,
            categories=[c.get("name", "") for c in data.get("categories") or []],
            tags=[t.get("name", "") for t in data.get("tags") or []],
            stock=to_decimal(data.get("stock_quantity")),
            manage_stock=data.get("manage_stock"),
            weight=to_decimal(data.get("weight")),
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def fetch_orders(self, date_from: str, date_to: str) -> List[Order]:
        logger.info(f"Fetching orders from {self.site.name} ({date_from} to {date_to})...")
        params = [
            ("after", f"{date_from}T00:00:00"),
            ("before", f"{date_to}T23:59:59"),
        ] + [("status[]", status) for status in ORDER_STATUSES]
        raw = await self._get_all("orders", params)
        return self._normalize_all(raw, self.normalize_order, "order")

    def _customer(self, data: Dict[str, Any]) -> Customer:
        billing = data.get("billing") or {}
        meta = data.get("meta_data") or []
        name = f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip()
        return Customer(
            name=name or "Cliente",
            email=billing.get("email"),
            phone=billing.get("phone"),
            company=billing.get("company"),
            dni=_meta_value(meta, DNI_META_KEYS).upper(),
            vat_number=_meta_value(meta, VAT_META_KEYS),
            address=", ".join(a for a in (billing.get("address_1"), billing.get("address_2")) if a),
            city=billing.get("city"),
            postal_code=billing.get("postcode"),
            province=billing.get("state"),
            country=billing.get("country") or "ES",
            country_name=country_name(billing.get("country")),
        )

    def _line_item(self, item: Dict[str, Any]) -> LineItem:
        total = to_decimal(item.get("total"))
        tax = to_decimal(item.get("total_tax"))
        return LineItem(
            sku=item.get("sku") or f"{self.site.prefix}-{item.get('product_id')}",
            name=item.get("name") or "",
            quantity=item.get("quantity") or 1,
            price=to_decimal(item.get("price")),
            total=total,
            total_with_tax=total + tax,
            tax=tax,
            tax_rate=implied_rate(total, tax),
        )

    def normalize_order(self, data: Dict[str, Any]) -> Order:
        total = to_decimal(data.get("total"))
        tax = to_decimal(data.get("total_tax"))
        return Order(
            source="woocommerce",
            site_prefix=self.site.prefix,
            site_name=self.site.name,
            id=data["id"],
            order_number=data.get("number"),
            status=data.get("status"),
            date=data["date_created"],
            currency=data.get("currency") or "EUR",
            total=total,
            subtotal=total - tax,
            tax=tax,
            payment_method=data.get("payment_method_title") or None,
            customer=self._customer(data),
            items=[self._line_item(item) for item in data.get("line_items") or []],
            # Payments arrive separately from the bank feed
            paid=False,
        )
