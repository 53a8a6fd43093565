"""SumUp card terminal adapter.

SumUp's transaction history has no line items, so every successful
transaction becomes an order with one synthetic line whose sku is
``SUMUP-{transaction_code}``. Tips are excluded from the invoiced amount.
"""

from typing import Any, Dict, List

from core.config import SumUpConfig
from core.models import LineItem, Order
from core.observability import get_logger
from sources.base import SourceAdapter, implied_rate, to_decimal

logger = get_logger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 1000


class SumUpSource(SourceAdapter):
    name = "sumup"

    def __init__(self, config: SumUpConfig, **kwargs):
        super().__init__(**kwargs)
        self.config = config

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    async def fetch_orders(self, date_from: str, date_to: str) -> List[Order]:
        logger.info(f"Fetching SumUp transactions ({date_from} to {date_to})...")
        url = f"{self.config.base_url.rstrip('/')}/me/transactions/history"
        transactions: List[Dict[str, Any]] = []
        oldest_ref = None

        for _ in range(MAX_PAGES):
            params = [
                ("limit", str(PAGE_SIZE)),
                ("oldest_time", f"{date_from}T00:00:00Z"),
                ("newest_time", f"{date_to}T23:59:59Z"),
                ("statuses[]", "SUCCESSFUL"),
            ]
            if oldest_ref:
                params.append(("oldest_ref", oldest_ref))

            data, _ = await self._get_json(url, params=params, headers=self._headers())
            items = (data or {}).get("items") or []
            transactions.extend(items)
            logger.debug(f"Fetched {len(items)} transactions from SumUp")

            if len(items) < PAGE_SIZE:
                break
            oldest_ref = items[-1]["id"]
        else:
            logger.warning(f"Hit maximum pages limit ({MAX_PAGES}) for SumUp")

        return self._normalize_all(transactions, self.normalize_transaction, "transaction")

    def normalize_transaction(self, tx: Dict[str, Any]) -> Order:
        amount = to_decimal(tx.get("amount"))
        tip = to_decimal(tx.get("tip_amount"))
        vat = to_decimal(tx.get("vat_amount"))
        with_tax = amount - tip
        net = with_tax - vat
        code = tx.get("transaction_code") or tx["id"]
        summary = tx.get("product_summary")

        return Order(
            source="sumup",
            site_name="SumUp",
            id=tx["id"],
            transaction_code=code,
            status=tx.get("status"),
            date=tx["timestamp"],
            currency=tx.get("currency") or "EUR",
            total=with_tax,
            subtotal=net,
            tax=vat,
            payment_type=tx.get("payment_type"),
            items=[LineItem(
                sku=f"SUMUP-{code}",
                name=summary or "Point of Sale",
                quantity=1,
                price=net,
                total=net,
                total_with_tax=with_tax,
                tax=vat,
                tax_rate=implied_rate(net, vat),
            )],
            metadata={
                "card_type": (tx.get("card") or {}).get("type"),
                "tip": str(tip),
            },
        )
