"""Sync run orchestration.

One run is: fetch from every source, write the import spreadsheets, route
by sku, then push each destination's share through its own LedgerSession.

Phases run in order (products, then orders). Within a phase the primary and
secondary sessions run concurrently; each session writes sequentially.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from connectors.holded import HoldedConnector
from connectors.ledger_base import LedgerDocumentType
from core.config import AppConfig, LedgerDestinationConfig
from core.dates import default_range
from core.models import Order, Product
from core.observability import get_logger, with_correlation
from exports import SpreadsheetExporter
from sources import SourceAdapter, build_sources, gather_orders, gather_products
from sync_engine.batch import LedgerSession, OrderSyncResult, ProductSyncResult
from sync_engine.router import SkuRouter
from sync_engine.tax import TaxDefaults

logger = get_logger(__name__)

SessionFactory = Callable[[LedgerDestinationConfig, AppConfig], LedgerSession]


@dataclass
class RunSummary:
    run_id: str
    date_from: str
    date_to: str
    products_fetched: int = 0
    orders_fetched: int = 0
    orders_dropped: int = 0
    products: Dict[str, ProductSyncResult] = field(default_factory=dict)
    orders: Dict[str, OrderSyncResult] = field(default_factory=dict)
    exports: List[Path] = field(default_factory=list)
    export_errors: int = 0

    @property
    def errors(self) -> int:
        return (
            sum(r.errors for r in self.products.values())
            + sum(r.errors for r in self.orders.values())
            + self.export_errors
        )

    def to_dict(self) -> Dict:
        return {
            "run_id": self.run_id,
            "date_from": self.date_from,
            "date_to": self.date_to,
            "products_fetched": self.products_fetched,
            "orders_fetched": self.orders_fetched,
            "orders_dropped": self.orders_dropped,
            "products": {k: vars(v) for k, v in self.products.items()},
            "orders": {k: vars(v) for k, v in self.orders.items()},
            "exports": [str(p) for p in self.exports],
            "errors": self.errors,
        }


def build_session(destination: LedgerDestinationConfig, config: AppConfig) -> LedgerSession:
    """LedgerSession talking to one Holded account."""
    connector = HoldedConnector.from_api_key(
        destination.api_key,
        name=destination.name,
        base_url=destination.base_url,
        timeout_seconds=destination.timeout_seconds,
    )
    defaults = TaxDefaults(
        default_rate=destination.default_vat_rate,
        account_rate=destination.vat_rate,
        site_rates=config.site_vat_rates(),
        source_rates=config.source_vat_rates(),
    )
    return LedgerSession(
        connector,
        defaults=defaults,
        doc_type=LedgerDocumentType(destination.doc_type),
        timezone=config.sync.timezone,
        product_delay=config.sync.product_delay,
        document_delay=config.sync.document_delay,
        default_sales_channel=destination.sales_channel or None,
        default_warehouse=destination.warehouse or None,
        name=destination.name,
    )


class SyncRunner:
    """Runs one sync over a date range.

    ``sources`` and ``session_factory`` default to the configured adapters
    and Holded sessions; tests pass their own.
    """

    def __init__(
        self,
        config: AppConfig,
        sources: Optional[Sequence[SourceAdapter]] = None,
        session_factory: SessionFactory = build_session,
        exporter: Optional[SpreadsheetExporter] = None,
    ):
        self.config = config
        self.sources = list(sources) if sources is not None else build_sources(config)
        self.session_factory = session_factory
        self.router = SkuRouter(config.secondary_skus, config.excluded_skus)
        self.exporter = exporter or SpreadsheetExporter(
            config.sync.exports_dir,
            default_vat_rate=config.sync.default_vat_rate,
            numbering_format=config.primary.numbering_format,
            timezone=config.sync.timezone,
        )

    def _sessions(self) -> Dict[str, LedgerSession]:
        sessions = {"primary": self.session_factory(self.config.primary, self.config)}
        if self.config.has_secondary:
            sessions["secondary"] = self.session_factory(self.config.secondary, self.config)
        return sessions

    def _export(self, summary: RunSummary, write, records, label: str) -> None:
        try:
            summary.exports.append(write(records))
        except Exception as e:
            logger.error(f"Failed to export {label}: {e}")
            summary.export_errors += 1

    async def _sync_products(
        self, summary: RunSummary, products: List[Product], sessions: Dict[str, LedgerSession], excel_only: bool
    ) -> None:
        routed = self.router.route_products(products)
        self._export(summary, self.exporter.export_products, routed.primary + routed.secondary, "products")
        if excel_only:
            return

        shares = {"primary": routed.primary, "secondary": routed.secondary}
        names = [name for name in sessions if shares[name]]
        results = await asyncio.gather(*(sessions[name].sync_products(shares[name]) for name in names))
        summary.products.update(zip(names, results))

    async def _sync_orders(
        self, summary: RunSummary, orders: List[Order], sessions: Dict[str, LedgerSession], excel_only: bool
    ) -> None:
        routed = self.router.route_orders(orders)
        summary.orders_dropped = routed.dropped
        kept = routed.primary + routed.secondary
        self._export(summary, self.exporter.export_invoices, kept, "invoices")
        self._export(summary, self.exporter.export_sales_summary, kept, "sales summary")
        if excel_only:
            return

        shares = {"primary": routed.primary, "secondary": routed.secondary}
        names = [name for name in sessions if shares[name]]
        results = await asyncio.gather(*(sessions[name].sync_orders(shares[name]) for name in names))
        summary.orders.update(zip(names, results))

    async def run(
        self,
        sync_products: bool = True,
        sync_sales: bool = True,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        excel_only: bool = False,
    ) -> RunSummary:
        default_from, default_to = default_range(self.config.sync.days_back, self.config.sync.timezone)
        summary = RunSummary(
            run_id=uuid.uuid4().hex[:12],
            date_from=date_from or default_from,
            date_to=date_to or default_to,
        )

        sessions: Dict[str, LedgerSession] = {} if excel_only else self._sessions()

        with with_correlation(run_id=summary.run_id):
            logger.info(
                f"Starting sync run ({summary.date_from} to {summary.date_to}), "
                f"destinations: {', '.join(sessions) or 'none (excel only)'}"
            )
            try:
                if sync_products:
                    with with_correlation(phase="products"):
                        products = await gather_products(self.sources)
                        summary.products_fetched = len(products)
                        await self._sync_products(summary, products, sessions, excel_only)

                if sync_sales:
                    with with_correlation(phase="orders"):
                        orders = await gather_orders(self.sources, summary.date_from, summary.date_to)
                        summary.orders_fetched = len(orders)
                        await self._sync_orders(summary, orders, sessions, excel_only)
            finally:
                for session in sessions.values():
                    await session.close()
                for source in self.sources:
                    await source.close()

            logger.info(
                f"Sync run finished: {summary.products_fetched} products and "
                f"{summary.orders_fetched} orders fetched, {summary.errors} errors",
                extra_fields=summary.to_dict(),
            )
        return summary
