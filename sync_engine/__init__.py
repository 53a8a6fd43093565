"""Synchronization and reconciliation engine.

Routing, tax reconciliation, reference caching, create-or-update of ledger
records and the batch controller that drives them.
"""

from sync_engine.batch import LedgerSession, OrderSyncResult, ProductSyncResult
from sync_engine.router import RoutedRecords, SkuRouter, route_orders, route_products
from sync_engine.tax import TaxDefaults

__all__ = [
    "LedgerSession",
    "ProductSyncResult",
    "OrderSyncResult",
    "SkuRouter",
    "RoutedRecords",
    "route_products",
    "route_orders",
    "TaxDefaults",
]
