"""Reference cache tests."""

import asyncio

from conftest import FakeLedger, api_error
from connectors.ledger_base import LedgerProductRef, NamedRef
from sync_engine.cache import ReferenceCache


def _ledger_with_references() -> FakeLedger:
    ledger = FakeLedger()
    ledger.products = [
        LedgerProductRef(id="p1", sku="A", tax_code="s_iva_21"),
        LedgerProductRef(id="p2", sku="BOK-1", tax_code="s_iva_4"),
    ]
    ledger.sales_channels = [NamedRef(id="sc1", name="Restaurant i Bar")]
    ledger.warehouses = [NamedRef(id="w1", name="Main")]
    ledger.payment_methods = [NamedRef(id="pm1", name="Square Balance")]
    return ledger


class TestReferenceCache:

    def test_load_references(self):
        cache = ReferenceCache(_ledger_with_references())
        asyncio.run(cache.load_references())

        assert cache.products_loaded
        assert cache.product("A").id == "p1"
        assert cache.tax_code_for("BOK-1") == "s_iva_4"
        assert cache.sales_channel_id("Restaurant i Bar") == "sc1"
        assert cache.warehouse_id("Main") == "w1"

    def test_payment_methods_are_case_insensitive(self):
        cache = ReferenceCache(_ledger_with_references())
        asyncio.run(cache.load_references())

        assert cache.payment_method_id("square balance") == "pm1"
        assert cache.payment_method_id("SQUARE BALANCE") == "pm1"
        assert cache.payment_method_id(None) is None

    def test_sales_channels_are_exact(self):
        cache = ReferenceCache(_ledger_with_references())
        asyncio.run(cache.load_references())

        assert cache.sales_channel_id("restaurant i bar") is None
        assert cache.sales_channel_id(None) is None

    def test_product_load_failure_leaves_empty_index(self):
        ledger = _ledger_with_references()
        ledger.fail["list_products"] = api_error(503)
        cache = ReferenceCache(ledger)
        asyncio.run(cache.load_references())

        assert cache.existing_products == {}
        assert not cache.products_loaded
        # Other maps still load
        assert cache.warehouse_id("Main") == "w1"

    def test_sales_channel_failure_only_empties_that_map(self):
        ledger = _ledger_with_references()
        ledger.fail["list_sales_channels"] = api_error(500)
        cache = ReferenceCache(ledger)
        asyncio.run(cache.load_references())

        assert cache.sales_channels == {}
        assert cache.product("A") is not None
        assert cache.payment_method_id("Square Balance") == "pm1"

    def test_reload_discards_previous_state(self):
        ledger = _ledger_with_references()
        cache = ReferenceCache(ledger)
        asyncio.run(cache.load_references())
        cache.remember_contact("anna@example.com", "c9")

        ledger.products = []
        asyncio.run(cache.load_references())

        assert cache.product("A") is None
        assert cache.contact("anna@example.com") is None

    def test_remember_product(self):
        cache = ReferenceCache(FakeLedger())
        cache.remember_product(LedgerProductRef(id="p9", sku="NEW"))

        assert cache.product("NEW").id == "p9"
        assert cache.tax_code_for("NEW") is None
