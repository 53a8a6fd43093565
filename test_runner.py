"""End-to-end sync run tests with in-memory sources and ledgers."""

import asyncio
from decimal import Decimal

import pytest

from conftest import FakeLedger, api_error, make_item, make_order, make_product
from core.config import AppConfig, LedgerDestinationConfig, SyncSettings, WooCommerceSiteConfig
from sources.base import SourceAdapter
from sync_engine.batch import LedgerSession, OrderSyncResult, ProductSyncResult
from sync_engine.cli import build_parser
from sync_engine.runner import SyncRunner, build_session


class StaticSource(SourceAdapter):
    name = "static"

    def __init__(self, products=(), orders=()):
        super().__init__()
        self.products = list(products)
        self.orders = list(orders)
        self.closed = False
        self.requested_range = None

    async def fetch_products(self):
        return self.products

    async def fetch_orders(self, date_from, date_to):
        self.requested_range = (date_from, date_to)
        return self.orders

    async def close(self):
        self.closed = True


class Harness:
    """Builds a runner whose sessions write to FakeLedgers."""

    def __init__(self, tmp_path, secondary_skus=(), excluded_skus=()):
        self.config = AppConfig(
            primary=LedgerDestinationConfig(name="primary", api_key="main"),
            secondary=LedgerDestinationConfig(name="secondary", api_key="books", default_vat_rate=Decimal("4")),
            secondary_skus=list(secondary_skus),
            excluded_skus=list(excluded_skus),
            sync=SyncSettings(product_delay=0, document_delay=0, exports_dir=tmp_path),
        )
        self.ledgers = {}

    def session_factory(self, destination, config):
        ledger = FakeLedger(destination.name)
        self.ledgers[destination.name] = ledger
        return LedgerSession(ledger, product_delay=0, document_delay=0, name=destination.name)

    def runner(self, source):
        return SyncRunner(self.config, sources=[source], session_factory=self.session_factory)


class TestSyncRunner:

    def test_products_and_orders_routed_per_destination(self, tmp_path):
        harness = Harness(tmp_path, secondary_skus=["BOK-1"], excluded_skus=["FEE"])
        source = StaticSource(
            products=[make_product("A"), make_product("BOK-1"), make_product("FEE")],
            orders=[
                make_order("A", id="1"),
                make_order("A", "BOK-1", id="2"),
                make_order("FEE", id="3"),
            ],
        )

        summary = asyncio.run(harness.runner(source).run(date_from="2025-03-01", date_to="2025-03-02"))

        primary, secondary = harness.ledgers["primary"], harness.ledgers["secondary"]
        assert [p["sku"] for p in primary.created_products] == ["A"]
        assert [p["sku"] for p in secondary.created_products] == ["BOK-1"]
        assert len(primary.created_documents) == 1
        assert len(secondary.created_documents) == 1
        assert summary.products == {
            "primary": ProductSyncResult(created=1),
            "secondary": ProductSyncResult(created=1),
        }
        assert summary.orders["secondary"] == OrderSyncResult(created=1)
        assert summary.orders_dropped == 1
        assert summary.errors == 0
        assert source.requested_range == ("2025-03-01", "2025-03-02")

    def test_sessions_and_sources_are_closed(self, tmp_path):
        harness = Harness(tmp_path)
        source = StaticSource(products=[make_product("A")])

        asyncio.run(harness.runner(source).run(sync_sales=False))

        assert harness.ledgers["primary"].closed
        assert source.closed

    def test_no_secondary_session_without_secondary_skus(self, tmp_path):
        harness = Harness(tmp_path)
        asyncio.run(harness.runner(StaticSource(orders=[make_order("A")])).run(sync_products=False))
        assert list(harness.ledgers) == ["primary"]

    def test_excel_only_makes_no_ledger_calls(self, tmp_path):
        harness = Harness(tmp_path)
        source = StaticSource(products=[make_product("A")], orders=[make_order(items=[make_item("A")])])

        summary = asyncio.run(harness.runner(source).run(excel_only=True))

        assert harness.ledgers == {}
        assert summary.products == {}
        assert sorted(p.name.split("_2")[0] for p in summary.exports) == ["facturas", "productos", "resumen_ventas"]
        assert all(p.exists() for p in summary.exports)

    def test_item_errors_are_counted(self, tmp_path):
        harness = Harness(tmp_path)
        original = harness.session_factory

        def failing_factory(destination, config):
            session = original(destination, config)
            session.connector.fail["create_document"] = api_error(400)
            return session

        runner = SyncRunner(harness.config, sources=[StaticSource(orders=[make_order()])], session_factory=failing_factory)
        summary = asyncio.run(runner.run(sync_products=False))

        assert summary.orders["primary"] == OrderSyncResult(created=0, errors=1)
        assert summary.errors == 1

    def test_default_range_ends_yesterday(self, tmp_path):
        from core.dates import default_range

        harness = Harness(tmp_path)
        source = StaticSource()
        summary = asyncio.run(harness.runner(source).run(sync_products=False))

        assert (summary.date_from, summary.date_to) == default_range(1, harness.config.sync.timezone)
        assert source.requested_range == (summary.date_from, summary.date_to)


class TestCommandLine:

    def test_flags(self):
        args = build_parser().parse_args(["--sales", "--from", "2025-03-01", "--to", "2025-03-31", "--excel-only"])
        assert args.sales and not args.products
        assert args.date_from == "2025-03-01"
        assert args.excel_only

    def test_rejects_bad_dates(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--from", "01/03/2025"])

    def test_exits_non_zero_on_config_errors(self, monkeypatch):
        from sync_engine import cli

        config = AppConfig(
            primary=LedgerDestinationConfig(name="primary"),
            secondary=LedgerDestinationConfig(name="secondary"),
        )
        monkeypatch.setattr(cli, "load_config", lambda: config)
        monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)

        assert cli.main([]) == 1

    def test_exits_non_zero_on_unparseable_setting(self, monkeypatch):
        from sync_engine import cli

        monkeypatch.setenv("SYNC_DAYS_BACK", "two")
        monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)

        assert cli.main([]) == 1


class TestBuildSession:

    def _config(self, secondary_rate=None):
        return AppConfig(
            primary=LedgerDestinationConfig(name="primary", api_key="main"),
            secondary=LedgerDestinationConfig(name="secondary", api_key="books", vat_rate=secondary_rate),
            secondary_skus=["BOK-1"],
            woocommerce=[WooCommerceSiteConfig(
                name="S1", prefix="S1", url="https://shop.example.com",
                consumer_key="ck", consumer_secret="cs", prices_include_tax=True,
            )],
        )

    def test_secondary_rate_applies_to_products_and_lines(self):
        config = self._config(secondary_rate=Decimal("4"))
        session = build_session(config.secondary, config)

        product = make_product("BOK-1", site_prefix="S1", price=Decimal("20.80"),
                               prices_include_tax=True, default_vat_rate=Decimal("21"))
        payload = session.engine.build_product(product, None).to_wire()
        assert payload["tax"] == 4.0
        assert payload["price"] == 20.0

        item = session.engine.build_item(make_item("BOK-1", total_with_tax=Decimal("20.80")), make_order("BOK-1"))
        assert item.to_wire()["tax"] == 4.0

    def test_primary_keeps_site_rates(self):
        config = self._config(secondary_rate=Decimal("4"))
        session = build_session(config.primary, config)

        product = make_product("A", site_prefix="S1", price=Decimal("12.10"), prices_include_tax=True)
        assert session.engine.build_product(product, None).to_wire()["tax"] == 21.0

    def test_unset_secondary_rate_falls_back_to_site_rate(self):
        config = self._config()
        session = build_session(config.secondary, config)

        product = make_product("BOK-1", site_prefix="S1", price=Decimal("12.10"), prices_include_tax=True)
        assert session.engine.build_product(product, None).to_wire()["tax"] == 21.0
