"""Source adapter tests: normalization, pagination and fail-soft aggregation."""

import asyncio
import json
from decimal import Decimal

from core.config import HotelConfig, SquareConfig, SumUpConfig, WooCommerceSiteConfig
from sources import HotelBookingSource, SquareSource, SumUpSource, WooCommerceSource, gather_orders, gather_products
from sources.base import SourceAdapter, implied_rate, strip_html, to_decimal
from sources.hotel_bookings import count_nights
from sources.square import (
    CASH_CLEARING,
    DEFAULT_SALES_CHANNEL,
    SQUARE_BALANCE,
    ledger_payment_method,
    money,
    payment_type,
    sales_channel_for_category,
)


def _site(**kwargs) -> WooCommerceSiteConfig:
    fields = dict(name="Shop", prefix="S1", url="https://shop.example.com", consumer_key="ck", consumer_secret="cs")
    fields.update(kwargs)
    return WooCommerceSiteConfig(**fields)


class StubResponse:
    def __init__(self, body, headers=None, status=200):
        self.status = status
        self._text = json.dumps(body)
        self.headers = headers or {}

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class StubSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return self.responses.pop(0)

    async def close(self):
        pass


class TestHelpers:

    def test_to_decimal(self):
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal("") == Decimal("0")
        assert to_decimal(None, Decimal("1")) == Decimal("1")
        assert to_decimal("n/a") == Decimal("0")

    def test_implied_rate(self):
        assert implied_rate(Decimal("100"), Decimal("21")) == Decimal("21")
        assert implied_rate(Decimal("9.62"), Decimal("0.38")) == Decimal("4")
        assert implied_rate(Decimal("10"), Decimal("0")) is None

    def test_strip_html(self):
        assert strip_html("<p>Hand <b>made</b></p>") == "Hand made"
        assert strip_html(None) == ""


class TestWooCommerce:

    def test_normalize_product(self):
        source = WooCommerceSource(_site(prices_include_tax=True, default_vat_rate=Decimal("10")))
        product = source.normalize_product({
            "id": 42,
            "sku": "",
            "name": "Olive oil",
            "short_description": "<p>Extra virgin</p>",
            "price": "12.10",
            "categories": [{"name": "Food"}],
            "tags": [{"name": "local"}],
            "stock_quantity": 7,
        })

        assert product.sku == "S1-42"
        assert product.description == "Extra virgin"
        assert product.price == Decimal("12.10")
        assert product.prices_include_tax
        assert product.default_vat_rate == Decimal("10")
        assert product.categories == ["Food"]
        assert product.stock == Decimal("7")

    def test_normalize_order(self):
        source = WooCommerceSource(_site())
        order = source.normalize_order({
            "id": 1042,
            "number": "1042",
            "status": "completed",
            "date_created": "2025-03-10T10:15:00",
            "total": "24.20",
            "total_tax": "4.20",
            "payment_method_title": "Stripe",
            "billing": {"first_name": "Anna", "last_name": "Puig", "email": "anna@example.com", "country": "FR"},
            "meta_data": [{"key": "_billing_dni", "value": "12345678z"}, {"key": "_billing_nif", "value": "ESB1"}],
            "line_items": [{"sku": "OIL", "name": "Olive oil", "quantity": 2, "price": 10, "total": "20.00", "total_tax": "4.20"}],
        })

        assert order.id == "1042"
        assert order.reference == "1042"
        assert order.paid is False
        assert order.subtotal == Decimal("20.00")
        assert order.customer.name == "Anna Puig"
        assert order.customer.dni == "12345678Z"
        assert order.customer.vat_number == "ESB1"
        assert order.customer.country_name == "Francia"
        item = order.items[0]
        assert item.total_with_tax == Decimal("24.20")
        assert item.tax_rate == Decimal("21")

    def test_customer_without_name(self):
        order = WooCommerceSource(_site()).normalize_order({
            "id": 1, "date_created": "2025-03-10T10:15:00", "billing": {}, "line_items": [],
        })
        assert order.customer.name == "Cliente"
        assert order.customer.country == "ES"

    def test_pagination_follows_total_pages(self):
        session = StubSession(
            StubResponse([{"id": 1, "sku": "A", "name": "A"}], {"X-WP-TotalPages": "2"}),
            StubResponse([{"id": 2, "sku": "B", "name": "B"}], {"X-WP-TotalPages": "2"}),
        )
        source = WooCommerceSource(_site(wpml_lang="es"), session=session)

        products = asyncio.run(source.fetch_products())

        assert [p.sku for p in products] == ["A", "B"]
        assert ("page", "2") in session.calls[1]["params"]
        assert ("lang", "es") in session.calls[0]["params"]
        assert session.calls[0]["url"] == "https://shop.example.com/wp-json/wc/v3/products"

    def test_malformed_record_is_skipped(self):
        session = StubSession(StubResponse([
            {"id": 1, "date_created": "2025-03-10T10:15:00", "line_items": []},
            {"id": 2},
        ]))
        orders = asyncio.run(WooCommerceSource(_site(), session=session).fetch_orders("2025-03-10", "2025-03-10"))
        assert [o.id for o in orders] == ["1"]


class TestSumUp:

    def test_tip_is_not_invoiced(self):
        order = SumUpSource(SumUpConfig(api_key="k")).normalize_transaction({
            "id": "abc",
            "transaction_code": "TX1",
            "timestamp": "2025-03-10T09:00:00Z",
            "amount": 13.10,
            "tip_amount": 1.00,
            "vat_amount": 2.10,
            "payment_type": "POS",
        })

        assert order.total == Decimal("12.10")
        assert order.reference == "TX1"
        assert order.items[0].sku == "SUMUP-TX1"
        assert order.items[0].total_with_tax == Decimal("12.10")
        assert order.items[0].tax_rate == Decimal("21")
        assert order.metadata["tip"] == "1.0"

    def test_cursor_pagination(self):
        first_page = {"items": [{"id": f"t{i}", "timestamp": "2025-03-10T09:00:00Z", "amount": 1} for i in range(100)]}
        session = StubSession(StubResponse(first_page), StubResponse({"items": []}))
        orders = asyncio.run(SumUpSource(SumUpConfig(api_key="k"), session=session).fetch_orders("2025-03-10", "2025-03-10"))

        assert len(orders) == 100
        assert ("oldest_ref", "t99") in session.calls[1]["params"]


class TestSquare:

    def test_category_mapping(self):
        assert sales_channel_for_category("04. Llibres") == "Cantir"
        assert sales_channel_for_category("07. hotel can bordoi") == "Hotel"
        assert sales_channel_for_category("Unknown") == DEFAULT_SALES_CHANNEL
        assert sales_channel_for_category(None) == DEFAULT_SALES_CHANNEL

    def test_payment_mapping(self):
        assert ledger_payment_method({"cash_details": {}}) == SQUARE_BALANCE
        assert ledger_payment_method({"cash_details": {"buyer_supplied_money": {}}}) == CASH_CLEARING
        assert ledger_payment_method({"card_details": {"card": {"card_brand": "VISA"}}}) == SQUARE_BALANCE
        assert payment_type({"card_details": {"card": {"card_brand": "VISA"}}}) == "Card (VISA)"

    def test_money_is_in_cents(self):
        assert money({"amount": 1210, "currency": "EUR"}) == Decimal("12.10")
        assert money(None) == Decimal("0")

    def test_normalize_payment_with_order(self):
        source = SquareSource(SquareConfig(access_token="t"))
        source.catalog_items["VAR1"] = {"name": "Wine", "category": "03. Vins Amrita", "sku": "VI-1", "description": ""}
        payment = {
            "id": "PAYMENT123456789",
            "created_at": "2025-03-10T20:00:00Z",
            "status": "COMPLETED",
            "order_id": "O1",
            "amount_money": {"amount": 1300, "currency": "EUR"},
            "tip_money": {"amount": 200, "currency": "EUR"},
            "card_details": {"card": {"card_brand": "VISA"}},
            "receipt_number": "R1",
        }
        square_order = {
            "taxes": [{"uid": "tax1", "percentage": "10"}],
            "line_items": [{
                "catalog_object_id": "VAR1",
                "name": "Wine",
                "quantity": "2",
                "gross_sales_money": {"amount": 1000},
                "total_tax_money": {"amount": 100},
                "total_money": {"amount": 1100},
                "applied_taxes": [{"tax_uid": "tax1"}],
            }],
        }

        order = source.normalize_payment(payment, square_order)

        assert order.reference == "R1"
        assert order.total == Decimal("13.00")
        assert order.paid
        assert order.sales_channel == "Restaurant i Bar"
        assert order.payment_method == SQUARE_BALANCE
        item = order.items[0]
        assert item.sku == "VI-1"
        assert item.price == Decimal("5")
        assert item.tax_rate == Decimal("10")
        assert item.discount == Decimal("0")

    def test_payment_without_order_gets_one_line(self):
        order = SquareSource(SquareConfig(access_token="t")).normalize_payment({
            "id": "PAYMENT123456789",
            "created_at": "2025-03-10T20:00:00Z",
            "status": "COMPLETED",
            "amount_money": {"amount": 500},
        })
        assert order.items[0].sku == "SQUARE-PAYMENT12345"
        assert order.items[0].total == Decimal("5")


class TestHotelBookings:

    def _source(self):
        return HotelBookingSource(HotelConfig(url="https://hotel.example.com", consumer_key="ck", consumer_secret="cs"))

    def test_count_nights(self):
        assert count_nights("2025-03-10", "2025-03-13") == 3
        assert count_nights("2025-03-10", "2025-03-10") == 1
        assert count_nights(None, "2025-03-10") == 1
        assert count_nights("soon", "later") == 1

    def test_rooms_and_services_use_one_sku(self):
        order = self._source().normalize_booking({
            "id": 77,
            "status": "confirmed",
            "check_in_date": "2025-03-10",
            "check_out_date": "2025-03-12",
            "date_created": "2025-02-01T10:00:00",
            "total_price": "242",
            "total_tax": "22",
            "customer": {"first_name": "Joan", "last_name": "Serra", "email": "joan@example.com"},
            "reserved_rooms": [{"room_type_title": "Double", "total_price": "220", "total_tax": "20"}],
            "reserved_services": [{"title": "Breakfast", "quantity": 2, "total_price": "22", "total_tax": "2"}],
        })

        assert order.paid is False
        assert order.customer.name == "Joan Serra"
        assert order.metadata["nights"] == 2
        assert {item.sku for item in order.items} == {"HOTEL-RESERVA"}
        room, service = order.items
        assert room.quantity == Decimal("2")
        assert room.price == Decimal("100")
        assert room.tax_rate == Decimal("10")
        assert service.quantity == Decimal("2")

    def test_booking_without_lines_gets_fallback_line(self):
        order = self._source().normalize_booking({
            "id": 78,
            "check_in_date": "2025-03-10",
            "check_out_date": "2025-03-11",
            "total_price": "110",
            "total_tax": "0",
        })
        assert len(order.items) == 1
        assert order.items[0].name == "Reserva Hotel #78"
        assert order.items[0].tax_rate == Decimal("10")
        assert order.customer.name == "Cliente Hotel"


class FailingSource(SourceAdapter):
    name = "broken"

    async def fetch_products(self):
        raise RuntimeError("connection reset")

    async def fetch_orders(self, date_from, date_to):
        raise RuntimeError("connection reset")


class StaticSource(SourceAdapter):
    name = "static"

    def __init__(self, products=(), orders=()):
        super().__init__()
        self.products = list(products)
        self.orders = list(orders)

    async def fetch_products(self):
        return self.products

    async def fetch_orders(self, date_from, date_to):
        return self.orders


class TestAggregation:

    def test_failing_source_contributes_nothing(self):
        from conftest import make_order, make_product

        good = StaticSource(products=[make_product("A")], orders=[make_order("A")])
        products = asyncio.run(gather_products([FailingSource(), good]))
        orders = asyncio.run(gather_orders([good, FailingSource()], "2025-03-10", "2025-03-10"))

        assert [p.sku for p in products] == ["A"]
        assert len(orders) == 1

    def test_source_without_catalog(self):
        assert asyncio.run(SumUpSource(SumUpConfig(api_key="k")).fetch_products()) == []
