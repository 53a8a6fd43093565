"""MotoPress Hotel Booking adapter (``/wp-json/mphb/v1/bookings``).

Every room and service line is booked against one ledger product
(``HOTEL-RESERVA`` by default) so all stays post to the same income account.
Room lines use the number of nights as quantity.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import aiohttp

from core.config import HotelConfig
from core.models import Customer, LineItem, Order
from core.observability import get_logger
from sources.base import SourceAdapter, country_name, implied_rate, to_decimal

logger = get_logger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 1000
BOOKING_STATUSES = ("confirmed", "pending")


def count_nights(check_in: Optional[str], check_out: Optional[str]) -> int:
    """Nights between two dates; 1 when unknown or not positive."""
    if not check_in or not check_out:
        return 1
    try:
        start = date.fromisoformat(str(check_in)[:10])
        end = date.fromisoformat(str(check_out)[:10])
    except ValueError:
        logger.warning(f"Unparseable stay dates {check_in!r} / {check_out!r}")
        return 1
    nights = abs((end - start).days)
    return nights if nights > 0 else 1


class HotelBookingSource(SourceAdapter):
    name = "hotel"

    def __init__(self, config: HotelConfig, **kwargs):
        super().__init__(**kwargs)
        self.config = config
        self._auth = aiohttp.BasicAuth(config.consumer_key or "", config.consumer_secret or "")

    async def fetch_orders(self, date_from: str, date_to: str) -> List[Order]:
        logger.info(f"Fetching hotel bookings from {self.config.name} ({date_from} to {date_to})...")
        url = f"{self.config.url.rstrip('/')}/wp-json/mphb/v1/bookings"
        bookings: List[Dict[str, Any]] = []
        page = 1

        while page <= MAX_PAGES:
            params = [
                ("per_page", str(PAGE_SIZE)),
                ("page", str(page)),
                ("after", f"{date_from}T00:00:00"),
                ("before", f"{date_to}T23:59:59"),
            ] + [("status[]", status) for status in BOOKING_STATUSES]

            data, headers = await self._get_json(url, params=params, auth=self._auth)
            if not data:
                break
            bookings.extend(data)

            total_pages_header = headers.get("x-wp-totalpages") or headers.get("X-WP-TotalPages")
            try:
                total_pages = int(total_pages_header) if total_pages_header else 1
            except ValueError:
                total_pages = 0
            if total_pages <= 0 or total_pages > MAX_PAGES:
                logger.warning(f"Invalid total pages ({total_pages_header}) from {self.config.name}, stopping pagination")
                break
            if page >= total_pages:
                break
            page += 1

        return self._normalize_all(bookings, self.normalize_booking, "booking")

    def _customer(self, booking: Dict[str, Any]) -> Customer:
        c = booking.get("customer") or {}

        if c.get("first_name") or c.get("last_name"):
            name = f"{c.get('first_name') or ''} {c.get('last_name') or ''}".strip()
        elif booking.get("first_name") or booking.get("last_name"):
            name = f"{booking.get('first_name') or ''} {booking.get('last_name') or ''}".strip()
        else:
            name = c.get("name") or "Cliente Hotel"

        address = ", ".join(a for a in (
            c.get("address_1") or booking.get("address_1"),
            c.get("address_2") or booking.get("address_2"),
        ) if a)
        country = c.get("country") or booking.get("country")

        return Customer(
            name=name,
            email=c.get("email") or booking.get("email"),
            phone=c.get("phone") or booking.get("phone"),
            company=c.get("company"),
            dni=str(c.get("dni") or booking.get("dni") or "").upper(),
            vat_number=c.get("vat_number") or booking.get("vat_number"),
            address=address,
            city=c.get("city") or booking.get("city"),
            postal_code=c.get("zip") or booking.get("postcode"),
            province=c.get("state") or booking.get("state"),
            country=country or "ES",
            country_name=country_name(country),
        )

    def _line(self, name: str, description: str, quantity: Decimal, with_tax: Decimal, tax: Decimal) -> LineItem:
        net = with_tax - tax
        return LineItem(
            sku=self.config.product_sku,
            name=name,
            description=description,
            quantity=quantity,
            price=net / quantity,
            total=net,
            total_with_tax=with_tax,
            tax=tax,
            tax_rate=implied_rate(net, tax) or self.config.default_vat_rate,
        )

    def _items(self, booking: Dict[str, Any], nights: int) -> List[LineItem]:
        items = []

        for index, room in enumerate(booking.get("reserved_rooms") or [], start=1):
            items.append(self._line(
                room.get("room_type_title") or room.get("title") or f"Habitación {index}",
                room.get("room_type_description") or "",
                Decimal(nights),
                to_decimal(room.get("total_price") or room.get("price")),
                to_decimal(room.get("total_tax")),
            ))

        for index, service in enumerate(booking.get("reserved_services") or [], start=1):
            quantity = to_decimal(service.get("quantity"), Decimal("1")) or Decimal("1")
            items.append(self._line(
                service.get("title") or f"Servicio {index}",
                service.get("description") or "",
                quantity,
                to_decimal(service.get("total_price") or service.get("price")),
                to_decimal(service.get("total_tax")),
            ))

        if not items:
            items.append(self._line(
                f"Reserva Hotel #{booking['id']}",
                f"Check-in: {booking.get('check_in_date')}, Check-out: {booking.get('check_out_date')}",
                Decimal(nights),
                to_decimal(booking.get("total_price")),
                to_decimal(booking.get("total_tax")),
            ))

        return items

    def normalize_booking(self, booking: Dict[str, Any]) -> Order:
        total = to_decimal(booking.get("total_price"))
        tax = to_decimal(booking.get("total_tax"))
        nights = count_nights(booking.get("check_in_date"), booking.get("check_out_date"))
        created = booking.get("date_created") or booking.get("check_in_date") or datetime.now().isoformat()

        return Order(
            source="hotel",
            site_prefix=self.config.prefix,
            site_name=self.config.name,
            id=booking["id"],
            order_number=str(booking["id"]),
            status=booking.get("status"),
            date=created,
            currency=booking.get("currency") or "EUR",
            total=total,
            subtotal=total - tax,
            tax=tax,
            payment_method="WooCommerce",
            customer=self._customer(booking),
            items=self._items(booking, nights),
            # Settled at check-in / check-out, outside this sync
            paid=False,
            metadata={
                "check_in": booking.get("check_in_date"),
                "check_out": booking.get("check_out_date"),
                "nights": nights,
                "guests": booking.get("guests") or 1,
            },
        )
