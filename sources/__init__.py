"""Commerce source adapters.

Each adapter turns one platform's API into canonical Products / Orders:

- WooCommerce (up to three storefronts)
- SumUp card terminal
- Square point of sale
- MotoPress hotel bookings
"""

from typing import List

from core.config import AppConfig
from sources.base import SourceAdapter, SourceError, gather_orders, gather_products
from sources.hotel_bookings import HotelBookingSource
from sources.square import SquareSource
from sources.sumup import SumUpSource
from sources.woocommerce import WooCommerceSource


def build_sources(config: AppConfig) -> List[SourceAdapter]:
    """Adapters for every source that has credentials configured."""
    adapters: List[SourceAdapter] = [WooCommerceSource(site) for site in config.woocommerce]
    if config.sumup.api_key:
        adapters.append(SumUpSource(config.sumup))
    if config.square.access_token:
        adapters.append(SquareSource(config.square))
    if config.hotel.is_configured:
        adapters.append(HotelBookingSource(config.hotel))
    return adapters


__all__ = [
    "SourceAdapter",
    "SourceError",
    "WooCommerceSource",
    "SumUpSource",
    "SquareSource",
    "HotelBookingSource",
    "build_sources",
    "gather_products",
    "gather_orders",
]
