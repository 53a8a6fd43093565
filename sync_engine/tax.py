"""Tax reconciliation.

The ledger always receives tax-exclusive amounts plus a tax percentage.
Three signals can disagree about the percentage: the ledger's own tax code
for an existing product, the rate the source declared, and configured
defaults. Resolution order:

Products:
    ledger tax code > account rate > site default (by site_prefix) > product
    default_vat_rate > destination default

Invoice lines:
    ledger tax code (by line sku) > line tax_rate > account rate > site
    default (by order site_prefix) > source default (by order source) > 21

The account rate is an optional fixed rate for a whole ledger account (e.g.
a secondary account that only sells books at 4%).

Every function here is pure; resolving the same inputs twice yields the same
rate.
"""

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from core.models import LineItem, Order, Product

HARD_DEFAULT_RATE = Decimal("21")

PRICE_QUANT = Decimal("0.01")
SUBTOTAL_QUANT = Decimal("0.0001")

# Ledger tax codes embed the percentage, e.g. "s_iva_21", "s_iva_4"
_TAX_CODE_RATE = re.compile(r"(\d+)(?!.*\d)")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxDefaults:
    """Configured fallback rates for one destination."""
    default_rate: Decimal = HARD_DEFAULT_RATE
    account_rate: Optional[Decimal] = None
    site_rates: Mapping[str, Decimal] = field(default_factory=dict)
    source_rates: Mapping[str, Decimal] = field(default_factory=dict)


def parse_tax_code(code: Optional[str]) -> Optional[Decimal]:
    """Extract the embedded percentage from a ledger tax code.

    Returns None when the code is missing or has no usable integer, which
    callers treat as "no override".
    """
    if not code:
        return None
    match = _TAX_CODE_RATE.search(code)
    if not match:
        return None
    rate = Decimal(match.group(1))
    if rate > _HUNDRED:
        return None
    return rate


def resolve_product_rate(
    product: Product,
    ledger_tax_code: Optional[str],
    defaults: TaxDefaults,
) -> Decimal:
    rate = parse_tax_code(ledger_tax_code)
    if rate is not None:
        return rate
    if defaults.account_rate is not None:
        return defaults.account_rate
    site_rate = defaults.site_rates.get(product.site_prefix) if product.site_prefix else None
    if site_rate is not None:
        return site_rate
    if product.default_vat_rate is not None:
        return product.default_vat_rate
    return defaults.default_rate


def net_price(price: Optional[Decimal], rate: Decimal, prices_include_tax: bool) -> Optional[Decimal]:
    """Tax-exclusive price, rounded to cents.

    Only tax-inclusive prices are converted. Missing and negative prices pass
    through untouched.
    """
    if price is None or not prices_include_tax or rate == 0:
        return price
    return (price / (1 + rate / _HUNDRED)).quantize(PRICE_QUANT, rounding=ROUND_HALF_UP)


def product_net_price(product: Product, rate: Decimal) -> Optional[Decimal]:
    return net_price(product.price, rate, product.prices_include_tax)


def resolve_line_rate(
    item: LineItem,
    order: Order,
    ledger_tax_code: Optional[str],
    defaults: TaxDefaults,
) -> Decimal:
    rate = parse_tax_code(ledger_tax_code)
    if rate is not None:
        return rate
    if item.tax_rate is not None:
        return item.tax_rate
    if defaults.account_rate is not None:
        return defaults.account_rate
    site_rate = defaults.site_rates.get(order.site_prefix) if order.site_prefix else None
    if site_rate is not None:
        return site_rate
    source_rate = defaults.source_rates.get(order.source)
    if source_rate is not None:
        return source_rate
    return HARD_DEFAULT_RATE


def line_subtotal(item: LineItem, rate: Decimal) -> Decimal:
    """Tax-exclusive unit price re-derived from the tax-inclusive line total.

    The source's own exclusive figure is used only when the inclusive total
    is missing.
    """
    if item.total_with_tax is None:
        return item.price
    unit_with_tax = item.total_with_tax / item.quantity
    if rate == 0:
        return unit_with_tax.quantize(SUBTOTAL_QUANT, rounding=ROUND_HALF_UP)
    return (unit_with_tax / (1 + rate / _HUNDRED)).quantize(SUBTOTAL_QUANT, rounding=ROUND_HALF_UP)
