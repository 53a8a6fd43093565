"""
Bulk-set the ledger tax rate for products whose sku starts with a prefix.

Books (BOK-*) carry super-reduced VAT; run this after the first product sync
so the ledger stops using the default rate for them:

    python scripts/update_product_tax.py --prefix BOK- --rate 4
    python scripts/update_product_tax.py --prefix BOK- --rate 4 --secondary --dry-run
"""

import argparse
import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from typing import List

sys.path.append(str(Path(__file__).resolve().parents[1]))

from connectors.holded import HoldedConnector, LedgerApiError
from connectors.ledger_base import LedgerConnector, LedgerProductRef, ProductTaxPayload
from core.config import load_config
from core.observability import configure_logging, get_logger

logger = get_logger("scripts.update_product_tax")

UPDATE_DELAY_SECONDS = 0.3


def matching_products(products: List[LedgerProductRef], prefix: str) -> List[LedgerProductRef]:
    return [p for p in products if p.sku.startswith(prefix)]


async def update_tax(
    connector: LedgerConnector,
    prefix: str,
    rate: Decimal,
    dry_run: bool = False,
    delay: float = UPDATE_DELAY_SECONDS,
) -> int:
    """Update matching products one at a time. Returns the number of failures."""
    products = matching_products(await connector.list_products(), prefix)
    logger.info(f"Found {len(products)} products with sku prefix {prefix}")

    if dry_run:
        for product in products:
            logger.info(f"[dry run] Would set tax {rate}% on {product.sku}: {product.name}")
        logger.info(f"[dry run] Done: {len(products)} would be updated, nothing written")
        return 0

    failures = 0
    for product in products:
        logger.info(f"Updating {product.sku}: {product.name}")
        try:
            await connector.update_product(product.id, ProductTaxPayload(tax=rate))
        except LedgerApiError as e:
            logger.error(f"Failed to update {product.sku}: {e}", extra_fields={"response_body": e.response_body})
            failures += 1
        if delay > 0:
            await asyncio.sleep(delay)

    logger.info(f"Done: {len(products) - failures} updated, {failures} failed")
    return failures


async def main():
    parser = argparse.ArgumentParser(description="Bulk-set product tax by sku prefix")
    parser.add_argument("--prefix", default="BOK-", help="Sku prefix to match (default BOK-)")
    parser.add_argument("--rate", type=Decimal, default=Decimal("4"), help="Tax rate in percent (default 4)")
    parser.add_argument("--secondary", action="store_true", help="Update the secondary ledger account")
    parser.add_argument("--dry-run", action="store_true", help="List matching products without updating")
    args = parser.parse_args()

    config = load_config()
    configure_logging(level=config.logging.level)

    destination = config.secondary if args.secondary else config.primary
    if not destination.api_key:
        logger.error(f"No API key configured for the {destination.name} ledger")
        return 1

    connector = HoldedConnector.from_api_key(
        destination.api_key, name=destination.name, base_url=destination.base_url
    )
    try:
        failures = await update_tax(connector, args.prefix, args.rate, dry_run=args.dry_run)
    finally:
        await connector.close()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
