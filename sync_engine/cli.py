"""Command line entry point (``ledger-sync``).

Usage:
    ledger-sync                          # products and sales for the default range
    ledger-sync --products               # catalog only
    ledger-sync --sales --from 2025-01-01 --to 2025-01-31
    ledger-sync --excel-only             # write import spreadsheets, no ledger calls

Exits 1 on configuration errors or when any record failed to sync.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from core.config import ConfigError, load_config, validate_config
from core.dates import parse_day
from core.observability import configure_logging, get_logger
from sync_engine.runner import SyncRunner

logger = get_logger(__name__)


def _day(value: str) -> str:
    try:
        parse_day(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-sync",
        description="Sync commerce products and sales into the Holded ledger",
    )
    parser.add_argument("--products", action="store_true", help="Sync products")
    parser.add_argument("--sales", action="store_true", help="Sync sales (invoices)")
    parser.add_argument("--from", dest="date_from", type=_day, help="First day (YYYY-MM-DD)")
    parser.add_argument("--to", dest="date_to", type=_day, help="Last day (YYYY-MM-DD)")
    parser.add_argument("--excel-only", action="store_true", help="Only write the import spreadsheets")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ConfigError as e:
        configure_logging()
        for error in e.errors:
            logger.error(f"Configuration error: {error}")
        return 1

    configure_logging(
        level=config.logging.level,
        json_format=args.json_logs or config.logging.json_format,
        log_dir=config.logging.log_dir,
    )

    errors = validate_config(config, excel_only=args.excel_only)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    if args.date_from and args.date_to and args.date_from > args.date_to:
        logger.error(f"--from {args.date_from} is after --to {args.date_to}")
        return 1

    # Neither flag means both
    sync_products = args.products or not args.sales
    sync_sales = args.sales or not args.products

    summary = asyncio.run(SyncRunner(config).run(
        sync_products=sync_products,
        sync_sales=sync_sales,
        date_from=args.date_from,
        date_to=args.date_to,
        excel_only=args.excel_only,
    ))

    for name, result in summary.products.items():
        print(f"Products [{name}]: {result.created} created, {result.updated} updated, {result.errors} errors")
    for name, result in summary.orders.items():
        print(f"Invoices [{name}]: {result.created} created, {result.errors} errors")
    for path in summary.exports:
        print(f"Exported: {path}")

    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
