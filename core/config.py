"""Application configuration loaded from the environment.

Reads a ``.env`` file at the repository root when present (python-dotenv),
then builds typed configuration objects from environment variables:

- Ledger destinations (primary account and optional secondary account)
- SKU routing lists (secondary allow-list, global exclusions)
- Commerce sources (up to three WooCommerce sites, SumUp, Square, hotel)
- Sync behaviour (days back, default VAT, timezone, rate-limit delays)
- Logging

Nothing here talks to the network. ``validate_config`` reports problems as
messages so the CLI can print all of them before exiting.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from connectors.ledger_base import LedgerDocumentType


REPO_ROOT = Path(__file__).resolve().parents[1]

HOLDED_BASE_URL = "https://api.holded.com/api/invoicing/v1"
DEFAULT_VAT_RATE = Decimal("21")
MAX_WOOCOMMERCE_SITES = 3


class ConfigError(Exception):
    """Raised when the configuration cannot be used to run a sync."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


# =============================================================================
# Configuration Objects
# =============================================================================

@dataclass
class LedgerDestinationConfig:
    """One ledger account (primary or secondary)."""
    name: str
    api_key: Optional[str] = None
    base_url: str = HOLDED_BASE_URL
    doc_type: str = LedgerDocumentType.INVOICE.value
    numbering_format: str = "F[YY]%%%%"
    sales_channel: str = ""                 # Default sales-channel hint for orders
    warehouse: str = ""                     # Default warehouse hint for orders
    default_vat_rate: Decimal = DEFAULT_VAT_RATE
    vat_rate: Optional[Decimal] = None      # Fixed rate for every product and line, when set
    timeout_seconds: int = 30

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class WooCommerceSiteConfig:
    """One WooCommerce storefront."""
    name: str
    prefix: str
    url: str
    consumer_key: str
    consumer_secret: str
    default_vat_rate: Decimal = DEFAULT_VAT_RATE
    prices_include_tax: bool = False
    wpml_lang: str = ""


@dataclass
class SumUpConfig:
    api_key: Optional[str] = None
    base_url: str = "https://api.sumup.com/v0.1"
    default_vat_rate: Decimal = DEFAULT_VAT_RATE


@dataclass
class SquareConfig:
    access_token: Optional[str] = None
    location_id: Optional[str] = None
    base_url: str = "https://connect.squareup.com/v2"
    api_version: str = "2024-01-18"
    default_vat_rate: Decimal = DEFAULT_VAT_RATE


@dataclass
class HotelConfig:
    """MotoPress hotel booking site."""
    url: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    name: str = "Hotel Bookings"
    prefix: str = "HOTEL"
    product_sku: str = "HOTEL-RESERVA"
    default_vat_rate: Decimal = Decimal("10")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.consumer_key)


@dataclass
class SyncSettings:
    days_back: int = 1
    default_vat_rate: Decimal = DEFAULT_VAT_RATE
    timezone: str = "Europe/Madrid"
    product_delay: float = 0.1              # Seconds after each product write
    document_delay: float = 0.2             # Seconds after each document write
    exports_dir: Path = REPO_ROOT / "artifacts" / "exports"


@dataclass
class LoggingSettings:
    level: str = "info"
    json_format: bool = False
    log_dir: Optional[Path] = REPO_ROOT / "logs"


@dataclass
class AppConfig:
    """Complete configuration for one sync run."""
    primary: LedgerDestinationConfig
    secondary: LedgerDestinationConfig
    secondary_skus: List[str] = field(default_factory=list)
    excluded_skus: List[str] = field(default_factory=list)
    woocommerce: List[WooCommerceSiteConfig] = field(default_factory=list)
    sumup: SumUpConfig = field(default_factory=SumUpConfig)
    square: SquareConfig = field(default_factory=SquareConfig)
    hotel: HotelConfig = field(default_factory=HotelConfig)
    sync: SyncSettings = field(default_factory=SyncSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @property
    def has_secondary(self) -> bool:
        return bool(self.secondary_skus)

    def site_vat_rates(self) -> Dict[str, Decimal]:
        """Per-site default VAT keyed by site prefix."""
        rates = {site.prefix: site.default_vat_rate for site in self.woocommerce}
        if self.hotel.is_configured:
            rates[self.hotel.prefix] = self.hotel.default_vat_rate
        return rates

    def source_vat_rates(self) -> Dict[str, Decimal]:
        """Per-source default VAT keyed by canonical ``source`` tag."""
        return {
            "sumup": self.sumup.default_vat_rate,
            "square": self.square.default_vat_rate,
            "hotel": self.hotel.default_vat_rate,
        }


# =============================================================================
# Environment Parsing
# =============================================================================

def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_decimal(name: str, default: Optional[Decimal]) -> Optional[Decimal]:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigError([f"{name} must be a number, got {raw!r}"])


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError([f"{name} must be a whole number, got {raw!r}"])


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    raw = _env(name)
    if raw is None:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _load_woocommerce_sites(default_vat: Decimal) -> List[WooCommerceSiteConfig]:
    sites = []
    for n in range(1, MAX_WOOCOMMERCE_SITES + 1):
        url = _env(f"WC_SITE{n}_URL")
        key = _env(f"WC_SITE{n}_KEY")
        if not url or not key:
            continue
        prefix = _env(f"WC_SITE{n}_PREFIX", f"S{n}")
        sites.append(WooCommerceSiteConfig(
            name=prefix,
            prefix=prefix,
            url=url,
            consumer_key=key,
            consumer_secret=_env(f"WC_SITE{n}_SECRET", ""),
            default_vat_rate=_env_decimal(f"WC_SITE{n}_DEFAULT_VAT_RATE", default_vat),
            prices_include_tax=_env_bool(f"WC_SITE{n}_PRICES_INCLUDE_TAX"),
            wpml_lang=_env(f"WC_SITE{n}_WPML_LANG", ""),
        ))
    return sites


def load_config(env_file: Optional[Path] = None) -> AppConfig:
    """Build an AppConfig from the environment.

    Args:
        env_file: Optional .env path; defaults to ``<repo>/.env`` when it exists.
            Variables already set in the process environment win.
    """
    env_path = env_file or REPO_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    default_vat = _env_decimal("DEFAULT_VAT_RATE", DEFAULT_VAT_RATE)
    doc_type = _env("HOLDED_DOC_TYPE", LedgerDocumentType.INVOICE.value)
    numbering_format = _env("HOLDED_NUMBERING_FORMAT", "F[YY]%%%%")
    sales_channel = _env("HOLDED_SALES_CHANNEL", "")
    warehouse = _env("HOLDED_WAREHOUSE", "")

    primary = LedgerDestinationConfig(
        name="primary",
        api_key=_env("HOLDED_API_KEY"),
        doc_type=doc_type,
        numbering_format=numbering_format,
        sales_channel=sales_channel,
        warehouse=warehouse,
        default_vat_rate=default_vat,
    )
    secondary = LedgerDestinationConfig(
        name="secondary",
        api_key=_env("HOLDED_SECONDARY_API_KEY"),
        doc_type=doc_type,
        numbering_format=numbering_format,
        sales_channel=sales_channel,
        warehouse=warehouse,
        default_vat_rate=default_vat,
        vat_rate=_env_decimal("HOLDED_SECONDARY_VAT_RATE", None),
    )

    log_dir = _env("LOG_DIR")
    exports_dir = _env("EXPORTS_DIR")

    return AppConfig(
        primary=primary,
        secondary=secondary,
        secondary_skus=_env_list("HOLDED_SECONDARY_SKUS"),
        excluded_skus=_env_list("EXCLUDED_SKUS"),
        woocommerce=_load_woocommerce_sites(default_vat),
        sumup=SumUpConfig(
            api_key=_env("SUMUP_API_KEY"),
            default_vat_rate=_env_decimal("SUMUP_DEFAULT_VAT_RATE", default_vat),
        ),
        square=SquareConfig(
            access_token=_env("SQUARE_ACCESS_TOKEN"),
            location_id=_env("SQUARE_LOCATION_ID"),
            default_vat_rate=_env_decimal("SQUARE_DEFAULT_VAT_RATE", default_vat),
        ),
        hotel=HotelConfig(
            url=_env("HOTEL_URL"),
            consumer_key=_env("HOTEL_KEY"),
            consumer_secret=_env("HOTEL_SECRET"),
            name=_env("HOTEL_NAME", "Hotel Bookings"),
            prefix=_env("HOTEL_PREFIX", "HOTEL"),
            product_sku=_env("HOTEL_PRODUCT_SKU", "HOTEL-RESERVA"),
            default_vat_rate=_env_decimal("HOTEL_DEFAULT_VAT_RATE", Decimal("10")),
        ),
        sync=SyncSettings(
            days_back=_env_int("SYNC_DAYS_BACK", 1),
            default_vat_rate=default_vat,
            timezone=_env("TZ", "Europe/Madrid"),
            exports_dir=Path(exports_dir) if exports_dir else REPO_ROOT / "artifacts" / "exports",
        ),
        logging=LoggingSettings(
            level=_env("LOG_LEVEL", "info"),
            json_format=_env("LOG_FORMAT", "human").lower() == "json",
            log_dir=Path(log_dir) if log_dir else REPO_ROOT / "logs",
        ),
    )


def validate_config(config: AppConfig, excel_only: bool = False) -> List[str]:
    """Return a list of configuration problems (empty when usable)."""
    errors = []

    if not excel_only and not config.primary.api_key:
        errors.append("HOLDED_API_KEY is required")

    if not excel_only and config.secondary_skus and not config.secondary.api_key:
        errors.append("HOLDED_SECONDARY_API_KEY is required when HOLDED_SECONDARY_SKUS is configured")

    has_source = (
        bool(config.woocommerce)
        or bool(config.sumup.api_key)
        or bool(config.square.access_token)
        or config.hotel.is_configured
    )
    if not has_source:
        errors.append("At least one WooCommerce site, SumUp, Square or hotel source is required")

    valid_doc_types = [t.value for t in LedgerDocumentType]
    if config.primary.doc_type not in valid_doc_types:
        errors.append(
            f"HOLDED_DOC_TYPE must be one of {valid_doc_types}, got {config.primary.doc_type!r}"
        )

    return errors
