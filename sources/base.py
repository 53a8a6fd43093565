"""Commerce source adapters - shared interface and aggregation.

Each adapter reads one commerce platform and returns canonical records.
Adapters only read; they never write back to their platform.

Aggregation runs every configured source concurrently. A source that fails
contributes zero records and the run continues.
"""

import asyncio
import json
import re
from abc import ABC
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from pydantic import ValidationError

from core.models import Order, Product
from core.observability import get_logger, with_correlation

logger = get_logger(__name__)

COUNTRY_NAMES = {
    "ES": "España",
    "FR": "Francia",
    "DE": "Alemania",
    "IT": "Italia",
    "PT": "Portugal",
    "GB": "Reino Unido",
    "US": "Estados Unidos",
}

_HTML_TAG = re.compile(r"<[^>]*>")


class SourceError(Exception):
    """A source platform could not be read."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Lenient number parsing for source payloads ("", None and junk become ``default``)."""
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def implied_rate(net: Decimal, tax: Decimal) -> Optional[Decimal]:
    """Whole-percent rate implied by a net amount and its tax, if both are positive."""
    if net > 0 and tax > 0:
        return (tax / net * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return None


def country_name(code: Optional[str]) -> str:
    if not code:
        return "España"
    return COUNTRY_NAMES.get(code, code)


def strip_html(html: Optional[str], limit: int = 500) -> str:
    if not html:
        return ""
    return _HTML_TAG.sub("", html).strip()[:limit]


class SourceAdapter(ABC):
    """Base class for source adapters.

    Subclasses override ``fetch_products`` and/or ``fetch_orders``; a source
    without a catalog keeps the default empty ``fetch_products``.
    """

    name: str = "source"

    def __init__(self, timeout_seconds: int = 30, session: Optional[aiohttp.ClientSession] = None):
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _get_json(
        self,
        url: str,
        params: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[aiohttp.BasicAuth] = None,
    ) -> Tuple[Any, Dict[str, str]]:
        """GET a JSON document; returns the body and the response headers."""
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with session.get(url, params=params, headers=headers, auth=auth, timeout=timeout) as response:
                text = await response.text()
                if response.status >= 400:
                    if response.status == 401:
                        logger.error(f"{self.name} authentication failed; check the credentials")
                    raise SourceError(
                        f"{self.name} API error {response.status}: {text[:200]}",
                        response.status,
                        text,
                    )
                body = json.loads(text) if text else None
                return body, dict(response.headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceError(f"{self.name} request failed: {type(e).__name__}: {e}")

    def _normalize_all(self, raw_records: List[Dict[str, Any]], normalize, label: str) -> list:
        """Normalize records one by one; a malformed record is logged and skipped."""
        records = []
        for raw in raw_records:
            try:
                records.append(normalize(raw))
            except (ValidationError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping malformed {label} {raw.get('id')} from {self.name}: {e}")
        return records

    async def fetch_products(self) -> List[Product]:
        return []

    async def fetch_orders(self, date_from: str, date_to: str) -> List[Order]:
        return []


# =============================================================================
# Aggregation
# =============================================================================

async def _guarded(adapter: SourceAdapter, call, label: str) -> list:
    with with_correlation(source=adapter.name):
        try:
            records = await call()
        except Exception as e:
            logger.error(f"Failed to fetch {label} from {adapter.name}: {e}")
            return []
        logger.info(f"Fetched {len(records)} {label} from {adapter.name}")
        return records


async def gather_products(adapters: Sequence[SourceAdapter]) -> List[Product]:
    """Fetch products from every adapter concurrently, in adapter order."""
    results = await asyncio.gather(*(
        _guarded(adapter, adapter.fetch_products, "products") for adapter in adapters
    ))
    return [product for batch in results for product in batch]


async def gather_orders(adapters: Sequence[SourceAdapter], date_from: str, date_to: str) -> List[Order]:
    """Fetch orders for ``[date_from, date_to]`` from every adapter concurrently."""
    results = await asyncio.gather(*(
        _guarded(adapter, lambda a=adapter: a.fetch_orders(date_from, date_to), "orders")
        for adapter in adapters
    ))
    return [order for batch in results for order in batch]
