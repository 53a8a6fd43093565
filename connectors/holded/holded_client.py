"""Holded HTTP Client.

Low-level HTTP client for the Holded invoicing API.
Handles the API key header, page-number pagination and error mapping.
There is no retry loop: write pacing is the batch controller's job and a
failed call surfaces as a typed LedgerApiError.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)


class LedgerApiError(Exception):
    """Base exception for ledger API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class LedgerAuthenticationError(LedgerApiError):
    """Authentication failed (401/403)."""
    pass


class LedgerNotFoundError(LedgerApiError):
    """Resource not found (404)."""
    pass


class LedgerRateLimitError(LedgerApiError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: int = 60, response_body: str = ""):
        super().__init__(message, 429, response_body)
        self.retry_after = retry_after


class LedgerValidationError(LedgerApiError):
    """Payload rejected by the ledger (400/422)."""
    pass


@dataclass
class HoldedApiConfig:
    """Configuration for the Holded API client."""
    api_key: str
    base_url: str = "https://api.holded.com/api/invoicing/v1"
    timeout_seconds: int = 30
    page_size: int = 50                     # Holded's fixed page size
    max_pages: int = 1000                   # Safety limit for list_all


class HoldedApiClient:
    """HTTP client for the Holded API.

    Provides:
    - Authenticated API calls (``key`` header)
    - Page-number pagination with a page-count safety limit
    - HTTP status to typed error mapping

    Usage:
        client = HoldedApiClient(HoldedApiConfig(api_key="..."))
        await client.connect()
        products = await client.list_all("products")
        await client.disconnect()
    """

    def __init__(self, api_config: HoldedApiConfig, session: Optional[aiohttp.ClientSession] = None):
        """Initialize API client.

        Args:
            api_config: API configuration
            session: Optional pre-built session (the client will not close it)
        """
        self.api_config = api_config
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_headers(self) -> Dict[str, str]:
        return {
            "key": self.api_config.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_url(self, endpoint: str) -> str:
        return f"{self.api_config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated API request.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to the base URL
            params: Query parameters
            data: JSON request body

        Returns:
            Decoded JSON response (list or dict)

        Raises:
            LedgerAuthenticationError: Authentication failed
            LedgerNotFoundError: Resource not found
            LedgerRateLimitError: Rate limit exceeded
            LedgerValidationError: Validation error
            LedgerApiError: Other API and transport errors
        """
        if not self._session:
            await self.connect()

        url = self._build_url(endpoint)
        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)

        try:
            async with self._session.request(
                method,
                url,
                headers=self._get_headers(),
                params=params,
                json=data,
                timeout=timeout,
            ) as response:
                response_text = await response.text()
                status = response.status
                retry_after_header = response.headers.get("Retry-After")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LedgerApiError(f"{method} {endpoint} failed: {type(e).__name__}: {e}")

        if status < 400:
            if status == 204 or not response_text:
                return {}
            try:
                return json.loads(response_text)
            except ValueError:
                raise LedgerApiError(
                    f"Invalid JSON from {method} {endpoint}",
                    status,
                    response_text,
                )

        if status in (401, 403):
            raise LedgerAuthenticationError(
                f"Authentication failed: {response_text}",
                status,
                response_text,
            )

        if status == 404:
            raise LedgerNotFoundError(
                f"Resource not found: {url}",
                status,
                response_text,
            )

        if status == 429:
            try:
                retry_after = int(retry_after_header or 60)
            except ValueError:
                retry_after = 60
            raise LedgerRateLimitError("Rate limit exceeded", retry_after, response_text)

        if status in (400, 422):
            raise LedgerValidationError(
                f"Validation error: {response_text}",
                status,
                response_text,
            )

        raise LedgerApiError(
            f"API error {status}: {response_text}",
            status,
            response_text,
        )

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def list(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """GET an endpoint that returns a JSON array."""
        response = await self._request("GET", endpoint, params=params)
        if response == {}:
            return []
        if not isinstance(response, list):
            raise LedgerApiError(
                f"Expected a list from {endpoint}, got {type(response).__name__}",
                response_body=json.dumps(response, default=str),
            )
        return response

    async def list_all(
        self,
        endpoint: str,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List all entities with page-number pagination.

        Requests pages 1, 2, ... until a page is shorter than ``page_size``.
        A failed page raises; it is never read as the end of the list.

        Args:
            endpoint: Entity endpoint
            page_size: Page size the API uses (Holded: 50)
            max_pages: Give up with LedgerApiError after this many full pages

        Returns:
            All entities
        """
        page_size = page_size or self.api_config.page_size
        max_pages = max_pages or self.api_config.max_pages
        all_results: List[Dict[str, Any]] = []
        page = 1

        while True:
            if page > max_pages:
                raise LedgerApiError(
                    f"Pagination of {endpoint} exceeded {max_pages} pages; "
                    f"refusing to continue with {len(all_results)} records"
                )

            results = await self.list(endpoint, params={"page": page})
            all_results.extend(results)

            if len(results) < page_size:
                break

            page += 1

        logger.debug(f"Loaded {len(all_results)} records from {endpoint} in {page} page(s)")
        return all_results

    async def create(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new entity.

        Returns:
            Response body (Holded returns ``{"status": 1, "id": ...}``)
        """
        return await self._request("POST", endpoint, data=data)

    async def update(self, endpoint: str, entity_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update an entity (Holded uses PUT)."""
        return await self._request("PUT", f"{endpoint}/{entity_id}", data=data)

    async def post_action(
        self,
        endpoint: str,
        entity_id: str,
        action: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute an action on an entity, e.g. ``documents/invoice/{id}/pay``."""
        return await self._request("POST", f"{endpoint}/{entity_id}/{action}", data=data)
