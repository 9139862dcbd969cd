"""Farm Backend HTTP Client.

Low-level HTTP client for the farm backend REST API.
Handles credential headers, error mapping and retries of idempotent reads.
Writes (POST/PUT/PATCH/DELETE) are sent exactly once and never retried.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import aiohttp

from connectors.gateway_base import TransportError
from core.observability import get_logger

logger = get_logger(__name__)


class FarmApiError(TransportError):
    """Base exception for farm backend API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class FarmAuthenticationError(FarmApiError):
    """Credential rejected (401/403)."""
    pass


class FarmNotFoundError(FarmApiError):
    """Resource not found (404)."""
    def __init__(self, message: str, response_body: str = ""):
        super().__init__(message, 404, response_body)


class FarmRateLimitError(FarmApiError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after


class FarmValidationError(FarmApiError):
    """Payload rejected by the backend (400/422)."""
    pass


@dataclass
class RetryConfig:
    """Retry behavior for GET requests."""
    max_retries: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 10.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class FarmApiConfig:
    """Configuration for the farm API client."""
    base_url: str
    api_key: str
    timeout_seconds: float = 30.0
    retry_config: RetryConfig = field(default_factory=RetryConfig)

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


class FarmApiClient:
    """HTTP client for the farm backend.

    Provides:
    - Authenticated API calls
    - Error mapping to the gateway error taxonomy
    - Retries with backoff for GET only

    Usage:
        client = FarmApiClient(FarmApiConfig(base_url=url, api_key=key))
        await client.connect()
        lotes = await client.get("lotes")
        await client.disconnect()
    """

    def __init__(self, config: FarmApiConfig, session: Optional[aiohttp.ClientSession] = None):
        """Initialize API client.

        Args:
            config: API configuration
            session: Existing session to reuse (the client will not close it)
        """
        self.config = config
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

    async def __aenter__(self) -> "FarmApiClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "apikey": self.config.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated API request.

        GET requests are retried on 429/5xx and connection errors;
        other methods are attempted exactly once.

        Returns:
            Decoded JSON body ({} for empty bodies)

        Raises:
            FarmAuthenticationError: Credential rejected
            FarmNotFoundError: Resource not found
            FarmRateLimitError: Rate limit exceeded
            FarmValidationError: Payload rejected
            FarmApiError: Other API or connection errors
        """
        if not self._session:
            raise FarmApiError("Not connected. Call connect() first.")

        url = self.config.url_for(path)
        retry_config = self.config.retry_config
        max_retries = retry_config.max_retries if method == "GET" else 0
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        for attempt in range(max_retries + 1):
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

                    if response.status < 400:
                        if response.status == 204 or not response_text:
                            return {}
                        return json.loads(response_text)

                    if response.status in (401, 403):
                        raise FarmAuthenticationError(
                            f"Authentication failed: {response_text}",
                            response.status,
                            response_text,
                        )

                    if response.status == 404:
                        raise FarmNotFoundError(f"Resource not found: {url}", response_text)

                    if response.status in (400, 422):
                        raise FarmValidationError(
                            f"Validation error: {response_text}",
                            response.status,
                            response_text,
                        )

                    if response.status in retry_config.retry_on_status and attempt < max_retries:
                        delay = retry_config.get_delay(attempt)
                        if response.status == 429:
                            delay = float(response.headers.get("Retry-After", delay))
                        logger.warning(
                            f"{method} {path} failed with {response.status}, "
                            f"retrying in {delay:.1f}s (attempt {attempt + 1}/{max_retries})"
                        )
                        await asyncio.sleep(delay)
                        continue

                    if response.status == 429:
                        raise FarmRateLimitError(
                            "Rate limit exceeded",
                            int(response.headers.get("Retry-After", 60)),
                        )

                    raise FarmApiError(
                        f"API error {response.status}: {response_text}",
                        response.status,
                        response_text,
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        f"{method} {path} failed with {type(e).__name__}: {e}, "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise FarmApiError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        raise FarmApiError(f"{method} {path} failed after {max_retries} retries")

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self._request("POST", path, params=params, data=data)

    async def put(self, path: str, data: Dict[str, Any]) -> Any:
        return await self._request("PUT", path, data=data)

    async def patch(self, path: str, data: Dict[str, Any]) -> Any:
        return await self._request("PATCH", path, data=data)

    async def delete(self, path: str) -> None:
        await self._request("DELETE", path)
