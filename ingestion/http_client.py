"""
HTTP client for the NVD CVE API with authentication, pacing and retries.

This module owns everything transport-related:
- Request pacing: every attempt, retries included, waits on the shared pacer
- Exponential backoff retry logic for transient failures (timeouts, 5xx)
- Retry-After aware handling of HTTP 429
- Mapping of HTTP outcomes onto the sync exception hierarchy

Pagination lives in the fetcher; this client performs exactly one logical
request per call.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    FetchError,
    RateLimitExceeded,
    ResourceNotFoundError,
    TransportError,
)
from ingestion.pacing import RequestPacer

logger = logging.getLogger(__name__)

USER_AGENT = "nvd-mirror/1.0"


class NVDClient:
    """
    Thin async wrapper around ``httpx.AsyncClient`` for the CVE endpoint.

    Attributes:
        pacer: Spacing shared by every request made through this client
        max_retries: Maximum number of attempts per request (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
        requests_made: HTTP attempts sent so far, retries included
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        pacer: Optional[RequestPacer] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_url = api_url or settings.NVD_API_URL
        self.api_key = api_key if api_key is not None else settings.NVD_API_KEY
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_DELAY_SECONDS
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.pacer = pacer or RequestPacer(settings.PACING_INTERVAL_SECONDS)
        self.requests_made = 0

        self._client = client
        self._owns_client = client is None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if self.api_key:
            headers["apiKey"] = self.api_key
        return headers

    async def __aenter__(self) -> "NVDClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int) -> float:
        return self.retry_delay * (2 ** attempt)

    async def request(self, params: Dict[str, Any]) -> httpx.Response:
        """
        Make one GET request with retry logic and exponential backoff.

        Args:
            params: Query parameters

        Returns:
            HTTP response with a 2xx status

        Raises:
            AuthenticationError: HTTP 401/403
            ResourceNotFoundError: HTTP 404
            RateLimitExceeded: HTTP 429 after max retries
            TransportError: Timeouts, network errors or 5xx after max retries
            FetchError: Other non-success statuses
        """
        if self._client is None:
            raise RuntimeError("NVDClient must be used as an async context manager")

        url = self.api_url

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1

            await self.pacer.wait()
            self.requests_made += 1

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} to {url}")

                response = await self._client.get(
                    url,
                    headers=self.headers,
                    params=params,
                    timeout=self.timeout
                )
            except httpx.TimeoutException as e:
                if not last_attempt:
                    delay = self._backoff(attempt)
                    logger.warning(f"Request timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                raise TransportError(
                    f"Request timeout after {self.max_retries} attempts",
                    context={
                        "api_url": url,
                        "timeout": self.timeout,
                        "retry_count": attempt + 1
                    },
                    original_exception=e
                )
            except httpx.TransportError as e:
                if not last_attempt:
                    delay = self._backoff(attempt)
                    logger.warning(f"Network error. Retrying in {delay} seconds: {e}")
                    await asyncio.sleep(delay)
                    continue
                raise TransportError(
                    f"Network error after {self.max_retries} attempts",
                    context={
                        "api_url": url,
                        "retry_count": attempt + 1
                    },
                    original_exception=e
                )

            status_code = response.status_code

            if status_code in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={
                        "status_code": status_code,
                        "api_url": url,
                        "api_key_configured": bool(self.api_key)
                    }
                )

            if status_code == 404:
                raise ResourceNotFoundError(
                    f"Resource not found: {url}",
                    context={"status_code": 404, "api_url": url}
                )

            if status_code == 429:
                retry_after = self._retry_after(response, attempt)
                if not last_attempt:
                    logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitExceeded(
                    f"Rate limit exceeded for {url}",
                    context={
                        "status_code": 429,
                        "api_url": url,
                        "retry_count": attempt + 1
                    },
                    retry_after=retry_after
                )

            if status_code >= 500:
                if not last_attempt:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Server error {status_code}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise TransportError(
                    f"Server error after {self.max_retries} attempts",
                    context={
                        "status_code": status_code,
                        "api_url": url,
                        "retry_count": attempt + 1,
                        "response_body": response.text[:500]  # Truncate
                    }
                )

            if not 200 <= status_code < 300:
                raise FetchError(
                    f"Unexpected HTTP status {status_code}",
                    context={
                        "status_code": status_code,
                        "api_url": url,
                        "response_body": response.text[:500]
                    }
                )

            return response

        raise FetchError(
            "Max retries exceeded",
            context={"api_url": url, "retry_count": self.max_retries}
        )

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        try:
            return float(header)
        except (TypeError, ValueError):
            return self._backoff(attempt)
