"""
Base Collector - Interface for all threat data sources.

All collectors MUST satisfy the Collector protocol to ensure:
- Isolation
- Replaceability
- Fail-safety

The orchestrator only depends on the protocol. BaseCollector is a
convenience base for HTTP-backed collectors: it owns an aiohttp session
and maps HTTP failures onto the collection error taxonomy.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

import aiohttp

from data_sources.exceptions import (
    CollectorTimeoutError,
    FetchError,
    NormalizationError,
    RateLimitError,
)
from data_sources.models import DataCategory, DataPoint


logger = logging.getLogger(__name__)


@runtime_checkable
class Collector(Protocol):
    """
    Capability set of one external source.

    `collect()` returns normalized data points or raises a
    CollectionError subclass. `rate_limit()` is requests per hour,
    None when the source is unlimited.
    """

    async def collect(self) -> list[DataPoint]:
        ...

    def source_name(self) -> str:
        ...

    def reliability_score(self) -> float:
        ...

    def category(self) -> DataCategory:
        ...

    def rate_limit(self) -> Optional[int]:
        ...

    def timeout(self) -> float:
        ...

    def query_params(self) -> dict[str, Any]:
        ...


class BaseCollector(ABC):
    """
    Abstract base class for HTTP-backed collectors.

    Subclasses implement collect(); everything else comes from the
    constructor arguments.
    """

    # Configuration defaults (can be overridden by subclasses)
    DEFAULT_TIMEOUT = 30.0
    DEFAULT_RELIABILITY = 0.5

    def __init__(
        self,
        name: str,
        category: DataCategory = DataCategory.NEWS_MEDIA,
        reliability: float = DEFAULT_RELIABILITY,
        rate_limit: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        query: Optional[dict[str, Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._name = name
        self._category = category
        self._reliability = max(0.0, min(1.0, reliability))
        self._rate_limit = rate_limit
        self._timeout = timeout
        self._query = dict(query or {})
        self._session = session
        self._owns_session = session is None

    # =========================================================
    # CAPABILITIES
    # =========================================================

    @abstractmethod
    async def collect(self) -> list[DataPoint]:
        """
        Fetch and normalize data from the source.

        Raises:
            FetchError: transport or HTTP failure
            NormalizationError: payload could not be parsed
        """
        pass

    def source_name(self) -> str:
        return self._name

    def reliability_score(self) -> float:
        return self._reliability

    def category(self) -> DataCategory:
        return self._category

    def rate_limit(self) -> Optional[int]:
        return self._rate_limit

    def timeout(self) -> float:
        return self._timeout

    def query_params(self) -> dict[str, Any]:
        return dict(self._query)

    # =========================================================
    # HTTP HELPERS
    # =========================================================

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json, application/rss+xml, application/xml;q=0.9, */*;q=0.8",
            "User-Agent": "RiskAssessmentCore/1.0",
        }

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> str:
        """Make HTTP request with error handling, returning the body text."""
        session = await self._get_session()

        start_time = time.monotonic()
        try:
            async with session.request(
                method,
                url,
                params=params,
                headers=headers,
                json=json_body,
            ) as response:
                latency_ms = (time.monotonic() - start_time) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=self._name,
                        retry_after_seconds=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        source_name=self._name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                text = await response.text()
                logger.debug(f"[{self._name}] Request completed in {latency_ms:.1f}ms")
                return text

        except asyncio.TimeoutError as e:
            raise CollectorTimeoutError(
                message=f"Request timed out after {self._timeout}s",
                source_name=self._name,
                timeout_seconds=self._timeout,
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self._name,
                request_url=url,
                original_error=e,
            ) from e

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request and decode a JSON body."""
        text = await self._request(method, url, params=params, headers=headers)
        try:
            return json.loads(text)
        except ValueError as e:
            raise NormalizationError(
                message=f"Invalid JSON response: {e}",
                source_name=self._name,
                raw_data=text,
                original_error=e,
            ) from e

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseCollector":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self._name}, category={self._category.value})>"
