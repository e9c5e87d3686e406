"""
Data Source Exceptions - Collector-level failures.

Every class here is a CollectionError: it removes one source from a run
and never fails the run on its own. The `transient` flag tells the retry
policy whether another attempt could succeed.
"""

from typing import Any, Optional

from core.exceptions import CollectionError


class FetchError(CollectionError):
    """Error during data fetching from a source."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        # connection errors (no status), 429 and 5xx are worth retrying
        transient = status_code is None or status_code == 429 or status_code >= 500
        super().__init__(
            message,
            source_name=source_name,
            transient=transient,
            context=context or {},
            cause=original_error,
        )
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        self.original_error = original_error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data

    def is_rate_limited(self) -> bool:
        """Check if error is due to rate limiting."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return self.status_code is not None and 400 <= self.status_code < 500


class RateLimitError(FetchError):
    """
    Rate limit exceeded.

    Raised for an HTTP 429 response and by the local token bucket when a
    token is not available within its maximum wait.
    """

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            source_name,
            status_code=429,
            original_error=original_error,
            context=context,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class NormalizationError(CollectionError):
    """Malformed payload; retrying would get the same answer."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            source_name=source_name,
            transient=False,
            context=context or {},
            cause=original_error,
        )
        self.raw_data = raw_data
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,  # Truncate
            "field_name": self.field_name,
        })
        return data


class CollectorTimeoutError(CollectionError):
    """A single collector call ran past its per-call timeout."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if timeout_seconds is not None:
            context["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            source_name=source_name,
            transient=True,
            context=context,
        )
        self.timeout_seconds = timeout_seconds


__all__ = [
    "CollectionError",
    "FetchError",
    "RateLimitError",
    "NormalizationError",
    "CollectorTimeoutError",
]
