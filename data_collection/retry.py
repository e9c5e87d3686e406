"""
Data Collection - Retry Policy.

Table-driven exponential backoff shared by every collector call.
Only collector calls are retried; nothing else in the system is.
"""

import asyncio
from dataclasses import dataclass

import aiohttp

from core.constants import MAX_RETRY_ATTEMPTS, RETRY_BACKOFF_MULTIPLIER, RETRY_BASE_DELAY_SECONDS
from core.exceptions import CollectionError, ConfigurationError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff: delay before attempt n+1 is
    base_delay * multiplier ** (n - 1), capped at max_delay.
    """

    max_attempts: int = MAX_RETRY_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY_SECONDS
    multiplier: float = RETRY_BACKOFF_MULTIPLIER
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", config_key="max_attempts", actual_value=self.max_attempts)
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must be non-negative", config_key="base_delay", actual_value=self.base_delay)
        if self.multiplier < 1:
            raise ConfigurationError("multiplier must be at least 1", config_key="multiplier", actual_value=self.multiplier)

    def delay_for(self, failed_attempts: int) -> float:
        """Backoff after `failed_attempts` failures (1-based)."""
        if failed_attempts < 1:
            return 0.0
        return min(self.max_delay, self.base_delay * self.multiplier ** (failed_attempts - 1))

    def should_retry(self, error: BaseException, failed_attempts: int) -> bool:
        return failed_attempts < self.max_attempts and self.is_retryable(error)

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Timeouts, connection errors, HTTP 5xx and 429 are transient."""
        if isinstance(error, CollectionError):
            return error.transient
        return isinstance(error, (asyncio.TimeoutError, aiohttp.ClientError, ConnectionError))
