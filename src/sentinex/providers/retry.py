"""Retry wrapper with exponential backoff for retryable provider errors."""

import logging
import time
from collections.abc import Callable
from typing import Any

from sentinex.errors import ProviderError, ProviderFailedError
from sentinex.providers.base import Provider

logger = logging.getLogger(__name__)


class RetryingProvider(Provider):
    """
    Retry a provider on retryable errors.

    Makes up to max_retries + 1 attempts. Between attempts it sleeps
    base_delay_seconds * 2 ** (attempt - 1). Errors with retryable=False
    propagate immediately.

    Args:
        inner: Provider to call
        max_retries: Retries after the first attempt
        base_delay_seconds: Delay before the first retry
        sleep: Sleep function (tests pass a recorder)
    """

    def __init__(
        self,
        inner: Provider,
        max_retries: int = 2,
        base_delay_seconds: float = 0.6,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            msg = "max_retries must be >= 0"
            raise ValueError(msg)
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.inner.name

    def close(self) -> None:
        self.inner.close()

    def generate(self, prompt: str) -> Any:
        """
        Call the inner provider with retries.

        Raises:
            ProviderError: A non-retryable error from the inner provider
            ProviderFailedError: Retryable errors on every attempt
        """
        total_attempts = self.max_retries + 1
        last_error: ProviderError | None = None

        for attempt in range(1, total_attempts + 1):
            try:
                return self.inner.generate(prompt)
            except ProviderError as e:
                if not e.retryable:
                    raise
                last_error = e
                if attempt < total_attempts:
                    delay = self.base_delay_seconds * 2 ** (attempt - 1)
                    logger.warning(
                        "%s attempt %d/%d failed (%s); retrying in %.2fs",
                        self.name,
                        attempt,
                        total_attempts,
                        e.message,
                        delay,
                    )
                    self._sleep(delay)

        raise ProviderFailedError(
            provider=self.name,
            attempts=total_attempts,
            last_error=last_error.message if last_error else "unknown error",
            status_code=last_error.status_code if last_error else None,
        )
