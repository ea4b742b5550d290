"""Fallback chain: try providers in order, return the first success."""

import logging
from typing import Any

from sentinex.errors import ProviderError, ProviderFailedError
from sentinex.providers.base import Provider

logger = logging.getLogger(__name__)


class FallbackProvider(Provider):
    """
    Try each provider in order.

    The name is the member names joined by "->", e.g. "openai->mock".
    If every provider fails, one ProviderFailedError names the last failure.
    """

    def __init__(self, providers: list[Provider]) -> None:
        if not providers:
            msg = "FallbackProvider needs at least one provider"
            raise ValueError(msg)
        self.providers = list(providers)

    @property
    def name(self) -> str:
        return "->".join(p.name for p in self.providers)

    def close(self) -> None:
        for provider in self.providers:
            provider.close()

    def generate(self, prompt: str) -> Any:
        last_error: ProviderError | None = None
        for provider in self.providers:
            try:
                return provider.generate(prompt)
            except ProviderError as e:
                logger.warning("provider %s failed, trying next: %s", provider.name, e.message)
                last_error = e

        raise ProviderFailedError(
            message=f"Provider fallback chain failed: {last_error.message if last_error else 'no provider'}",
            provider=self.name,
            attempts=len(self.providers),
            last_error=last_error.message if last_error else "",
        )
