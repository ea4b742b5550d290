"""Build the provider described by the runtime config."""

from sentinex.providers.base import Provider
from sentinex.providers.fallback import FallbackProvider
from sentinex.providers.mock import MockProvider
from sentinex.providers.openai import OpenAIProvider
from sentinex.providers.retry import RetryingProvider
from sentinex.schema import ProviderKind, RuntimeConfig


def create_provider(config: RuntimeConfig) -> Provider:
    """
    Create a provider from config.

    mock   -> MockProvider
    openai -> RetryingProvider(OpenAIProvider), followed by MockProvider
              in a FallbackProvider when llm.fallbackToMock is set
    """
    llm = config.llm
    if llm.provider == ProviderKind.MOCK:
        return MockProvider()

    provider: Provider = RetryingProvider(
        OpenAIProvider(llm),
        max_retries=llm.max_retries,
        base_delay_seconds=llm.retry_delay_ms / 1000,
    )
    if llm.fallback_to_mock:
        provider = FallbackProvider([provider, MockProvider()])
    return provider
