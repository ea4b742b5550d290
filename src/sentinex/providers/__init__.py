"""
Providers for Sentinex.

A provider turns a prompt into a raw (untrusted) action plan.

Implementations:
    - MockProvider: Offline, deterministic
    - OpenAIProvider: OpenAI-compatible chat completions
    - RetryingProvider: Exponential backoff around another provider
    - FallbackProvider: First success from a chain of providers
"""

from sentinex.providers.base import Provider
from sentinex.providers.factory import create_provider
from sentinex.providers.fallback import FallbackProvider
from sentinex.providers.mock import MockProvider
from sentinex.providers.openai import OpenAIProvider
from sentinex.providers.retry import RetryingProvider

__all__ = [
    "FallbackProvider",
    "MockProvider",
    "OpenAIProvider",
    "Provider",
    "RetryingProvider",
    "create_provider",
]
