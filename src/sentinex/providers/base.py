"""
Base class for action plan providers.

A provider turns a prompt into a raw action plan. Its output is untrusted:
the runtime validates it with validate_action_plan() before acting on it.

Design Principles:
    - Providers return parsed JSON values, never validated plans
    - Failures raise ProviderError with a retryable flag
    - Retry and fallback are separate providers that wrap others
"""

from abc import ABC, abstractmethod
from typing import Any


class Provider(ABC):
    """
    Abstract base class for plan generators.

    Implementations:
        - MockProvider: Deterministic, offline plans for demos and tests
        - OpenAIProvider: Chat-completions API over httpx
        - RetryingProvider / FallbackProvider: Wrappers around other providers
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs and error messages."""
        ...

    @abstractmethod
    def generate(self, prompt: str) -> Any:
        """
        Produce a raw action plan for a prompt.

        Args:
            prompt: The user prompt (already allowed by policy)

        Returns:
            The parsed but unvalidated plan

        Raises:
            ProviderError: If no plan could be produced
        """
        ...

    def close(self) -> None:
        """Release any held resources. Default: nothing to release."""
        return None

    def __enter__(self) -> "Provider":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"
