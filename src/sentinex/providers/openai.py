"""
OpenAI-compatible chat-completions provider.

Sends one POST /chat/completions per generate() call and returns the JSON
object from the assistant message. Retries are not done here; wrap the
provider in RetryingProvider (create_provider() does this).

Error classification:
    - Timeouts and transport errors: retryable
    - HTTP 408, 409, 425, 429, 500, 502, 503, 504: retryable
    - Missing API key, other HTTP errors, unusable content: not retryable
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

import httpx

from sentinex.errors import ProviderError
from sentinex.providers.base import Provider
from sentinex.providers.json_extract import parse_json_content
from sentinex.schema import LlmConfig

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})


def _message_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None

    if isinstance(content, list):
        content = "\n".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        )
    if not isinstance(content, str) or not content:
        msg = "response did not include message content"
        raise ValueError(msg)
    return content


class OpenAIProvider(Provider):
    """
    Plan generator backed by an OpenAI-compatible API.

    Example:
        provider = OpenAIProvider(LlmConfig(provider="openai"))
        raw_plan = provider.generate("fetch https://api.example.com/status")

    Args:
        config: The llm section of the runtime config
        transport: Optional httpx transport (tests pass httpx.MockTransport)
        environ: Where to look up the API key (defaults to os.environ)
    """

    def __init__(
        self,
        config: LlmConfig,
        transport: httpx.BaseTransport | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._environ = os.environ if environ is None else environ
        self._client: httpx.Client | None = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.timeout_ms / 1000,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _error(self, message: str, retryable: bool = False, status_code: int | None = None) -> ProviderError:
        return ProviderError(
            message=message,
            provider=self.name,
            retryable=retryable,
            status_code=status_code,
        )

    def generate(self, prompt: str) -> Any:
        api_key = self._environ.get(self.config.api_key_env)
        if not api_key:
            raise ProviderError(
                message=f"Missing API key: set environment variable {self.config.api_key_env}",
                provider=self.name,
                suggestion=f"export {self.config.api_key_env}=... or set llm.provider to 'mock'",
            )

        payload = {
            "model": self.config.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": self.config.system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        headers = {"Authorization": f"Bearer {api_key}"}

        logger.debug("POST %s (model=%s)", self.endpoint, self.config.model)
        try:
            response = self._get_client().post(self.endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise self._error(
                f"OpenAI request timed out after {self.config.timeout_ms}ms",
                retryable=True,
            ) from e
        except httpx.HTTPError as e:
            raise self._error(f"OpenAI request error: {e}", retryable=True) from e

        if response.status_code < 200 or response.status_code >= 300:
            retryable = response.status_code in RETRYABLE_STATUS_CODES
            raise self._error(
                f"OpenAI request failed ({response.status_code}): {response.text[:500]}",
                retryable=retryable,
                status_code=response.status_code,
            )

        try:
            content = _message_content(response.json())
            return parse_json_content(content)
        except ValueError as e:
            raise self._error(f"OpenAI response unusable: {e}") from e
