"""
HTTP tools for Sentinex.

This module provides:
- http.fetch: GET a URL and return status and (possibly truncated) body

Security Note:
    Policy enforcement happens BEFORE this tool executes. By the time
    execute() is called, the scheme and host have been checked against
    the deny and allow host lists.

    Redirects are not followed: a redirect could lead to a host the
    policy never saw. The 3xx status is returned to the caller instead.

    The body is streamed and reading stops once the byte limit is passed,
    so a large response is never fully buffered. timeoutMs bounds the whole
    request: a deadline is checked between body chunks, so a server that
    trickles bytes slowly still times out.
"""

import logging
import time

import httpx
from pydantic import BaseModel, ConfigDict

from sentinex.actions import HTTP_FETCH, HttpFetchInput
from sentinex.errors import ToolExecutionError, ToolTimeoutError
from sentinex.schema import PolicyConfig
from sentinex.tools.base import Tool, ToolContext, ToolLimits, decode_text, read_limited

logger = logging.getLogger(__name__)


class HttpFetchResult(BaseModel):
    """
    Result of an http.fetch call.

    Attributes:
        url: The requested URL
        status: HTTP status code (non-2xx is returned, not raised)
        body: Response body decoded as UTF-8, cut at the byte limit
        truncated: True iff the body was longer than the limit
    """

    model_config = ConfigDict(frozen=True)

    url: str
    status: int
    body: str
    truncated: bool


class HttpFetchTool(Tool):
    """
    Make HTTP GET requests.

    Arguments:
        url (str): The URL to fetch (required)
        timeoutMs (number): Request timeout (default: from policy)
        maxBytes (number): Body byte limit (default: from policy)

    Example:
        tool = HttpFetchTool()
        result = tool.execute(
            HttpFetchInput(url="https://api.example.com/status"),
            ToolLimits(timeout_ms=5000, max_bytes=64_000),
            context,
        )
        print(result.status, result.truncated)

    Args:
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    @property
    def name(self) -> str:
        return HTTP_FETCH

    @property
    def description(self) -> str:
        return "Fetch a URL with HTTP GET and return status and body"

    def resolve_limits(self, tool_input: HttpFetchInput, policy: PolicyConfig) -> ToolLimits:
        defaults = policy.allow.tools.http_fetch
        timeout_ms = defaults.timeout_ms if tool_input.timeout_ms is None else tool_input.timeout_ms
        max_bytes = defaults.max_bytes if tool_input.max_bytes is None else tool_input.max_bytes
        return ToolLimits(max_bytes=int(max_bytes), timeout_ms=float(timeout_ms))

    def execute(
        self,
        tool_input: HttpFetchInput,
        limits: ToolLimits,
        context: ToolContext,
    ) -> HttpFetchResult:
        """
        Execute an HTTP GET request.

        Raises:
            ToolTimeoutError: If the request exceeds limits.timeout_ms
            ToolExecutionError: On any other transport failure
        """
        url = tool_input.url
        timeout_ms = limits.timeout_ms
        if timeout_ms is None:
            timeout_ms = float(context.policy.allow.tools.http_fetch.timeout_ms)
        logger.debug(
            "run %s: GET %s (timeout=%sms, max_bytes=%s)",
            context.run_id,
            url,
            timeout_ms,
            limits.max_bytes,
        )

        deadline = time.monotonic() + timeout_ms / 1000
        try:
            with httpx.Client(timeout=timeout_ms / 1000, transport=self._transport) as client:
                with client.stream("GET", url) as response:
                    data, truncated = read_limited(response.iter_bytes(), limits.max_bytes, deadline)
                    status = response.status_code
        except (httpx.TimeoutException, TimeoutError) as e:
            raise ToolTimeoutError(
                tool=self.name,
                underlying_error=str(e) or "timed out",
                timeout_ms=timeout_ms,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            raise ToolExecutionError(tool=self.name, underlying_error=str(e) or type(e).__name__) from e
        except (UnicodeError, ValueError) as e:
            # IDNA and URL parsing failures surface as plain ValueErrors
            raise ToolExecutionError(tool=self.name, underlying_error=f"invalid URL: {e}") from e

        return HttpFetchResult(url=url, status=status, body=decode_text(data), truncated=truncated)
