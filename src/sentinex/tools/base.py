"""
Base classes for the tool interface.

This module defines the core abstractions for tools in Sentinex:
- Tool: Abstract base class that all tools must implement
- ToolLimits: Effective timeout and byte limit for one call
- ToolContext: Runtime context passed to tools during execution

Design Principles:
    - Tools never check policy; the runtime has already done that
    - Tools receive validated input models, never raw generator output
    - Limits are merged once (per-call override, else policy default)
    - Failures raise ToolExecutionError; results are pydantic models
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel

from sentinex.schema import PolicyConfig


@dataclass(frozen=True)
class ToolLimits:
    """
    Effective limits for one tool call.

    Attributes:
        max_bytes: Maximum bytes of content returned
        timeout_ms: Request timeout (None for tools without one)
    """

    max_bytes: int
    timeout_ms: float | None = None


@dataclass(frozen=True)
class ToolContext:
    """
    Runtime context passed to tools during execution.

    Attributes:
        run_id: Identifier of the run this call belongs to
        policy: The policy in force (for limits, not enforcement)
        working_dir: Directory relative paths are resolved against
    """

    run_id: str
    policy: PolicyConfig
    working_dir: Path = Path(".")


class Tool(ABC):
    """
    Abstract base class for all Sentinex tools.

    Subclasses must implement:
    - name property: The tool's identifier (e.g., "fs.read")
    - resolve_limits(): Merge per-call limits with policy defaults
    - execute(): Perform the effect and return a result model
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool, e.g. "http.fetch"."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        return f"Tool: {self.name}"

    @abstractmethod
    def resolve_limits(self, tool_input: BaseModel, policy: PolicyConfig) -> ToolLimits:
        """Per-call values win; otherwise use the policy defaults."""
        ...

    @abstractmethod
    def execute(
        self,
        tool_input: BaseModel,
        limits: ToolLimits,
        context: ToolContext,
    ) -> BaseModel:
        """
        Execute the tool.

        Called only after the policy allowed the call and approval (if any)
        was granted.

        Args:
            tool_input: Validated input model for this tool
            limits: Effective limits from resolve_limits()
            context: Run id, policy and working directory

        Returns:
            A tool-specific result model

        Raises:
            ToolExecutionError: On any I/O or transport failure
        """
        ...

    def __repr__(self) -> str:
        return f"<Tool: {self.name}>"


def read_limited(
    chunks: Iterable[bytes],
    limit: int,
    deadline: float | None = None,
) -> tuple[bytes, bool]:
    """
    Collect at most `limit` bytes from a chunk stream.

    Stops consuming as soon as more than `limit` bytes have been seen.

    Args:
        chunks: Byte chunks, e.g. response.iter_bytes()
        limit: Byte limit
        deadline: time.monotonic() value after which reading stops

    Returns:
        (retained bytes, truncated) where truncated is True iff the
        stream held more than `limit` bytes

    Raises:
        TimeoutError: If the deadline passes before the stream ends
    """
    buf = bytearray()
    for chunk in chunks:
        if deadline is not None and time.monotonic() > deadline:
            msg = "deadline exceeded while reading"
            raise TimeoutError(msg)
        buf.extend(chunk)
        if len(buf) > limit:
            return bytes(buf[:limit]), True
    return bytes(buf), False


def decode_text(data: bytes) -> str:
    """Decode as UTF-8, replacing invalid or cut-off sequences."""
    return data.decode("utf-8", errors="replace")
