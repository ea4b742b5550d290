"""
Filesystem tools for Sentinex.

This module provides:
- fs.read: Read a file's contents, cut at a byte limit

Security Note:
    Policy enforcement happens BEFORE this tool executes. The policy has
    already resolved the path and checked it against deny paths and
    allowed roots. The tool resolves the path the same way so it reads
    exactly the file the policy approved.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from sentinex.actions import FS_READ, FsReadInput
from sentinex.errors import ToolExecutionError
from sentinex.schema import PolicyConfig
from sentinex.tools.base import Tool, ToolContext, ToolLimits, decode_text

logger = logging.getLogger(__name__)


class FsReadResult(BaseModel):
    """
    Result of an fs.read call.

    Attributes:
        path: The path as requested
        content: File content decoded as UTF-8, cut at the byte limit
        truncated: True iff the file was larger than the limit
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    truncated: bool


class FsReadTool(Tool):
    """
    Read file contents.

    Arguments:
        path (str): File to read, relative to the working directory (required)
        maxBytes (number): Content byte limit (default: from policy)

    Only limit + 1 bytes are read from disk, which is enough to tell
    whether the file was truncated.
    """

    @property
    def name(self) -> str:
        return FS_READ

    @property
    def description(self) -> str:
        return "Read the contents of a file"

    def resolve_limits(self, tool_input: FsReadInput, policy: PolicyConfig) -> ToolLimits:
        default = policy.allow.tools.fs_read.max_bytes
        max_bytes = default if tool_input.max_bytes is None else tool_input.max_bytes
        return ToolLimits(max_bytes=int(max_bytes))

    def execute(
        self,
        tool_input: FsReadInput,
        limits: ToolLimits,
        context: ToolContext,
    ) -> FsReadResult:
        """
        Read a file.

        Raises:
            ToolExecutionError: If the file can't be opened or read
        """
        path = Path(tool_input.path)
        if not path.is_absolute():
            path = Path(context.working_dir) / path

        logger.debug("run %s: read %s (max_bytes=%s)", context.run_id, path, limits.max_bytes)
        try:
            with path.open("rb") as f:
                raw = f.read(limits.max_bytes + 1)
        except OSError as e:
            raise ToolExecutionError(tool=self.name, underlying_error=str(e)) from e

        truncated = len(raw) > limits.max_bytes
        return FsReadResult(
            path=tool_input.path,
            content=decode_text(raw[: limits.max_bytes]),
            truncated=truncated,
        )
