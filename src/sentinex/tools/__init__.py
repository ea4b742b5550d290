"""
Tools module for Sentinex.

Tools are the side-effecting operations a plan can request:
- http.fetch: GET a URL
- fs.read: Read a file

Every tool call is checked by the policy engine and the approval gate
before it reaches a tool.
"""

from sentinex.tools.base import Tool, ToolContext, ToolLimits
from sentinex.tools.fs import FsReadResult, FsReadTool
from sentinex.tools.http import HttpFetchResult, HttpFetchTool
from sentinex.tools.registry import ToolRegistry, create_default_registry

__all__ = [
    "FsReadResult",
    "FsReadTool",
    "HttpFetchResult",
    "HttpFetchTool",
    "Tool",
    "ToolContext",
    "ToolLimits",
    "ToolRegistry",
    "create_default_registry",
]
