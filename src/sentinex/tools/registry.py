"""
Tool registry for Sentinex.

The registry maps tool names to executors. The runtime hands it a
validated tool action; the registry looks up the tool, merges limits
and runs it.

Usage:
    from sentinex.tools import create_default_registry

    registry = create_default_registry()
    result = registry.execute(action, context)
"""

from collections.abc import Iterator

from pydantic import BaseModel

from sentinex.actions import FsReadAction, HttpFetchAction
from sentinex.errors import ToolNotFoundError
from sentinex.tools.base import Tool, ToolContext


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Internal mapping of tool names to tool instances
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool, replacing any tool with the same name.

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)
        if not tool.name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name)
        return tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        """List all registered tool names in sorted order."""
        return sorted(self._tools.keys())

    def execute(
        self,
        action: HttpFetchAction | FsReadAction,
        context: ToolContext,
    ) -> BaseModel:
        """
        Run a validated tool action.

        Args:
            action: The tool action from a validated plan
            context: Run context for the call

        Returns:
            The tool's result model

        Raises:
            ToolNotFoundError: If the tool isn't registered
            ToolExecutionError: If the tool fails
        """
        tool = self.get(action.tool)
        limits = tool.resolve_limits(action.input, context.policy)
        return tool.execute(action.input, limits, context)

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"


def create_default_registry() -> ToolRegistry:
    """Create a registry with http.fetch and fs.read."""
    from sentinex.tools.fs import FsReadTool
    from sentinex.tools.http import HttpFetchTool

    registry = ToolRegistry()
    registry.register(HttpFetchTool())
    registry.register(FsReadTool())
    return registry
