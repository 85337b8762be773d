"""
Tool routing and registration for the smart-home MCP gateway.

This module provides:
- ToolDefinition: name, description, argument model and handler of one tool
- ToolRegistry: A registry mapping MCP tool names to definitions
- Handler dispatch with argument validation and error handling

Argument models are pydantic models; their JSON schema is what ``tools/list``
advertises as ``inputSchema``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, ValidationError

from mcp_smarthome.errors import InternalError, InvalidArgumentError, NotFoundError, ToolError

if TYPE_CHECKING:
    from mcp_smarthome.context import ToolContext

# Handlers return one text item or a list of text items
ToolHandler = Callable[["ToolContext", Any], Awaitable["str | list[str]"]]


class NoArguments(BaseModel):
    """Argument model for tools that take no arguments."""

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ToolDefinition:
    """
    Describes one MCP tool.

    Attributes:
        name: MCP tool name (e.g., "switch_home").
        description: Description shown to the model.
        handler: Async handler receiving the ToolContext and validated arguments.
        arguments: Pydantic model used to validate and describe the arguments.
        namespace: Configuration namespace the tool belongs to.
    """

    name: str
    description: str
    handler: ToolHandler
    arguments: type[BaseModel] = NoArguments
    namespace: str = "default"

    def input_schema(self) -> dict[str, Any]:
        """Return the JSON schema of the tool arguments."""
        schema = self.arguments.model_json_schema()
        schema.setdefault("properties", {})
        return schema

    def to_mcp_dict(self) -> dict[str, Any]:
        """Return the tool as listed by ``tools/list``."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


class ToolRegistry:
    """
    Registry for mapping tool names to tool definitions.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(ToolDefinition("list_homes", "List homes", handler))
        >>> texts = await registry.invoke("list_homes", ctx, {})
    """

    def __init__(self) -> None:
        """Initialize an empty tool registry."""
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> None:
        """
        Register a tool definition.

        Raises:
            ValueError: If a tool is already registered under the same name.
        """
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        self._tools[definition.name] = definition

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def get(self, name: str) -> ToolDefinition | None:
        """Get the definition for a tool by name, or None if not found."""
        return self._tools.get(name)

    def list_tools(self, namespace: str | None = None) -> list[ToolDefinition]:
        """
        List registered tools in registration order.

        Args:
            namespace: Optional namespace to filter by.
        """
        if namespace is None:
            return list(self._tools.values())
        return [tool for tool in self._tools.values() if tool.namespace == namespace]

    def list_namespaces(self) -> list[str]:
        """List all unique namespaces from registered tools."""
        return sorted({tool.namespace for tool in self._tools.values()})

    async def invoke(
        self,
        name: str,
        ctx: ToolContext,
        arguments: dict[str, Any],
    ) -> list[str]:
        """
        Validate arguments and invoke a tool handler by name.

        Args:
            name: Tool name to invoke.
            ctx: ToolContext for the request.
            arguments: Raw arguments from the ``tools/call`` request.

        Returns:
            The text items produced by the handler.

        Raises:
            NotFoundError: If the tool is not registered.
            InvalidArgumentError: If the arguments fail validation.
            InternalError: If the handler raises an unexpected exception.
        """
        definition = self.get(name)
        if definition is None:
            raise NotFoundError(
                message=f"Unknown tool: {name}",
                details={"tool": name},
            )

        try:
            args = definition.arguments.model_validate(arguments)
        except ValidationError as e:
            raise InvalidArgumentError(
                message=f"Invalid arguments for tool '{name}'",
                details={
                    "tool": name,
                    "errors": e.errors(include_url=False, include_context=False),
                },
            ) from e

        try:
            result = await definition.handler(ctx, args)
        except ToolError:
            raise
        except Exception as e:
            raise InternalError(
                message=f"Internal error in tool '{name}': {e!s}",
                details={"tool": name, "exception_type": type(e).__name__},
            ) from e

        if isinstance(result, str):
            return [result]
        return list(result)

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered (for 'in' operator)."""
        return name in self._tools

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)
