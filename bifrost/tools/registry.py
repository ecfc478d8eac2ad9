"""Tool registry for Bifrost."""

import json
from typing import TYPE_CHECKING, Any, Optional

import structlog

from bifrost.core.errors import ErrorCategory
from bifrost.tools.base import Tool, ToolResult
from bifrost.tools.lsp import LSP_TOOLS

if TYPE_CHECKING:
    from bifrost.bridge import LanguageBridge

log = structlog.get_logger()


class ToolRegistry:
    """Manages the tools exposed over the tool protocol."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    @classmethod
    def default(
        cls, bridge: "LanguageBridge", prefix: Optional[str] = None
    ) -> "ToolRegistry":
        """Registry with the hover, definition, references and diagnostics tools."""
        registry = cls()
        for tool_class in LSP_TOOLS:
            registry.register(tool_class(bridge, prefix=prefix))
        return registry

    def register(self, tool: Tool):
        """Register a tool."""
        self._tools[tool.name] = tool
        log.debug("tool_registered", name=tool.name)

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_schemas(self) -> list[dict]:
        """Get all tool schemas."""
        return [tool.get_schema() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: Any = None) -> ToolResult:
        """Execute a tool by name.

        Never raises: unknown tools, bad arguments and tool failures all come
        back as failed results.

        Args:
            name: Tool name to execute
            arguments: Tool arguments (dict or JSON string)

        Returns:
            ToolResult with execution result and error classification
        """
        tool = self.get_tool(name)
        if not tool:
            log.error("tool_not_found", name=name)
            return ToolResult(
                success=False,
                output="",
                error=f"Unknown tool: {name}",
                error_category=ErrorCategory.INPUT,
                suggestion=f"Available tools: {', '.join(sorted(self._tools))}",
            )

        if arguments is None:
            arguments = {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as e:
                log.error("tool_args_parse_error", name=name, error=str(e))
                return ToolResult(
                    success=False,
                    output="",
                    error=f"Failed to parse tool arguments: {str(e)}",
                    error_category=ErrorCategory.INPUT,
                    suggestion="Check JSON syntax in arguments",
                )
        if not isinstance(arguments, dict):
            return ToolResult(
                success=False,
                output="",
                error=f"Tool arguments must be an object, got {type(arguments).__name__}",
                error_category=ErrorCategory.INPUT,
            )

        log.info("tool_execute", name=name, args=arguments)

        try:
            result = await tool.execute(**arguments)
        except TypeError as e:
            log.error("tool_args_invalid", name=name, error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=f"Invalid arguments for {name}: {e}",
                error_category=ErrorCategory.INPUT,
                suggestion="Check the tool arguments against its input schema",
            )
        except Exception as e:
            log.error("tool_execution_error", name=name, error=str(e))
            return ToolResult.from_exception(e)

        if not result.success:
            log.warning("tool_failed", name=name, error=result.error)
        return result
