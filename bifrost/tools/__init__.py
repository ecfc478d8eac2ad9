"""Tools exposed to AI assistants over the tool protocol."""

from bifrost.tools.base import Tool, ToolResult
from bifrost.tools.lsp import (
    DefinitionTool,
    DiagnosticsTool,
    HoverTool,
    ReferencesTool,
    format_diagnostics,
)
from bifrost.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "HoverTool",
    "DefinitionTool",
    "ReferencesTool",
    "DiagnosticsTool",
    "format_diagnostics",
]
