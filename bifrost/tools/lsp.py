"""Language server tools: hover, definition, references, diagnostics."""

import json
from abc import abstractmethod
from typing import Any, Sequence

import structlog

from bifrost.lsp.protocol import Diagnostic
from bifrost.tools.base import Tool, ToolResult

log = structlog.get_logger()

NO_DIAGNOSTICS = "No diagnostics found for this file. The code appears to be valid."

_FILE_PROPERTY = {
    "type": "string",
    "description": "Absolute path to the {language} file",
}

POSITION_PARAMETERS = {
    "type": "object",
    "properties": {
        "file": _FILE_PROPERTY,
        "line": {
            "type": "integer",
            "minimum": 0,
            "description": "Line number (0-indexed)",
        },
        "character": {
            "type": "integer",
            "minimum": 0,
            "description": "Character position (0-indexed)",
        },
    },
    "required": ["file", "line", "character"],
}


def format_result(result: Any) -> str:
    """Render a raw engine result as indented JSON."""
    return json.dumps(result, indent=2, ensure_ascii=False)


def format_diagnostics(diagnostics: Sequence[Diagnostic]) -> str:
    """Readable report with 1-indexed positions plus the raw records."""
    if not diagnostics:
        return NO_DIAGNOSTICS

    lines = []
    for diagnostic in diagnostics:
        start = diagnostic.range.start
        lines.append(
            f"[{diagnostic.severity_label}] Line {start.line + 1}:{start.character + 1}"
            f" - {diagnostic.message}"
        )

    raw = [d.to_dict() for d in diagnostics]
    return (
        f"Found {len(diagnostics)} diagnostic(s):\n\n"
        + "\n".join(lines)
        + f"\n\nRaw diagnostics:\n{format_result(raw)}"
    )


class PositionTool(Tool):
    """Base for tools querying a symbol at a position."""

    parameters = POSITION_PARAMETERS

    @abstractmethod
    async def query(self, file: str, line: int, character: int) -> Any:
        """Ask the bridge about the symbol at the position."""
        pass

    async def execute(self, file: str, line: int, character: int) -> ToolResult:
        """Run the query and return the engine's raw result."""
        try:
            result = await self.query(file, line, character)
        except Exception as e:
            log.error("tool_query_failed", tool=self.name, file=file, error=str(e))
            return ToolResult.from_exception(e)

        return ToolResult(
            success=True,
            output=format_result(result),
            metadata={"file": file, "result": result},
        )


class HoverTool(PositionTool):
    """Hover information for the symbol at a position."""

    operation = "hover"
    description = (
        "Get hover information (documentation) for a symbol at a specific "
        "position in an {language} file"
    )

    async def query(self, file: str, line: int, character: int) -> Any:
        return await self.bridge.hover(file, line, character)


class DefinitionTool(PositionTool):
    """Definition location of the symbol at a position."""

    operation = "definition"
    description = "Go to definition of a symbol at a specific position in an {language} file"

    async def query(self, file: str, line: int, character: int) -> Any:
        return await self.bridge.definition(file, line, character)


class ReferencesTool(PositionTool):
    """All references to the symbol at a position, declaration included."""

    operation = "references"
    description = (
        "Find all references to a symbol at a specific position in an {language} file"
    )

    async def query(self, file: str, line: int, character: int) -> Any:
        return await self.bridge.references(file, line, character, include_declaration=True)


class DiagnosticsTool(Tool):
    """Errors, warnings and hints the engine reports for a file."""

    operation = "diagnostics"
    description = (
        "Get diagnostics (errors, warnings, hints) for an {language} file. "
        "This reveals {language} language rules and syntax errors."
    )
    parameters = {
        "type": "object",
        "properties": {"file": _FILE_PROPERTY},
        "required": ["file"],
    }

    async def execute(self, file: str) -> ToolResult:
        """Open the file, wait the grace period, report cached diagnostics."""
        try:
            diagnostics = await self.bridge.diagnostics(file)
        except Exception as e:
            log.error("tool_query_failed", tool=self.name, file=file, error=str(e))
            return ToolResult.from_exception(e)

        return ToolResult(
            success=True,
            output=format_diagnostics(diagnostics),
            metadata={
                "file": file,
                "count": len(diagnostics),
                "diagnostics": [d.to_dict() for d in diagnostics],
            },
        )


LSP_TOOLS: tuple[type[Tool], ...] = (
    HoverTool,
    DefinitionTool,
    ReferencesTool,
    DiagnosticsTool,
)
