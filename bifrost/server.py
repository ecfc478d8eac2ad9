"""MCP server exposing the language tools.

Serves the tool registry over the Model Context Protocol on stdio. A failed
tool call becomes an MCP error result (``isError: true``) with the text
``Error: <message>``; nothing a tool does can take the server down.
"""

from typing import TYPE_CHECKING, Any, Optional

import mcp.types as types
import structlog
from mcp.server import InitializationOptions, Server
from mcp.server.stdio import stdio_server

from bifrost import __version__
from bifrost.bridge import LanguageBridge
from bifrost.core.errors import ToolCallError
from bifrost.lsp.diagnostics import DiagnosticsCache
from bifrost.lsp.session import EngineSession
from bifrost.tools.base import ToolResult
from bifrost.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from bifrost.config import BifrostConfig

log = structlog.get_logger()


def error_text(result: ToolResult) -> str:
    """Tool-protocol text for a failed result."""
    text = f"Error: {result.error or 'Unknown error'}"
    if result.suggestion:
        text += f"\nSuggestion: {result.suggestion}"
    return text


class BifrostServer:
    """MCP front end for a ``ToolRegistry``."""

    def __init__(
        self,
        registry: ToolRegistry,
        name: str = "bifrost",
        version: str = __version__,
        instructions: Optional[str] = None,
    ):
        self.registry = registry
        self.name = name
        self.version = version
        self.instructions = instructions
        self.server = Server(name)
        self.server.list_tools()(self.list_tools)
        self.server.call_tool()(self.call_tool)

    async def list_tools(self) -> list[types.Tool]:
        """Return available tools."""
        return [
            types.Tool(
                name=schema["name"],
                description=schema["description"],
                inputSchema=schema["inputSchema"],
            )
            for schema in self.registry.get_schemas()
        ]

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]]) -> list[types.TextContent]:
        """Handle tool calls.

        Raises:
            ToolCallError: The tool failed; the MCP server turns this into an
                error result
        """
        result = await self.registry.execute(name, arguments or {})
        if not result.success:
            raise ToolCallError(error_text(result))
        return [types.TextContent(type="text", text=result.output)]

    def initialization_options(self) -> InitializationOptions:
        return InitializationOptions(
            server_name=self.name,
            server_version=self.version,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability()),
            instructions=self.instructions,
        )

    async def run_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the client disconnects."""
        log.info("mcp_server_starting", name=self.name, tools=len(self.registry.tools))
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(read_stream, write_stream, self.initialization_options())
        log.info("mcp_server_stopped")


async def serve(config: "BifrostConfig", command: list[str]) -> None:
    """Start the language server, then serve its tools over MCP on stdio.

    The session is started before MCP serving begins; a spawn or handshake
    failure propagates and nothing is served. The engine is stopped when the
    MCP client disconnects.
    """
    diagnostics = DiagnosticsCache()
    session = EngineSession(
        command,
        diagnostics,
        workspace_root=config.workspace_root,
        init_timeout=config.init_timeout,
    )
    await session.start()

    try:
        bridge = LanguageBridge(
            session,
            diagnostics,
            language_id=config.language_id,
            grace_period=config.diagnostics_grace_period,
            request_timeout=config.request_timeout,
            workspace_root=config.workspace_root,
        )
        server = BifrostServer(ToolRegistry.default(bridge))
        await server.run_stdio()
    finally:
        await session.stop()
