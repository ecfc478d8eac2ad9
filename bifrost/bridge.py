"""Bridge from tool calls to the language server session.

Every operation refreshes the document in the engine (``didOpen`` with the
file's current content and the next version) before querying it, so edits
made between calls are picked up.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import aiofiles
import structlog

from bifrost.core.errors import SessionNotInitializedError
from bifrost.lsp.channel import JsonRpcChannel
from bifrost.lsp.diagnostics import DiagnosticsCache
from bifrost.lsp.documents import DocumentHandle, DocumentStore, document_path
from bifrost.lsp.protocol import (
    Diagnostic,
    NotificationMethod,
    RequestMethod,
    TextDocumentItem,
    text_document_position,
)
from bifrost.lsp.session import EngineSession

log = structlog.get_logger()

FileReader = Callable[[Path], Awaitable[str]]

# The engine never reports that analysis finished; diagnostics are read after
# this many seconds. A heuristic, not a completion guarantee.
DEFAULT_GRACE_PERIOD = 0.5


async def read_text(path: Path) -> str:
    """Read a document's current content."""
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return await f.read()


def _position_value(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be zero or positive, got {value}")
    return value


class LanguageBridge:
    """Runs language queries against the engine session."""

    def __init__(
        self,
        session: EngineSession,
        diagnostics: DiagnosticsCache,
        documents: Optional[DocumentStore] = None,
        language_id: str = "lpc",
        grace_period: float = DEFAULT_GRACE_PERIOD,
        request_timeout: Optional[float] = None,
        read_file: FileReader = read_text,
        workspace_root: Optional[Path] = None,
    ):
        """Initialize the bridge.

        Args:
            session: The engine session; must be ready for any operation
            diagnostics: Cache the session feeds with diagnostics pushes
            documents: Version tracking for opened documents
            language_id: LSP language identifier sent with didOpen
            grace_period: Seconds to wait before reading diagnostics
            request_timeout: Bound on position requests; None waits forever
            read_file: Filesystem reader for document content
            workspace_root: Base for relative document paths
        """
        self.session = session
        self.cache = diagnostics
        self.documents = documents or DocumentStore()
        self.language_id = language_id
        self.grace_period = grace_period
        self.request_timeout = request_timeout
        self.read_file = read_file
        self.workspace_root = workspace_root

    def _require_channel(self) -> JsonRpcChannel:
        channel = self.session.channel
        if not self.session.is_ready or channel is None:
            raise SessionNotInitializedError(self.session.state.value)
        return channel

    async def open_document(self, path: Union[str, Path]) -> DocumentHandle:
        """Send the file's current content to the engine with a new version."""
        channel = self._require_channel()
        file_path = document_path(path, self.workspace_root)
        text = await self.read_file(file_path)

        handle = self.documents.open(file_path, text)
        item = TextDocumentItem(
            uri=handle.uri,
            language_id=self.language_id,
            version=handle.version,
            text=text,
        )
        await channel.send_notification(
            NotificationMethod.DID_OPEN.value, {"textDocument": item.to_dict()}
        )
        return handle

    async def _position_request(
        self,
        method: RequestMethod,
        path: Union[str, Path],
        line: Any,
        character: Any,
        **extra: Any,
    ) -> Any:
        line = _position_value(line, "line")
        character = _position_value(character, "character")
        handle = await self.open_document(path)

        params = text_document_position(handle.uri, line, character)
        params.update(extra)
        log.debug("position_request", method=method.value, uri=handle.uri, line=line, character=character)
        return await self._require_channel().send_request(
            method.value, params, timeout=self.request_timeout
        )

    async def hover(self, path: Union[str, Path], line: int, character: int) -> Any:
        """Raw ``textDocument/hover`` result at a position."""
        return await self._position_request(RequestMethod.HOVER, path, line, character)

    async def definition(self, path: Union[str, Path], line: int, character: int) -> Any:
        """Raw ``textDocument/definition`` result at a position."""
        return await self._position_request(RequestMethod.DEFINITION, path, line, character)

    async def references(
        self,
        path: Union[str, Path],
        line: int,
        character: int,
        include_declaration: bool = True,
    ) -> Any:
        """Raw ``textDocument/references`` result at a position."""
        return await self._position_request(
            RequestMethod.REFERENCES,
            path,
            line,
            character,
            context={"includeDeclaration": include_declaration},
        )

    async def diagnostics(self, path: Union[str, Path]) -> tuple[Diagnostic, ...]:
        """Diagnostics for a file after the grace period.

        An empty result means either "no issues" or "not analysed yet"; the
        two cannot be told apart.
        """
        handle = await self.open_document(path)
        if self.grace_period > 0:
            await asyncio.sleep(self.grace_period)
        diagnostics = self.cache.get(handle.uri)
        log.debug("diagnostics_read", uri=handle.uri, version=handle.version, count=len(diagnostics))
        return diagnostics
