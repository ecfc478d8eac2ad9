"""LSP Protocol Definitions.

JSON-RPC 2.0 messages and the slice of the Language Server Protocol that
Bifrost consumes:
- All messages are JSON-RPC 2.0
- Requests expect responses
- Notifications are one-way
- Positions are zero-indexed line/character pairs
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import PurePath
from typing import Any, Optional, Union

JSONRPC_VERSION = "2.0"

MessageId = Union[str, int]


class RequestMethod(str, Enum):
    """Requests sent to the engine."""

    # Lifecycle
    INITIALIZE = "initialize"

    # Position-based queries
    HOVER = "textDocument/hover"
    DEFINITION = "textDocument/definition"
    REFERENCES = "textDocument/references"


class NotificationMethod(str, Enum):
    """Notifications exchanged with the engine."""

    # Client -> Server
    INITIALIZED = "initialized"
    DID_OPEN = "textDocument/didOpen"

    # Server -> Client
    PUBLISH_DIAGNOSTICS = "textDocument/publishDiagnostics"


class EngineRequestMethod(str, Enum):
    """Requests the engine may send back to the client."""

    REGISTER_CAPABILITY = "client/registerCapability"
    WORK_DONE_PROGRESS_CREATE = "window/workDoneProgress/create"
    CONFIGURATION = "workspace/configuration"


class DiagnosticSeverity(IntEnum):
    """Diagnostic severity as defined by LSP."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4

    @classmethod
    def label(cls, value: Optional[int]) -> str:
        """Human label for a raw severity value."""
        try:
            return cls(value).name.capitalize()
        except ValueError:
            return "Unknown"


@dataclass
class Position:
    """Position in a text document (0-indexed)."""

    line: int
    character: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to LSP format."""
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Position":
        """Parse from LSP format."""
        return cls(line=data.get("line", 0), character=data.get("character", 0))


@dataclass
class Range:
    """Half-open range in a text document."""

    start: Position
    end: Position

    def to_dict(self) -> dict[str, Any]:
        """Convert to LSP format."""
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Range":
        """Parse from LSP format."""
        return cls(
            start=Position.from_dict(data.get("start", {})),
            end=Position.from_dict(data.get("end", {})),
        )


@dataclass
class TextDocumentIdentifier:
    """Identifies a text document."""

    uri: str

    def to_dict(self) -> dict[str, Any]:
        return {"uri": self.uri}


@dataclass
class TextDocumentItem:
    """Full text document content."""

    uri: str
    language_id: str
    version: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to LSP format."""
        return {
            "uri": self.uri,
            "languageId": self.language_id,
            "version": self.version,
            "text": self.text,
        }


@dataclass
class Diagnostic:
    """A single issue published by the engine.

    The raw record is kept so structured payloads can carry exactly what the
    engine sent, zero-indexed.
    """

    range: Range
    message: str
    severity: Optional[int] = None
    source: Optional[str] = None
    code: Union[str, int, None] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def severity_label(self) -> str:
        return DiagnosticSeverity.label(self.severity)

    def to_dict(self) -> dict[str, Any]:
        """Convert to LSP format."""
        if self.raw:
            return dict(self.raw)
        result: dict[str, Any] = {
            "range": self.range.to_dict(),
            "message": self.message,
        }
        if self.severity is not None:
            result["severity"] = self.severity
        if self.source is not None:
            result["source"] = self.source
        if self.code is not None:
            result["code"] = self.code
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Diagnostic":
        """Parse from LSP format."""
        return cls(
            range=Range.from_dict(data.get("range", {})),
            message=data.get("message", ""),
            severity=data.get("severity"),
            source=data.get("source"),
            code=data.get("code"),
            raw=dict(data),
        )


@dataclass
class JsonRpcRequest:
    """JSON-RPC request message."""

    method: str
    params: Optional[Any] = None
    id: Optional[MessageId] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC format."""
        result: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
        }
        if self.params is not None:
            result["params"] = self.params
        if self.id is not None:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JsonRpcRequest":
        """Parse from JSON-RPC format."""
        return cls(
            method=data["method"],
            params=data.get("params"),
            id=data.get("id"),
        )


@dataclass
class JsonRpcResponse:
    """JSON-RPC response message."""

    id: Optional[MessageId]
    result: Optional[Any] = None
    error_data: Optional[dict[str, Any]] = None

    @property
    def is_error(self) -> bool:
        return self.error_data is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC format."""
        response: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.id,
        }
        if self.error_data is not None:
            response["error"] = self.error_data
        else:
            response["result"] = self.result
        return response

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JsonRpcResponse":
        """Parse from JSON-RPC format."""
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error_data=data.get("error"),
        )

    @classmethod
    def success(cls, id: Optional[MessageId], result: Any) -> "JsonRpcResponse":
        """Create a success response."""
        return cls(id=id, result=result)

    @classmethod
    def error(
        cls,
        id: Optional[MessageId],
        code: int,
        message: str,
        data: Any = None,
    ) -> "JsonRpcResponse":
        """Create an error response."""
        error_obj: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            error_obj["data"] = data
        return cls(id=id, error_data=error_obj)


@dataclass
class JsonRpcNotification:
    """JSON-RPC notification message (no response expected)."""

    method: str
    params: Optional[Any] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC format."""
        result: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
        }
        if self.params is not None:
            result["params"] = self.params
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JsonRpcNotification":
        """Parse from JSON-RPC format."""
        return cls(
            method=data["method"],
            params=data.get("params"),
        )


class ErrorCode:
    """Standard JSON-RPC error codes."""

    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603


def text_document_position(uri: str, line: int, character: int) -> dict[str, Any]:
    """Build ``TextDocumentPositionParams``."""
    return {
        "textDocument": TextDocumentIdentifier(uri).to_dict(),
        "position": Position(line, character).to_dict(),
    }


@dataclass
class InitializeParams:
    """Parameters for the initialize request."""

    process_id: Optional[int] = None
    root_uri: Optional[str] = None
    root_path: Optional[str] = None
    client_info: dict[str, str] = field(
        default_factory=lambda: {"name": "bifrost", "version": "0.1.0"}
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to LSP format."""
        params: dict[str, Any] = {
            "processId": self.process_id,
            "clientInfo": self.client_info,
            "rootUri": self.root_uri,
            "capabilities": {
                "textDocument": {
                    "hover": {"dynamicRegistration": True},
                    "definition": {"dynamicRegistration": True},
                    "references": {"dynamicRegistration": True},
                    "publishDiagnostics": {"relatedInformation": False},
                },
            },
        }
        if self.root_path is not None:
            params["rootPath"] = self.root_path
        if self.root_uri is not None:
            params["workspaceFolders"] = [
                {
                    "uri": self.root_uri,
                    "name": PurePath(self.root_path).name if self.root_path else self.root_uri,
                }
            ]
        return params
