"""Language server side of the bridge.

Main Components:
- FrameFilter: strips non-protocol output from the engine's stdout
- JsonRpcChannel: Content-Length framed JSON-RPC over the engine's streams
- DiagnosticsCache: latest diagnostics pushed per document
- DocumentStore: versions of documents opened in the engine
- EngineSession: spawn, handshake and state of the single engine process
"""

from bifrost.lsp.channel import JsonRpcChannel, NotificationSubscription
from bifrost.lsp.diagnostics import DiagnosticsCache
from bifrost.lsp.documents import DocumentHandle, DocumentStore, document_uri
from bifrost.lsp.session import EngineSession, SessionState
from bifrost.lsp.transport import FrameFilter, filter_stream

__all__ = [
    "FrameFilter",
    "filter_stream",
    "JsonRpcChannel",
    "NotificationSubscription",
    "DiagnosticsCache",
    "DocumentHandle",
    "DocumentStore",
    "document_uri",
    "EngineSession",
    "SessionState",
]
