"""Tests for LSP protocol types."""

from bifrost.lsp.protocol import (
    Diagnostic,
    InitializeParams,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Position,
    Range,
    TextDocumentItem,
    text_document_position,
)


class TestJsonRpcRequest:
    """Tests for JsonRpcRequest."""

    def test_to_dict(self):
        request = JsonRpcRequest(method="initialize", params={"processId": 1234}, id=1)

        assert request.to_dict() == {
            "jsonrpc": "2.0",
            "method": "initialize",
            "params": {"processId": 1234},
            "id": 1,
        }

    def test_to_dict_without_params(self):
        result = JsonRpcRequest(method="shutdown", id=2).to_dict()
        assert "params" not in result

    def test_from_dict(self):
        request = JsonRpcRequest.from_dict(
            {"jsonrpc": "2.0", "id": "a", "method": "workspace/configuration", "params": {}}
        )

        assert request.id == "a"
        assert request.method == "workspace/configuration"


class TestJsonRpcResponse:
    """Tests for JsonRpcResponse."""

    def test_success_with_null_result(self):
        """A null result is still sent as a result member."""
        result = JsonRpcResponse.success(1, None).to_dict()

        assert result == {"jsonrpc": "2.0", "id": 1, "result": None}

    def test_error(self):
        response = JsonRpcResponse.error(3, -32601, "Unhandled method x")

        assert response.is_error
        assert response.to_dict()["error"] == {"code": -32601, "message": "Unhandled method x"}

    def test_from_dict_error(self):
        response = JsonRpcResponse.from_dict(
            {"jsonrpc": "2.0", "id": 4, "error": {"code": -32000, "message": "boom"}}
        )

        assert response.is_error
        assert response.error_data["message"] == "boom"


class TestNotifications:
    def test_round_trip(self):
        notification = JsonRpcNotification.from_dict(
            {"jsonrpc": "2.0", "method": "initialized", "params": {}}
        )
        assert notification.to_dict() == {"jsonrpc": "2.0", "method": "initialized", "params": {}}


class TestDocuments:
    """Tests for document-level payloads."""

    def test_text_document_item(self):
        item = TextDocumentItem(uri="file:///m/room.c", language_id="lpc", version=2, text="x")

        assert item.to_dict() == {
            "uri": "file:///m/room.c",
            "languageId": "lpc",
            "version": 2,
            "text": "x",
        }

    def test_text_document_position(self):
        assert text_document_position("file:///m/room.c", 10, 5) == {
            "textDocument": {"uri": "file:///m/room.c"},
            "position": {"line": 10, "character": 5},
        }

    def test_range_from_dict(self):
        range_ = Range.from_dict(
            {"start": {"line": 1, "character": 2}, "end": {"line": 3, "character": 4}}
        )
        assert range_ == Range(Position(1, 2), Position(3, 4))

    def test_diagnostic_without_raw(self):
        diagnostic = Diagnostic(range=Range(Position(0, 0), Position(0, 1)), message="x", severity=1)

        assert diagnostic.to_dict() == {
            "range": {"start": {"line": 0, "character": 0}, "end": {"line": 0, "character": 1}},
            "message": "x",
            "severity": 1,
        }


class TestInitializeParams:
    """Tests for the handshake payload."""

    def test_capabilities(self):
        params = InitializeParams(process_id=42).to_dict()
        text_document = params["capabilities"]["textDocument"]

        assert params["processId"] == 42
        for capability in ("hover", "definition", "references"):
            assert text_document[capability] == {"dynamicRegistration": True}

    def test_without_root(self):
        params = InitializeParams(process_id=42).to_dict()

        assert params["rootUri"] is None
        assert "rootPath" not in params
        assert "workspaceFolders" not in params

    def test_with_root(self):
        params = InitializeParams(
            process_id=42, root_uri="file:///home/mud/lib", root_path="/home/mud/lib"
        ).to_dict()

        assert params["rootUri"] == "file:///home/mud/lib"
        assert params["rootPath"] == "/home/mud/lib"
        assert params["workspaceFolders"] == [{"uri": "file:///home/mud/lib", "name": "lib"}]
