"""Tests for the language bridge."""

import asyncio
from pathlib import Path

import pytest

from bifrost.bridge import LanguageBridge, read_text
from bifrost.core.errors import SessionNotInitializedError
from bifrost.lsp.diagnostics import DiagnosticsCache
from bifrost.lsp.protocol import Diagnostic
from bifrost.lsp.session import EngineSession, SessionState


def sent_notifications(channel, method):
    return [
        call.args[1]
        for call in channel.send_notification.await_args_list
        if call.args[0] == method
    ]


class TestOpenDocument:
    """Tests for document refresh before each query."""

    @pytest.mark.asyncio
    async def test_did_open_payload(self, bridge, mock_channel, room_files):
        handle = await bridge.open_document("/m/room.c")

        (params,) = sent_notifications(mock_channel, "textDocument/didOpen")
        assert params == {
            "textDocument": {
                "uri": "file:///m/room.c",
                "languageId": "lpc",
                "version": 1,
                "text": room_files["/m/room.c"],
            }
        }
        assert handle.version == 1

    @pytest.mark.asyncio
    async def test_reopen_sends_fresh_content(self, bridge, mock_channel, room_files):
        """Edits between calls reach the engine with the next version."""
        await bridge.open_document("/m/room.c")
        room_files["/m/room.c"] = "void create() { }\n"
        await bridge.open_document("/m/room.c")

        first, second = sent_notifications(mock_channel, "textDocument/didOpen")
        assert first["textDocument"]["version"] == 1
        assert second["textDocument"]["version"] == 2
        assert second["textDocument"]["text"] == "void create() { }\n"

    @pytest.mark.asyncio
    async def test_missing_file(self, bridge, mock_channel):
        with pytest.raises(FileNotFoundError):
            await bridge.open_document("/m/nowhere.c")

        mock_channel.send_notification.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relative_path_uses_workspace_root(self, ready_session, diagnostics_cache):
        seen = []

        async def read_file(path):
            seen.append(path)
            return ""

        bridge = LanguageBridge(
            ready_session, diagnostics_cache, read_file=read_file, workspace_root=Path("/m")
        )
        handle = await bridge.open_document("room.c")

        assert seen == [Path("/m/room.c")]
        assert handle.uri == "file:///m/room.c"

    @pytest.mark.asyncio
    async def test_language_id(self, ready_session, diagnostics_cache, mock_channel):
        async def read_file(path):
            return ""

        bridge = LanguageBridge(
            ready_session, diagnostics_cache, language_id="c", read_file=read_file
        )
        await bridge.open_document("/m/room.c")

        (params,) = sent_notifications(mock_channel, "textDocument/didOpen")
        assert params["textDocument"]["languageId"] == "c"


class TestPositionQueries:
    """Tests for hover, definition and references."""

    @pytest.mark.asyncio
    async def test_hover(self, bridge, mock_channel):
        mock_channel.send_request.return_value = {"contents": "void create()"}

        result = await bridge.hover("/m/room.c", 2, 5)

        assert result == {"contents": "void create()"}
        mock_channel.send_request.assert_awaited_once_with(
            "textDocument/hover",
            {
                "textDocument": {"uri": "file:///m/room.c"},
                "position": {"line": 2, "character": 5},
            },
            timeout=None,
        )

    @pytest.mark.asyncio
    async def test_did_open_precedes_request(self, bridge, mock_channel):
        order = []
        mock_channel.send_notification.side_effect = lambda method, params: order.append(method)
        mock_channel.send_request.side_effect = lambda method, params, timeout: order.append(method)

        await bridge.definition("/m/room.c", 3, 4)

        assert order == ["textDocument/didOpen", "textDocument/definition"]

    @pytest.mark.asyncio
    async def test_references_include_declaration(self, bridge, mock_channel):
        mock_channel.send_request.return_value = []

        await bridge.references("/m/room.c", 3, 4)

        method, params = mock_channel.send_request.await_args.args
        assert method == "textDocument/references"
        assert params["context"] == {"includeDeclaration": True}
        assert params["position"] == {"line": 3, "character": 4}

    @pytest.mark.asyncio
    async def test_null_result_passed_through(self, bridge, mock_channel):
        mock_channel.send_request.return_value = None

        assert await bridge.definition("/m/room.c", 0, 0) is None

    @pytest.mark.asyncio
    async def test_request_timeout_forwarded(self, ready_session, diagnostics_cache, mock_channel):
        async def read_file(path):
            return ""

        bridge = LanguageBridge(
            ready_session, diagnostics_cache, request_timeout=3.0, read_file=read_file
        )
        await bridge.hover("/m/room.c", 0, 0)

        assert mock_channel.send_request.await_args.kwargs["timeout"] == 3.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "line,character",
        [(-1, 0), (0, -3), ("1", 0), (True, 0), (1.5, 0), (None, 0)],
    )
    async def test_invalid_positions(self, bridge, mock_channel, line, character):
        with pytest.raises(ValueError):
            await bridge.hover("/m/room.c", line, character)

        mock_channel.send_notification.assert_not_awaited()
        mock_channel.send_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_integral_float_accepted(self, bridge, mock_channel):
        await bridge.hover("/m/room.c", 2.0, 1)

        _, params = mock_channel.send_request.await_args.args
        assert params["position"] == {"line": 2, "character": 1}


class TestDiagnostics:
    """Tests for the diagnostics query."""

    @pytest.mark.asyncio
    async def test_reads_cache_after_open(self, bridge, diagnostics_cache, mock_channel):
        diagnostic = Diagnostic.from_dict(
            {
                "range": {
                    "start": {"line": 0, "character": 8},
                    "end": {"line": 0, "character": 18},
                },
                "severity": 1,
                "message": "Cannot find file /std/room",
            }
        )
        diagnostics_cache.set("file:///m/room.c", [diagnostic])

        result = await bridge.diagnostics("/m/room.c")

        assert result == (diagnostic,)
        assert sent_notifications(mock_channel, "textDocument/didOpen")

    @pytest.mark.asyncio
    async def test_nothing_published(self, bridge):
        assert await bridge.diagnostics("/m/room.c") == ()

    @pytest.mark.asyncio
    async def test_waits_grace_period(self, ready_session, diagnostics_cache, mocker):
        async def read_file(path):
            return ""

        sleep = mocker.patch("bifrost.bridge.asyncio.sleep")
        bridge = LanguageBridge(
            ready_session, diagnostics_cache, grace_period=0.5, read_file=read_file
        )

        await bridge.diagnostics("/m/room.c")

        sleep.assert_awaited_once_with(0.5)


class TestNotReady:
    """Tests for queries without a ready session."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [SessionState.UNINITIALIZED, SessionState.FAILED, SessionState.CLOSED])
    async def test_rejected(self, ready_session, diagnostics_cache, mock_channel, state):
        ready_session.is_ready = False
        ready_session.state = state
        bridge = LanguageBridge(ready_session, diagnostics_cache)

        with pytest.raises(SessionNotInitializedError, match=state.value):
            await bridge.hover("/m/room.c", 0, 0)
        with pytest.raises(SessionNotInitializedError):
            await bridge.diagnostics("/m/room.c")

        mock_channel.send_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unstarted_session(self, diagnostics_cache):
        session = EngineSession(["lpc-language-server", "--stdio"], diagnostics_cache)
        bridge = LanguageBridge(session, diagnostics_cache)

        with pytest.raises(SessionNotInitializedError, match="uninitialized"):
            await bridge.references("/m/room.c", 0, 0)


class TestReadText:
    @pytest.mark.asyncio
    async def test_reads_utf8(self, temp_dir):
        path = temp_dir / "room.c"
        path.write_text('// café\nvoid create() {}\n', encoding="utf-8")

        assert await read_text(path) == '// café\nvoid create() {}\n'


class TestAgainstEngine:
    """End-to-end queries against the scripted language server."""

    @pytest.mark.asyncio
    async def test_queries(self, engine_command, temp_dir):
        cache = DiagnosticsCache()
        session = EngineSession(engine_command("--noise"), cache, workspace_root=temp_dir)
        room = temp_dir / "room.c"
        room.write_text("void create() {\n    error = 1;\n    warn = 2;\n}\n")

        await session.start()
        try:
            bridge = LanguageBridge(session, cache, grace_period=0.3, workspace_root=temp_dir)

            hover = await bridge.hover(str(room), 1, 4)
            definition = await bridge.definition("room.c", 1, 4)
            references = await bridge.references(str(room), 2, 4)
            diagnostics = await bridge.diagnostics(str(room))
            last_open = await session.channel.send_request(
                "fake/last", {"method": "textDocument/didOpen"}
            )
        finally:
            await session.stop()

        assert hover["contents"]["value"] == "hover 1:4 v1"
        assert definition[0]["uri"] == room.as_uri()
        assert len(references) == 2
        assert [d.severity_label for d in diagnostics] == ["Error", "Warning"]
        assert last_open["textDocument"]["version"] == 4

    @pytest.mark.asyncio
    async def test_engine_error_propagates(self, engine_command, temp_dir):
        """A JSON-RPC error from the engine surfaces as ResponseError."""
        from bifrost.core.errors import ResponseError

        cache = DiagnosticsCache()
        session = EngineSession(engine_command(), cache)
        await session.start()
        try:
            with pytest.raises(ResponseError, match="boom"):
                await session.channel.send_request("fake/error")
            assert session.is_ready
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_concurrent_queries(self, engine_command, temp_dir):
        cache = DiagnosticsCache()
        session = EngineSession(engine_command(), cache)
        room = temp_dir / "room.c"
        room.write_text("void create() {}\n")

        await session.start()
        try:
            bridge = LanguageBridge(session, cache, grace_period=0)
            results = await asyncio.gather(
                *(bridge.hover(str(room), 0, n) for n in range(5))
            )
        finally:
            await session.stop()

        characters = sorted(int(r["contents"]["value"].split()[1].split(":")[1]) for r in results)
        assert characters == [0, 1, 2, 3, 4]
