"""Language server session lifecycle.

Owns the single engine process of a Bifrost server: spawning it, wiring its
stdout through the frame filter into a JSON-RPC channel, running the
initialize/initialized handshake and tracking the session state.

State machine::

    uninitialized -> initializing -> ready | failed
    ready -> closed        (engine exit or channel close)

``failed`` and ``closed`` are terminal; there is no respawn.
"""

import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from bifrost.core.errors import (
    BifrostError,
    HandshakeError,
    HandshakeTimeoutError,
    RequestTimeoutError,
    SessionStateError,
    SpawnError,
)
from bifrost.lsp.channel import JsonRpcChannel
from bifrost.lsp.diagnostics import DiagnosticsCache
from bifrost.lsp.protocol import (
    EngineRequestMethod,
    InitializeParams,
    NotificationMethod,
    RequestMethod,
)
from bifrost.lsp.transport import FrameFilter, filter_stream

log = structlog.get_logger()

# Seconds to let stdout drain after the engine exits before forcing the
# channel closed.
EXIT_DRAIN_SECONDS = 1.0
STOP_GRACE_SECONDS = 2.0
READER_LIMIT = 1024 * 1024


class SessionState(str, Enum):
    """Lifecycle states of an engine session."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class EngineSession:
    """The one language server session of a Bifrost server."""

    def __init__(
        self,
        command: Sequence[str],
        diagnostics: DiagnosticsCache,
        workspace_root: Optional[Path] = None,
        init_timeout: float = 5.0,
        cwd: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
    ):
        """Initialize the session.

        Args:
            command: Program and arguments starting the engine in stdio mode
            diagnostics: Cache fed by the engine's diagnostics pushes
            workspace_root: Root declared in the handshake; None declares none
            init_timeout: Seconds to wait for the initialize response
            cwd: Working directory of the engine process
            env: Extra environment variables for the engine process
        """
        if not command:
            raise ValueError("Engine command must not be empty")
        self.command = list(command)
        self.diagnostics = diagnostics
        self.workspace_root = workspace_root
        self.init_timeout = init_timeout
        self.cwd = cwd
        self.env = env
        self.frame_filter = FrameFilter()
        self.initialize_result: Optional[dict[str, Any]] = None
        self.server_capabilities: dict[str, Any] = {}
        self._state = SessionState.UNINITIALIZED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._channel: Optional[JsonRpcChannel] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def channel(self) -> Optional[JsonRpcChannel]:
        return self._channel

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        log.info("session_state", previous=self._state.value, state=state.value)
        self._state = state

    async def start(self) -> dict[str, Any]:
        """Spawn the engine and run the handshake.

        Returns:
            The engine's initialize result

        Raises:
            SessionStateError: The session was already started
            SpawnError: The engine process could not be started
            HandshakeTimeoutError: No initialize response within init_timeout
            HandshakeError: The handshake failed otherwise
        """
        if self._state is not SessionState.UNINITIALIZED:
            raise SessionStateError(
                f"Session cannot start from state '{self._state.value}'"
            )
        self._set_state(SessionState.INITIALIZING)

        try:
            params = self._initialize_params().to_dict()
        except ValueError as e:
            self._set_state(SessionState.FAILED)
            log.error("session_invalid_root", root=str(self.workspace_root), error=str(e))
            raise HandshakeError(f"Invalid workspace root {self.workspace_root}: {e}") from e

        await self._spawn()
        channel = self._connect()

        log.info("session_initializing", root=params.get("rootPath"))
        try:
            result = await channel.send_request(
                RequestMethod.INITIALIZE.value, params, timeout=self.init_timeout
            )
            await channel.send_notification(NotificationMethod.INITIALIZED.value, {})
        except RequestTimeoutError as e:
            await self._fail()
            raise HandshakeTimeoutError(
                f"Language server did not answer initialize within {self.init_timeout:g}s"
            ) from e
        except BifrostError as e:
            await self._fail()
            raise HandshakeError(f"Language server initialize failed: {e}") from e
        except Exception as e:
            log.exception("session_handshake_crashed")
            await self._fail()
            raise HandshakeError(f"Language server initialize failed: {e}") from e

        if channel.closed:
            await self._fail()
            raise HandshakeError("Language server exited during the handshake")

        self.initialize_result = result if isinstance(result, dict) else {}
        self.server_capabilities = self.initialize_result.get("capabilities", {})

        self._set_state(SessionState.READY)
        log.info(
            "session_ready",
            pid=self.pid,
            server=self.initialize_result.get("serverInfo"),
        )
        return self.initialize_result

    async def stop(self) -> None:
        """Kill the engine and close the channel.

        No shutdown/exit handshake is attempted.
        """
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), STOP_GRACE_SECONDS)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                log.warning("engine_kill", pid=process.pid)
                process.kill()
                await process.wait()

        if self._channel is not None:
            await self._channel.close("session stopped")

        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._state is SessionState.READY:
            self._set_state(SessionState.CLOSED)

    async def _spawn(self) -> None:
        env = None
        if self.env:
            env = os.environ.copy()
            env.update(self.env)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=str(self.cwd) if self.cwd else None,
                env=env,
            )
        except (OSError, ValueError) as e:
            self._set_state(SessionState.FAILED)
            log.error("engine_spawn_failed", command=self.command, error=str(e))
            raise SpawnError(f"Failed to start language server {self.command[0]!r}: {e}") from e

        log.info("engine_spawned", pid=self._process.pid, command=self.command)

    def _connect(self) -> JsonRpcChannel:
        assert self._process is not None
        cleaned = asyncio.StreamReader(limit=READER_LIMIT)
        self._tasks.append(
            asyncio.create_task(
                filter_stream(self._process.stdout, cleaned, self.frame_filter),
                name="engine-stdout-filter",
            )
        )

        channel = JsonRpcChannel(cleaned, self._process.stdin, name="engine")
        self.diagnostics.attach(channel)
        self._register_engine_requests(channel)
        channel.on_error(self._on_channel_error)
        channel.on_close(self._on_channel_closed)
        channel.listen()
        self._channel = channel

        self._tasks.append(
            asyncio.create_task(self._watch_process(), name="engine-exit-watcher")
        )
        return channel

    def _initialize_params(self) -> InitializeParams:
        root = self.workspace_root
        return InitializeParams(
            process_id=os.getpid(),
            root_uri=root.as_uri() if root else None,
            root_path=str(root) if root else None,
        )

    def _register_engine_requests(self, channel: JsonRpcChannel) -> None:
        """Answer the requests language servers commonly send back."""
        channel.on_request(EngineRequestMethod.REGISTER_CAPABILITY.value, lambda params: None)
        channel.on_request(EngineRequestMethod.WORK_DONE_PROGRESS_CREATE.value, lambda params: None)
        channel.on_request(
            EngineRequestMethod.CONFIGURATION.value,
            lambda params: [None] * len((params or {}).get("items", [])),
        )

    async def _watch_process(self) -> None:
        assert self._process is not None
        returncode = await self._process.wait()
        log.warning("engine_exited", pid=self._process.pid, returncode=returncode)

        channel = self._channel
        if channel is None or channel.closed:
            return
        try:
            await asyncio.wait_for(channel.wait_closed(), EXIT_DRAIN_SECONDS)
        except asyncio.TimeoutError:
            await channel.close(f"engine exited with code {returncode}")

    async def _fail(self) -> None:
        self._set_state(SessionState.FAILED)
        await self.stop()

    def _on_channel_error(self, error: BaseException) -> None:
        log.error("engine_channel_error", error=str(error))

    def _on_channel_closed(self) -> None:
        log.warning("engine_channel_closed", state=self._state.value)
        if self._state is SessionState.READY:
            self._set_state(SessionState.CLOSED)
