"""Shared test fixtures."""

import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

FAKE_ENGINE = Path(__file__).parent / "fake_engine.py"


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def engine_command():
    """Build a command line starting the scripted language server."""

    def build(*args: str) -> list[str]:
        return [sys.executable, str(FAKE_ENGINE), *args]

    return build


@pytest.fixture
def diagnostics_cache():
    """Empty diagnostics cache."""
    from bifrost.lsp.diagnostics import DiagnosticsCache

    return DiagnosticsCache()


@pytest.fixture
def mock_channel():
    """Channel double recording outbound traffic."""
    channel = MagicMock()
    channel.closed = False
    channel.send_request = AsyncMock(return_value=None)
    channel.send_notification = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def ready_session(mock_channel):
    """Session double in the ready state."""
    from bifrost.lsp.session import SessionState

    session = MagicMock()
    session.is_ready = True
    session.state = SessionState.READY
    session.channel = mock_channel
    return session


@pytest.fixture
def room_files():
    """In-memory files served to the bridge instead of the filesystem."""
    return {
        "/m/room.c": 'inherit "/std/room";\n\nvoid create() {\n    ::create();\n}\n',
    }


@pytest.fixture
def bridge(ready_session, diagnostics_cache, room_files):
    """Bridge over the session double, reading from ``room_files``."""
    from bifrost.bridge import LanguageBridge

    async def read_file(path: Path) -> str:
        try:
            return room_files[str(path)]
        except KeyError:
            raise FileNotFoundError(f"No such file or directory: '{path}'")

    return LanguageBridge(
        ready_session,
        diagnostics_cache,
        grace_period=0,
        read_file=read_file,
    )


@pytest.fixture
def config(temp_dir):
    """Test configuration."""
    from bifrost.config import BifrostConfig

    return BifrostConfig(
        workspace_root=temp_dir,
        engine_command=[sys.executable, str(FAKE_ENGINE)],
        diagnostics_grace_period=0.2,
    )
