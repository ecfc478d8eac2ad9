"""Error types and classification for Bifrost.

Every failure the bridge can hit is a ``BifrostError``. Transport problems are
``ChannelError``s and are recovered at the channel; session problems are
``SessionError``s. ``classify_error`` turns any exception into a
``ClassifiedError`` carrying an actionable suggestion for the tool result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import structlog

log = structlog.get_logger()


class BifrostError(Exception):
    """Base class for all Bifrost errors."""


# Session errors


class SessionError(BifrostError):
    """Language server session could not be used."""


class SpawnError(SessionError):
    """The engine process failed to start."""


class HandshakeError(SessionError):
    """The initialize/initialized handshake failed."""


class HandshakeTimeoutError(HandshakeError, TimeoutError):
    """The engine did not answer ``initialize`` in time."""


class SessionStateError(SessionError):
    """An operation was attempted in the wrong session state."""


class SessionNotInitializedError(SessionError):
    """The session has not reached the ready state."""

    def __init__(self, state: str):
        super().__init__(f"Language server not initialized (session state: {state})")
        self.state = state


# Channel errors


class ChannelError(BifrostError):
    """JSON-RPC channel failure."""


class ChannelClosedError(ChannelError):
    """The channel closed before a response arrived."""


class MalformedFrameError(ChannelError):
    """An inbound frame had a bad header or body."""


class RequestTimeoutError(ChannelError, TimeoutError):
    """A request exceeded its caller-imposed timeout."""

    def __init__(self, method: str, timeout: float):
        super().__init__(f"Request '{method}' timed out after {timeout:g}s")
        self.method = method
        self.timeout = timeout


class ResponseError(ChannelError):
    """The engine answered a request with a JSON-RPC error."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __str__(self) -> str:
        return f"{self.message} (code {self.code})"


class EngineNotFoundError(BifrostError):
    """No language server installation could be located."""


class ToolCallError(BifrostError):
    """A tool call failed; the message is the tool-protocol error text."""


class ErrorCategory(Enum):
    """Categories of errors for reporting decisions."""

    SESSION = "session"          # Engine not started or gone
    ENGINE = "engine"            # Engine rejected the request
    TRANSPORT = "transport"      # Channel closed, bad frame, timeout
    INPUT = "input"              # Bad tool arguments
    FILESYSTEM = "filesystem"    # File unreadable


@dataclass
class ClassifiedError:
    """A classified error with reporting metadata."""

    category: ErrorCategory
    message: str
    suggestion: Optional[str] = None
    original_exception: Optional[BaseException] = None

    def __str__(self) -> str:
        """Human-readable error representation."""
        parts = [self.message]
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


def classify_error(error: BaseException) -> ClassifiedError:
    """Classify an exception raised while serving a tool call.

    Args:
        error: The exception to classify

    Returns:
        ClassifiedError with category and suggestion
    """
    message = str(error) or type(error).__name__

    if isinstance(error, SessionNotInitializedError):
        return ClassifiedError(
            category=ErrorCategory.SESSION,
            message=message,
            suggestion="Check that the language server starts (bifrost doctor)",
            original_exception=error,
        )

    if isinstance(error, SessionError):
        return ClassifiedError(
            category=ErrorCategory.SESSION,
            message=message,
            suggestion="Restart the server; the language server session is gone",
            original_exception=error,
        )

    if isinstance(error, ResponseError):
        return ClassifiedError(
            category=ErrorCategory.ENGINE,
            message=message,
            suggestion="Check the file path and position are valid for the engine",
            original_exception=error,
        )

    if isinstance(error, ChannelClosedError):
        return ClassifiedError(
            category=ErrorCategory.TRANSPORT,
            message=message,
            suggestion="The language server exited; restart the server",
            original_exception=error,
        )

    if isinstance(error, (ChannelError, TimeoutError)):
        return ClassifiedError(
            category=ErrorCategory.TRANSPORT,
            message=message,
            suggestion="The language server may be busy; try again",
            original_exception=error,
        )

    if isinstance(error, FileNotFoundError):
        return ClassifiedError(
            category=ErrorCategory.FILESYSTEM,
            message=message,
            suggestion="Pass an absolute path to an existing file",
            original_exception=error,
        )

    if isinstance(error, IsADirectoryError):
        return ClassifiedError(
            category=ErrorCategory.FILESYSTEM,
            message=message,
            suggestion="Expected a file path, not a directory",
            original_exception=error,
        )

    if isinstance(error, PermissionError):
        return ClassifiedError(
            category=ErrorCategory.FILESYSTEM,
            message=message,
            suggestion="Check file permissions",
            original_exception=error,
        )

    if isinstance(error, UnicodeDecodeError):
        return ClassifiedError(
            category=ErrorCategory.FILESYSTEM,
            message=message,
            suggestion="The file is not valid UTF-8 text",
            original_exception=error,
        )

    if isinstance(error, (TypeError, ValueError, KeyError)):
        return ClassifiedError(
            category=ErrorCategory.INPUT,
            message=message,
            suggestion="Check the tool arguments against its input schema",
            original_exception=error,
        )

    log.debug("error_unclassified", error_type=type(error).__name__, error=message)
    return ClassifiedError(
        category=ErrorCategory.ENGINE,
        message=message,
        original_exception=error,
    )
