"""Framed transport filter for engine output.

Language servers launched from editor extensions often print banner and log
text on the same stdout that carries JSON-RPC frames. The filter keeps only
lines that can belong to a frame (``Content-Length`` headers, JSON payload
lines and blank separators) and drops everything else, chunk by chunk.
"""

import asyncio
from typing import Optional

import structlog

log = structlog.get_logger()

HEADER_PREFIX = b"Content-Length:"
DEFAULT_CHUNK_SIZE = 65536


def is_frame_line(line: bytes) -> bool:
    """Whether a complete line belongs to the framed protocol."""
    stripped = line.strip()
    return (
        not stripped
        or stripped.startswith(HEADER_PREFIX)
        or stripped.startswith(b"{")
    )


def _is_frame_fragment(fragment: bytes) -> bool:
    """Whether an unterminated fragment may still become a frame line."""
    return is_frame_line(fragment) or HEADER_PREFIX.startswith(fragment.strip())


class FrameFilter:
    """Per-chunk line filter.

    Kept lines pass through byte for byte, in order. When a chunk ends in the
    middle of a line, the decision made for that fragment is carried over to
    the first fragment of the next chunk, so a JSON body split across reads
    is not torn apart. Noise split mid-line can still be misclassified.
    """

    def __init__(self) -> None:
        self._carry: Optional[bool] = None
        self.dropped_lines = 0

    def filter(self, chunk: bytes) -> bytes:
        """Return the frame-bearing part of ``chunk``."""
        if not chunk:
            return b""

        lines = chunk.split(b"\n")
        last = len(lines) - 1
        kept: list[bytes] = []
        keep = False

        for index, line in enumerate(lines):
            terminated = index < last
            if index == 0 and self._carry is not None:
                keep = self._carry
            elif not terminated:
                keep = _is_frame_fragment(line)
            else:
                keep = is_frame_line(line)

            if keep:
                kept.append(line + b"\n" if terminated else line)
            elif line.strip():
                self.dropped_lines += 1
                log.debug("engine_output_dropped", line=line[:200].decode("utf-8", "replace"))

        # A chunk ending in "\n" leaves an empty final segment: nothing carries.
        self._carry = keep if lines[last] else None
        return b"".join(kept)

    def reset(self) -> None:
        self._carry = None


async def filter_stream(
    source: asyncio.StreamReader,
    sink: asyncio.StreamReader,
    frame_filter: Optional[FrameFilter] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Pump ``source`` through a ``FrameFilter`` into ``sink``.

    Feeds EOF to ``sink`` when ``source`` ends or the pump is cancelled; a
    read failure is forwarded to ``sink`` as its exception.
    """
    frame_filter = frame_filter or FrameFilter()

    try:
        while True:
            chunk = await source.read(chunk_size)
            if not chunk:
                break
            cleaned = frame_filter.filter(chunk)
            if cleaned:
                sink.feed_data(cleaned)
    except asyncio.CancelledError:
        sink.feed_eof()
        raise
    except (OSError, ValueError) as e:
        log.error("engine_stream_read_error", error=str(e))
        sink.set_exception(e)
        return

    log.debug("engine_stream_eof", dropped_lines=frame_filter.dropped_lines)
    sink.feed_eof()
