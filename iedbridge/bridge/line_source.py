# iedbridge/bridge/line_source.py
"""
Cancellable line input for the bridge.

A plain readline() on stdin blocks until the next line arrives, so a
shutdown request would go unnoticed until the peer writes again. When
the stream has a selectable file descriptor, StreamLineSource polls it
and checks the stop event between polls, then splits lines itself from
raw reads so no line sits unseen in a text buffer.

Streams without a usable descriptor (io.StringIO and friends) fall back
to readline(), checking the stop event before each call.
"""

import io
import os
import select
import threading
from typing import Protocol, TextIO

from iedbridge.security.logging_system import get_logger

logger = get_logger(__name__)


class LineSource(Protocol):
    def read_line(self) -> str | None:
        """Next line including its terminator, or None at end of input."""
        ...


def _selectable_fd(stream: TextIO) -> int | None:
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None

    try:
        select.select([fd], [], [], 0)
    except (OSError, ValueError):
        return None
    return fd


class StreamLineSource:
    """Line reader over a text stream that honours a stop event."""

    def __init__(
        self,
        stream: TextIO,
        stop_event: threading.Event,
        poll_interval: float = 0.2,
        encoding: str = "utf-8",
    ):
        self.stream = stream
        self.stop_event = stop_event
        self.poll_interval = poll_interval
        self.encoding = encoding

        self._fd = _selectable_fd(stream)
        self._buffer = b""
        self._eof = False

    def read_line(self) -> str | None:
        if self._fd is None:
            return self._read_buffered()
        return self._read_fd()

    def _read_buffered(self) -> str | None:
        if self.stop_event.is_set():
            return None
        line = self.stream.readline()
        return line or None

    def _read_fd(self) -> str | None:
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                raw, self._buffer = (
                    self._buffer[: newline + 1],
                    self._buffer[newline + 1 :],
                )
                return raw.decode(self.encoding, errors="replace")

            if self._eof:
                if self._buffer:
                    raw, self._buffer = self._buffer, b""
                    return raw.decode(self.encoding, errors="replace")
                return None

            if self.stop_event.is_set():
                return None

            ready, _, _ = select.select([self._fd], [], [], self.poll_interval)
            if not ready:
                continue

            try:
                chunk = os.read(self._fd, 4096)
            except OSError as e:
                # e.g. EIO once the controlling terminal is gone
                logger.warning(f"Bridge input unreadable, treating as EOF: {e}")
                chunk = b""

            if chunk:
                self._buffer += chunk
            else:
                self._eof = True
