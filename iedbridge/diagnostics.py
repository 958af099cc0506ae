# iedbridge/diagnostics.py
"""
Diagnostic line protocol.

A supervising process reads these lines from stdout and matches on their
fixed prefixes, so the wording here is an interface:

    Registered control handler for <path>
    Registered <N> controllable data object handlers
    IEC 61850 server started on port <port>
    CONTROL_UPDATE <path>
    BRIDGE_OK: Updated <path> = <value>
    BRIDGE_ERR: Node not found or not attribute: <path>

Every line is flushed as soon as it is written.
"""

import sys
import threading
from typing import TextIO


class DiagnosticChannel:
    """Thread-safe writer for diagnostic lines."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        # Resolved late so pytest's capsys replacement of sys.stdout is honoured
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, line: str) -> None:
        with self._lock:
            stream = self.stream
            stream.write(f"{line}\n")
            stream.flush()

    def handler_registered(self, path: str) -> None:
        self.emit(f"Registered control handler for {path}")

    def registration_complete(self, count: int) -> None:
        self.emit(f"Registered {count} controllable data object handlers")

    def server_started(self, port: int) -> None:
        self.emit(f"IEC 61850 server started on port {port}")

    def control_update(self, path: str) -> None:
        self.emit(f"CONTROL_UPDATE {path}")

    def bridge_ok(self, path: str, raw_value: str) -> None:
        self.emit(f"BRIDGE_OK: Updated {path} = {raw_value}")

    def bridge_error(self, path: str) -> None:
        self.emit(f"BRIDGE_ERR: Node not found or not attribute: {path}")
