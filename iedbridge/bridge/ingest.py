# iedbridge/bridge/ingest.py
"""
Bridge ingest loop.

Reads "PATH=VALUE" lines from an external process and applies them to
the served model:

    Device/LLN0.Mod.stVal=true   -> BOOLEAN true on the stVal attribute
    Device/LLN0.Mod=1            -> falls back to Device/LLN0.Mod.stVal
    Unknown/Path=5               -> BRIDGE_ERR, nothing changes

Empty lines and lines without "=" are dropped silently. After each
update the attribute's sibling "t" (if any) is stamped with the current
time. The loop runs on its own thread and ends at end of input or when
shutdown is requested.
"""

import threading
from dataclasses import dataclass
from typing import Callable

from iedbridge.bridge.line_source import LineSource
from iedbridge.bridge.value_inference import HeuristicInference, ValueInference
from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.model.nodes import ModelNode, TypedValue
from iedbridge.security.logging_system import get_logger
from iedbridge.server.ied_server import IedServer, current_time_ms

logger = get_logger(__name__)

DEFAULT_STATUS_SUFFIX = ".stVal"


@dataclass(frozen=True)
class PendingCommand:
    """One parsed bridge line."""

    path: str
    raw_value: str


def parse_command(line: str) -> PendingCommand | None:
    """
    Split one input line into path and raw value.

    Only trailing CR/LF is removed; whitespace around "=" is kept.
    Returns None for empty lines and lines without "=".
    """
    line = line.rstrip("\r\n")
    if not line:
        return None

    path, sep, raw_value = line.partition("=")
    if not sep:
        return None
    return PendingCommand(path=path, raw_value=raw_value)


class BridgeIngestLoop:
    """Applies bridge commands from a line source to the server."""

    def __init__(
        self,
        server: IedServer,
        source: LineSource,
        diagnostics: DiagnosticChannel,
        shutdown: threading.Event,
        strategy: ValueInference | None = None,
        clock: Callable[[], int] = current_time_ms,
        status_suffix: str = DEFAULT_STATUS_SUFFIX,
    ):
        """
        Args:
            server: Server whose model receives the updates
            source: Where command lines come from
            diagnostics: Channel for BRIDGE_OK / BRIDGE_ERR lines
            shutdown: Set when the process is shutting down
            strategy: Value inference (default: HeuristicInference)
            clock: Milliseconds since epoch for timestamp attributes
            status_suffix: Appended when a path does not resolve as given
        """
        self.server = server
        self.source = source
        self.diagnostics = diagnostics
        self.shutdown = shutdown
        self.strategy = strategy or HeuristicInference()
        self.clock = clock
        self.status_suffix = status_suffix

        self._thread: threading.Thread | None = None
        self.lines_processed = 0
        self.updates_applied = 0

    @property
    def running(self) -> bool:
        return not self.shutdown.is_set()

    # ----------------------------------------------------------------
    # Per-line processing
    # ----------------------------------------------------------------

    def resolve(self, path: str) -> ModelNode | None:
        attribute = self.server.lookup_attribute(path)
        if attribute is None and self.status_suffix:
            attribute = self.server.lookup_attribute(f"{path}{self.status_suffix}")
        return attribute

    def process_line(self, line: str) -> bool:
        """
        Apply one input line.

        Returns:
            True if an attribute was updated
        """
        command = parse_command(line)
        if command is None:
            return False

        attribute = self.resolve(command.path)
        if attribute is None:
            if self.running:
                self.diagnostics.bridge_error(command.path)
            return False

        value = self.strategy.infer(command.raw_value, attribute)
        if value is None:
            logger.debug(
                f"No value for {command.path} from {command.raw_value!r}, dropped"
            )
            return False

        self._apply(attribute, value)

        self.diagnostics.bridge_ok(command.path, command.raw_value)
        logger.log_audit(
            f"Bridge update {command.path} = {value}",
            user="bridge",
            action="bridge_update",
            result="OK",
            component="bridge",
            reference=command.path,
        )
        return True

    def _apply(self, attribute: ModelNode, value: TypedValue) -> None:
        self.server.update_attribute_value(attribute, value)
        self.updates_applied += 1

        parent = attribute.parent
        if parent is None:
            return

        timestamp = parent.get_child("t")
        if timestamp is None or timestamp is attribute:
            return
        if timestamp.is_attribute:
            self.server.update_utc_time_attribute_value(timestamp, self.clock())

    # ----------------------------------------------------------------
    # Loop and thread
    # ----------------------------------------------------------------

    def run(self) -> None:
        """Process lines until end of input or shutdown."""
        logger.info("Bridge ingest loop started")

        while self.running:
            line = self.source.read_line()
            if line is None:
                break
            self.lines_processed += 1
            self.process_line(line)

        logger.info(
            f"Bridge ingest loop stopped after {self.lines_processed} lines "
            f"({self.updates_applied} updates)"
        )

    def start(self) -> threading.Thread:
        """Run the loop on a background thread."""
        if self._thread is not None:
            raise RuntimeError("Bridge ingest loop already started")

        self._thread = threading.Thread(
            target=self.run, name="bridge-ingest", daemon=True
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait for the loop thread.

        Returns:
            True if the thread has finished
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
