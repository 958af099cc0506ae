# iedbridge/server/ied_server.py
"""
IEC 61850 IED server.

Hosts an IedModel and offers the server-side services the control bridge
is built on:

- per data object perform-check and control handler installation
- a thread-safe attribute update API (value and UTC time updates)
- object references and lookup by reference
- an operate() entry point that runs one control request through the
  installed handlers, serialised against other requests
- a TCP listener (default port 8102) that accepts and tracks client
  sessions

MMS/ISO-on-TCP decoding is not part of this server: bytes received on a
session are read and dropped. Control requests reach the handlers only
through operate().

Example:
    >>> server = IedServer(model, port=8102)
    >>> server.set_control_handler(do_node, handler)
    >>> await server.start()
    >>> server.operate("Device/XCBR1.Pos", TypedValue.int32(2))
"""

import asyncio
import threading
import time
from typing import Any

from iedbridge.model.nodes import (
    IedModel,
    ModelNode,
    NodeKind,
    TypedValue,
)
from iedbridge.security.logging_system import (
    EventCategory,
    EventSeverity,
    ICSLogger,
    get_logger,
)
from iedbridge.server.control import (
    CheckHandlerResult,
    ControlAction,
    ControlHandler,
    ControlHandlerResult,
    PerformCheckHandler,
)

logger = get_logger(__name__)

DEFAULT_PORT = 8102


def current_time_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class IedServer:
    """
    In-process IEC 61850 server for one IED model.

    The update API takes an internal re-entrant lock, so it may be called
    from the event loop and from worker threads at the same time.
    """

    def __init__(
        self,
        model: IedModel,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
    ):
        """
        Initialise IED server.

        Args:
            model: Device model served by this server
            host: Bind address
            port: TCP port (default 8102)
        """
        if model is None:
            raise ValueError("model cannot be None")

        self.host = host
        self.port = port
        self._model = model

        # Session events are logged against the IED name
        self.session_logger: ICSLogger = get_logger(
            f"{__name__}.sessions", device=model.name or "IED"
        )

        self._check_handlers: dict[int, PerformCheckHandler] = {}
        self._control_handlers: dict[int, ControlHandler] = {}

        self._model_lock = threading.RLock()
        self._control_lock = threading.Lock()

        self._server: asyncio.AbstractServer | None = None
        self._sessions: set[asyncio.StreamWriter] = set()
        self._running = False

    @property
    def model(self) -> IedModel:
        return self._model

    @property
    def running(self) -> bool:
        """Check if server is running."""
        return self._running

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    # ================================================================
    # Lifecycle
    # ================================================================

    async def start(self) -> bool:
        """
        Start listening for client sessions.

        Returns:
            True if the listener is bound, False otherwise
        """
        if self._running:
            return True

        try:
            self._server = await asyncio.start_server(
                self._handle_session, self.host, self.port
            )
        except (OSError, OverflowError) as e:
            # OverflowError: port outside 0-65535
            logger.error(
                f"Failed to bind IEC 61850 server on {self.host}:{self.port}: {e}"
            )
            self._server = None
            return False

        # Pick up the kernel-assigned port when started on port 0
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]

        self._running = True
        logger.info(f"IEC 61850 server listening on {self.host}:{self.port}")
        return True

    async def stop(self) -> None:
        """Stop the listener and close open sessions."""
        if not self._running:
            return

        self._running = False

        if self._server:
            self._server.close()

        for writer in list(self._sessions):
            writer.close()
        self._sessions.clear()

        if self._server:
            await self._server.wait_closed()
            self._server = None

        logger.info(f"IEC 61850 server stopped on {self.host}:{self.port}")

    async def _handle_session(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        self._sessions.add(writer)
        self._log_session(
            f"Session opened from {peer}",
            severity=EventSeverity.NOTICE,
            data={"peer": str(peer)},
        )

        try:
            while await reader.read(4096):
                pass
        except ConnectionError as e:
            logger.debug(f"Session from {peer} dropped: {e}")
        finally:
            self._sessions.discard(writer)
            writer.close()
            self._log_session(f"Session closed from {peer}")

    def _log_session(
        self,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.session_logger.log_event(
            severity=severity,
            category=EventCategory.COMMUNICATION,
            message=message,
            data=data or {},
        )

    # ================================================================
    # Model access
    # ================================================================

    def get_object_reference(self, node: ModelNode) -> str | None:
        """
        Object reference of a node served by this server.

        Returns None for nodes that are not part of the served model.
        """
        if node is None or not self._model.contains(node):
            return None
        return self._model.object_reference(node)

    def get_node(self, reference: str) -> ModelNode | None:
        return self._model.get_node_by_reference(reference)

    def lookup_attribute(self, reference: str) -> ModelNode | None:
        """Resolve a reference that must name a data attribute."""
        node = self.get_node(reference)
        if node is None or not node.is_attribute:
            return None
        return node

    # ================================================================
    # Attribute update API
    # ================================================================

    def update_attribute_value(self, attribute: ModelNode, value: TypedValue) -> None:
        """
        Store a new value on a data attribute.

        The value is stored as given; it is not checked against the
        attribute's declared type.
        """
        if attribute.kind is not NodeKind.DATA_ATTRIBUTE:
            raise ValueError(f"{attribute.name} is not a data attribute")

        with self._model_lock:
            attribute.value = value

    def update_utc_time_attribute_value(
        self, attribute: ModelNode, milliseconds: int
    ) -> None:
        self.update_attribute_value(attribute, TypedValue.utc_time(milliseconds))

    def read_attribute_value(self, attribute: ModelNode) -> TypedValue | None:
        with self._model_lock:
            return attribute.value

    # ================================================================
    # Control service
    # ================================================================

    def set_perform_check_handler(
        self, data_object: ModelNode, handler: PerformCheckHandler
    ) -> None:
        self._require_data_object(data_object)
        self._check_handlers[id(data_object)] = handler

    def set_control_handler(
        self, data_object: ModelNode, handler: ControlHandler
    ) -> None:
        self._require_data_object(data_object)
        self._control_handlers[id(data_object)] = handler

    def has_control_handler(self, data_object: ModelNode) -> bool:
        return id(data_object) in self._control_handlers

    def _require_data_object(self, node: ModelNode) -> None:
        if node is None or node.kind is not NodeKind.DATA_OBJECT:
            raise ValueError("Control handlers can only be installed on data objects")

    def operate(
        self,
        reference: str,
        value: TypedValue,
        test: bool = False,
        select: bool = False,
        interlock_check: bool = False,
        originator: str = "",
        ctl_num: int = 0,
    ) -> ControlHandlerResult:
        """
        Run one control request through the installed handlers.

        Requests are serialised: handlers never run concurrently with
        each other. The perform-check handler runs first; a rejected
        check fails the request without calling the control handler.

        Args:
            reference: Object reference of the controlled data object
            value: Control value (ctlVal)
            test: Test flag of the request (dry run)
            select: True for the select step of select-before-operate
            interlock_check: Interlock check requested by the client
            originator: Originator identification, for logging
            ctl_num: Control sequence number

        Returns:
            Result reported back to the client
        """
        with self._control_lock:
            node = self.get_node(reference)
            if node is None or node.kind is not NodeKind.DATA_OBJECT:
                logger.warning(f"Control request for unknown object {reference}")
                return ControlHandlerResult.FAILED

            control_handler = self._control_handlers.get(id(node))
            if control_handler is None:
                logger.warning(f"Control request for {reference} without handler")
                return ControlHandlerResult.FAILED

            action = ControlAction(
                reference=reference,
                select=select,
                originator=originator,
                ctl_num=ctl_num,
            )

            check_handler = self._check_handlers.get(id(node))
            if check_handler is not None:
                check = check_handler(action, value, test, interlock_check)
                if check is not CheckHandlerResult.ACCEPTED:
                    logger.info(
                        f"Control request for {reference} rejected: {check.name}"
                    )
                    return ControlHandlerResult.FAILED

            return control_handler(action, value, test)

    # ================================================================
    # Server Status
    # ================================================================

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "protocol": "IEC 61850",
            "ied_name": self._model.name,
            "logical_devices": [ld.name for ld in self._model.logical_devices],
            "control_points": len(self._control_handlers),
            "sessions": self.session_count,
        }
