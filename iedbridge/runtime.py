# iedbridge/runtime.py
"""
Runtime context for the IED control bridge.

Owns everything the process needs between start-up and exit: the server,
the control adapter and binding registry, the diagnostic channel, the
shutdown flag and the bridge ingest thread.

Lifecycle:
    1. RuntimeContext(model, ...)   - create the server
    2. initialise()                 - register control bindings (once)
    3. await start()                - listen, announce, start the bridge
    4. await wait_for_shutdown()    - until SIGINT/SIGTERM
    5. await stop()                 - stop server, join bridge, release

Example:
    >>> runtime = RuntimeContext(model, port=8102, source=sys.stdin)
    >>> runtime.initialise()
    >>> if await runtime.start():
    ...     runtime.install_signal_handlers()
    ...     await runtime.wait_for_shutdown()
    >>> await runtime.stop()
"""

import asyncio
import signal
import threading
from typing import Any, TextIO

from iedbridge.bridge.ingest import DEFAULT_STATUS_SUFFIX, BridgeIngestLoop
from iedbridge.bridge.line_source import LineSource, StreamLineSource
from iedbridge.bridge.value_inference import ValueInference, create_strategy
from iedbridge.control.handlers import ControlProtocolAdapter
from iedbridge.control.registry import BindingRegistry, GrowthPolicy
from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.model.nodes import IedModel
from iedbridge.security.logging_system import get_logger
from iedbridge.server.ied_server import DEFAULT_PORT, IedServer

logger = get_logger(__name__)


class RuntimeContext:
    """Process-wide state of one bridge server."""

    def __init__(
        self,
        model: IedModel,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        diagnostics: DiagnosticChannel | None = None,
        source: TextIO | LineSource | None = None,
        strategy: ValueInference | None = None,
        status_suffix: str = DEFAULT_STATUS_SUFFIX,
        poll_interval: float = 0.2,
        capacity: int | None = None,
        on_growth_failure: GrowthPolicy = GrowthPolicy.FATAL,
    ):
        """
        Args:
            model: Device model to serve
            host: Bind address
            port: TCP port
            diagnostics: Diagnostic channel (default: stdout)
            source: Bridge input, a text stream or a LineSource;
                None disables the bridge
            strategy: Value inference for bridge updates
            status_suffix: Bridge fallback suffix
            poll_interval: Seconds between stop checks while waiting for input
            capacity: Binding registry capacity (None = unbounded)
            on_growth_failure: Registry behaviour when a binding cannot be stored

        Raises:
            ValueError: If the server cannot be created for this model
        """
        self.server = IedServer(model, host=host, port=port)
        self.diagnostics = diagnostics or DiagnosticChannel()
        self.adapter = ControlProtocolAdapter(self.server, self.diagnostics)

        self.capacity = capacity
        self.on_growth_failure = GrowthPolicy(on_growth_failure)
        self.registry: BindingRegistry | None = None

        # Shared with the ingest thread; set means "shutting down"
        self.shutdown = threading.Event()
        self._shutdown_event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

        self.ingest: BridgeIngestLoop | None = None
        if source is not None:
            if not hasattr(source, "read_line"):
                source = StreamLineSource(source, self.shutdown, poll_interval)
            self.ingest = BridgeIngestLoop(
                self.server,
                source,
                self.diagnostics,
                self.shutdown,
                strategy=strategy,
                status_suffix=status_suffix,
            )
        self.poll_interval = poll_interval

        self._initialised = False
        self._started = False
        self._stopped = False

    @classmethod
    def from_config(
        cls,
        model: IedModel,
        config: dict[str, Any],
        port: int | None = None,
        source: TextIO | LineSource | None = None,
        diagnostics: DiagnosticChannel | None = None,
    ) -> "RuntimeContext":
        """
        Build a runtime from a merged configuration dictionary.

        Raises:
            ValueError: For an unknown inference strategy or growth policy
        """
        server_cfg = config["server"]
        bridge_cfg = config["bridge"]
        registry_cfg = config["registry"]

        return cls(
            model,
            host=server_cfg["host"],
            port=server_cfg["port"] if port is None else port,
            diagnostics=diagnostics,
            source=source if bridge_cfg["enabled"] else None,
            strategy=create_strategy(bridge_cfg["strategy"]),
            status_suffix=bridge_cfg["status_suffix"],
            poll_interval=bridge_cfg["poll_interval"],
            capacity=registry_cfg["capacity"],
            on_growth_failure=GrowthPolicy(registry_cfg["on_growth_failure"]),
        )

    @property
    def running(self) -> bool:
        return self._started and not self.shutdown.is_set()

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    def initialise(self) -> BindingRegistry:
        """
        Register control bindings for the served model.

        Raises:
            RuntimeError: If called a second time
            RegistrationError: On a growth failure under the FATAL policy
        """
        if self._initialised:
            raise RuntimeError("Runtime already initialised")
        self._initialised = True

        self.registry = BindingRegistry.build(
            self.server,
            self.adapter,
            self.diagnostics,
            capacity=self.capacity,
            on_growth_failure=self.on_growth_failure,
        )
        return self.registry

    async def start(self) -> bool:
        """
        Start listening and, when configured, the bridge thread.

        Returns:
            False if the server could not bind its port

        Raises:
            RuntimeError: If not initialised
        """
        if not self._initialised:
            raise RuntimeError("Cannot start: runtime not initialised")

        self._loop = asyncio.get_running_loop()

        if not await self.server.start():
            return False

        self._started = True
        self.diagnostics.server_started(self.server.port)

        if self.ingest is not None:
            self.ingest.start()
        else:
            logger.info("Bridge disabled, no ingest thread started")
        return True

    async def stop(self) -> None:
        """Stop the server, wait for the bridge thread, release bindings."""
        if self._stopped:
            return
        self._stopped = True

        self.request_shutdown()
        await self.server.stop()

        if self.ingest is not None:
            # A few poll intervals is enough for a cancellable source
            timeout = max(1.0, self.poll_interval * 5)
            finished = await asyncio.to_thread(self.ingest.join, timeout)
            if not finished:
                logger.warning("Bridge ingest thread still blocked on input")

        if self.registry is not None:
            self.registry.release()

        logger.info("Runtime stopped")

    # ----------------------------------------------------------------
    # Shutdown signalling
    # ----------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Clear the running flag and wake wait_for_shutdown()."""
        self.shutdown.set()
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._shutdown_event.set)
        else:
            self._shutdown_event.set()

    def install_signal_handlers(self) -> None:
        """SIGINT and SIGTERM request a graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self.request_shutdown()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("Signal handlers configured")

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()

    def get_status(self) -> dict[str, Any]:
        status = self.server.get_status()
        status.update(
            {
                "bindings": len(self.registry) if self.registry is not None else 0,
                "registry_accepting": (
                    self.registry.accepting if self.registry is not None else False
                ),
                "bridge_enabled": self.ingest is not None,
                "lines_processed": self.ingest.lines_processed if self.ingest else 0,
                "updates_applied": self.ingest.updates_applied if self.ingest else 0,
            }
        )
        return status
