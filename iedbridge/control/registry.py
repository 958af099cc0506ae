# iedbridge/control/registry.py
"""
Control binding registry.

Discovers every controllable data object in the served model and
installs the generic check/operate handlers on it. A data object is
controllable when it has an Oper element and a stVal attribute; nothing
else about it (names, logical node class, control model) matters, so any
model works without naming its points up front.

Registration happens once, in BindingRegistry.build(). There is no way
to register further points on an existing registry.
"""

from enum import Enum
from typing import Iterator

from iedbridge.control.binding import MAX_REFERENCE_LENGTH, ControlBinding
from iedbridge.control.handlers import ControlProtocolAdapter
from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.model.nodes import FunctionalConstraint, ModelNode
from iedbridge.model.walker import traverse_model
from iedbridge.security.logging_system import get_logger
from iedbridge.server.ied_server import IedServer

logger = get_logger(__name__)


class RegistrationError(RuntimeError):
    """The registry could not store another binding."""


class GrowthPolicy(Enum):
    """What to do when the binding collection cannot grow."""

    FATAL = "fatal"  # raise RegistrationError
    DEGRADE = "degrade"  # drop all bindings and accept no more


def _find_child(
    node: ModelNode, name: str, fc: FunctionalConstraint
) -> ModelNode | None:
    child = node.get_child_with_fc(name, fc)
    if child is None:
        child = node.get_child(name)
    return child


class BindingRegistry:
    """
    Holds one ControlBinding per controllable data object.

    Written only while build() runs, read-only afterwards.
    """

    def __init__(
        self,
        capacity: int | None = None,
        on_growth_failure: GrowthPolicy = GrowthPolicy.FATAL,
    ):
        """
        Args:
            capacity: Maximum number of bindings (None = unbounded)
            on_growth_failure: Behaviour when a binding cannot be stored
        """
        if capacity is not None and capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")

        self.capacity = capacity
        self.on_growth_failure = GrowthPolicy(on_growth_failure)
        self._bindings: list[ControlBinding] = []
        self._accepting = True

    @classmethod
    def build(
        cls,
        server: IedServer,
        adapter: ControlProtocolAdapter,
        diagnostics: DiagnosticChannel,
        capacity: int | None = None,
        on_growth_failure: GrowthPolicy = GrowthPolicy.FATAL,
    ) -> "BindingRegistry":
        """
        Walk the server's model and register every controllable point.

        Raises:
            RegistrationError: If a binding cannot be stored and the
                growth policy is FATAL
        """
        registry = cls(capacity=capacity, on_growth_failure=on_growth_failure)

        def visit(node: ModelNode) -> None:
            registry._register(node, server, adapter, diagnostics)

        traverse_model(server.model, visit)

        diagnostics.registration_complete(len(registry))
        logger.info(f"Registered {len(registry)} control bindings")
        return registry

    def _register(
        self,
        node: ModelNode,
        server: IedServer,
        adapter: ControlProtocolAdapter,
        diagnostics: DiagnosticChannel,
    ) -> None:
        oper = _find_child(node, "Oper", FunctionalConstraint.CO)
        st_val = _find_child(node, "stVal", FunctionalConstraint.ST)

        # Status-only data objects are the common case
        if oper is None or st_val is None:
            return

        if not self._accepting:
            return

        timestamp = _find_child(node, "t", FunctionalConstraint.ST)

        path = server.get_object_reference(node)
        if path is None:
            path = node.name[:MAX_REFERENCE_LENGTH]

        binding = ControlBinding(
            control_point=node,
            status_attribute=st_val,
            timestamp_attribute=timestamp,
            path=path,
        )

        if not self._append(binding):
            return

        server.set_perform_check_handler(node, adapter.perform_check)
        server.set_control_handler(node, adapter.bind(binding))

        diagnostics.handler_registered(binding.path)

    def _append(self, binding: ControlBinding) -> bool:
        if self.capacity is not None and len(self._bindings) >= self.capacity:
            return self._growth_failed(binding, f"capacity {self.capacity} exhausted")

        try:
            self._bindings.append(binding)
        except MemoryError as e:
            return self._growth_failed(binding, f"out of memory ({e})")
        return True

    def _growth_failed(self, binding: ControlBinding, reason: str) -> bool:
        if self.on_growth_failure is GrowthPolicy.FATAL:
            raise RegistrationError(
                f"Cannot register control binding for {binding.path}: {reason}"
            )

        logger.warning(
            f"Cannot register control binding for {binding.path}: {reason}; "
            f"dropping {len(self._bindings)} bindings"
        )
        self._bindings = []
        self._accepting = False
        return False

    @property
    def accepting(self) -> bool:
        """False once the registry has degraded after a growth failure."""
        return self._accepting

    @property
    def bindings(self) -> tuple[ControlBinding, ...]:
        return tuple(self._bindings)

    def release(self) -> None:
        """Drop all bindings. Called once, at teardown."""
        self._bindings = []
        self._accepting = False

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[ControlBinding]:
        return iter(tuple(self._bindings))
