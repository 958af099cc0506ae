# iedbridge/control/handlers.py
"""
Generic check/operate handlers for controllable data objects.

Every registered control point gets the same pair of handlers:

- perform check: accepts every request. Interlocking and authorisation
  are left to whoever sits in front of the server.
- operate: test requests and select steps succeed without touching the
  model; a real operate writes ctlVal into stVal, stamps t and reports
  CONTROL_UPDATE on the diagnostic channel.
"""

import functools
from typing import Callable

from iedbridge.control.binding import ControlBinding
from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.model.nodes import TypedValue
from iedbridge.security.logging_system import get_logger
from iedbridge.server.control import (
    CheckHandlerResult,
    ControlAction,
    ControlHandler,
    ControlHandlerResult,
)
from iedbridge.server.ied_server import IedServer, current_time_ms

logger = get_logger(__name__)


class ControlProtocolAdapter:
    """Applies control requests to the model through the server API."""

    def __init__(
        self,
        server: IedServer,
        diagnostics: DiagnosticChannel,
        clock: Callable[[], int] = current_time_ms,
    ):
        self.server = server
        self.diagnostics = diagnostics
        self.clock = clock

    def perform_check(
        self,
        action: ControlAction,
        value: TypedValue,
        test: bool,
        interlock_check: bool,
    ) -> CheckHandlerResult:
        return CheckHandlerResult.ACCEPTED

    def control(
        self,
        binding: ControlBinding | None,
        action: ControlAction,
        value: TypedValue,
        test: bool,
    ) -> ControlHandlerResult:
        """
        Operate phase for one control point.

        Args:
            binding: Binding the handler was installed for
            action: The control request
            value: Control value to apply
            test: Dry-run flag; test requests never change the model

        Returns:
            FAILED only when there is no binding, OK otherwise
        """
        if binding is None:
            return ControlHandlerResult.FAILED

        if test:
            return ControlHandlerResult.OK

        if action.is_select():
            return ControlHandlerResult.OK

        if binding.status_attribute is not None:
            self.server.update_attribute_value(binding.status_attribute, value)

        if binding.timestamp_attribute is not None:
            self.server.update_utc_time_attribute_value(
                binding.timestamp_attribute, self.clock()
            )

        self.diagnostics.control_update(binding.path)
        logger.log_audit(
            f"Operate on {binding.path}: {value}",
            user=action.originator,
            action="operate",
            result="OK",
            reference=binding.path,
            data={"ctl_num": action.ctl_num, "value": str(value)},
        )
        return ControlHandlerResult.OK

    def bind(self, binding: ControlBinding) -> ControlHandler:
        """Operate handler closed over one binding."""
        return functools.partial(self.control, binding)
