# iedbridge/server/__init__.py
"""
IEC 61850 server.

The IedServer hosts a device model, owns the per data object control
handlers and provides the attribute update API used by the control
handlers and the text bridge.
"""

from iedbridge.server.control import (
    CheckHandlerResult,
    ControlAction,
    ControlHandlerResult,
)
from iedbridge.server.ied_server import DEFAULT_PORT, IedServer, current_time_ms

__all__ = [
    "CheckHandlerResult",
    "ControlAction",
    "ControlHandlerResult",
    "DEFAULT_PORT",
    "IedServer",
    "current_time_ms",
]
