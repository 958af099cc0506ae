# iedbridge/server/control.py
"""
Control service types shared by the IED server and its handlers.

A control request goes through two callbacks installed per data object:
the perform-check handler (may reject the request) and the control
handler (applies it). Both are plain callables; whatever context a
handler needs is captured when it is created.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from iedbridge.model.nodes import TypedValue

__all__ = [
    "CheckHandlerResult",
    "ControlHandlerResult",
    "ControlAction",
    "PerformCheckHandler",
    "ControlHandler",
]


class CheckHandlerResult(Enum):
    """Outcome of the perform-check phase."""

    ACCEPTED = -1
    HARDWARE_FAULT = 1
    TEMPORARILY_UNAVAILABLE = 2
    OBJECT_ACCESS_DENIED = 3
    OBJECT_UNDEFINED = 4
    VALUE_INVALID = 11


class ControlHandlerResult(Enum):
    """Outcome of the operate phase."""

    FAILED = 0
    OK = 1
    WAITING = 2


@dataclass(frozen=True)
class ControlAction:
    """One in-flight control request as seen by the handlers."""

    reference: str
    select: bool = False
    originator: str = ""
    ctl_num: int = 0

    def is_select(self) -> bool:
        """True for the select step of select-before-operate."""
        return self.select


PerformCheckHandler = Callable[
    [ControlAction, TypedValue, bool, bool], CheckHandlerResult
]
ControlHandler = Callable[[ControlAction, TypedValue, bool], ControlHandlerResult]
