# iedbridge/control/__init__.py
"""
Control binding registry and generic control handlers.

Modules:
- binding: ControlBinding record
- handlers: check/operate handlers shared by all control points
- registry: discovery and registration of controllable data objects
"""

from iedbridge.control.binding import MAX_REFERENCE_LENGTH, ControlBinding
from iedbridge.control.handlers import ControlProtocolAdapter
from iedbridge.control.registry import BindingRegistry, GrowthPolicy, RegistrationError

__all__ = [
    "MAX_REFERENCE_LENGTH",
    "ControlBinding",
    "ControlProtocolAdapter",
    "BindingRegistry",
    "GrowthPolicy",
    "RegistrationError",
]
