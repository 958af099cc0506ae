# iedbridge/security/__init__.py
"""
Security components for the IED server.

Modules:
- logging_system: Structured ICS logging with audit trail
"""

from iedbridge.security.logging_system import (
    EventCategory,
    EventSeverity,
    ICSLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "ICSLogger",
    "get_logger",
    "configure_logging",
    "EventSeverity",
    "EventCategory",
]
