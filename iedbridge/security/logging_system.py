# iedbridge/security/logging_system.py
"""
Structured logging system for the IED control bridge.

Provides:
- Structured logging (JSON and plain text formats)
- Audit trail management for control operations and bridge updates
- Event classification

ICS-specific features:
- Event severity levels (IEC 62443)
- Device/system context

All handlers write to stderr or to log files. stdout carries the
diagnostic line protocol and must never receive log output.
"""

import json
import logging
import logging.handlers
import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "EventSeverity",
    "EventCategory",
    "LogEntry",
    "JSONFormatter",
    "ICSLogger",
    "configure_logging",
    "get_logger",
]

# ----------------------------------------------------------------
# ICS Event Classification
# ----------------------------------------------------------------


class EventSeverity(Enum):
    """
    ICS event severity levels (aligned with IEC 62443).

    Lower number = higher severity
    """

    CRITICAL = 1  # Server cannot run
    ALERT = 2  # Immediate action required
    ERROR = 3  # Error conditions, degraded operation
    WARNING = 4  # Warning conditions, potential issues
    NOTICE = 5  # Normal but significant events
    INFO = 6  # Informational messages
    DEBUG = 7  # Debug/diagnostic information


class EventCategory(Enum):
    """ICS event categories."""

    SECURITY = "security"
    PROCESS = "process"  # Process value changes
    AUDIT = "audit"  # Control operations
    SYSTEM = "system"
    COMMUNICATION = "communication"  # Sessions and bridge traffic
    DIAGNOSTIC = "diagnostic"


# Map Python logging levels to ICS severity
LOGGING_TO_SEVERITY = {
    logging.CRITICAL: EventSeverity.CRITICAL,
    logging.ERROR: EventSeverity.ERROR,
    logging.WARNING: EventSeverity.WARNING,
    logging.INFO: EventSeverity.INFO,
    logging.DEBUG: EventSeverity.DEBUG,
}

SEVERITY_TO_LOGGING = {
    EventSeverity.CRITICAL: logging.CRITICAL,
    EventSeverity.ALERT: logging.CRITICAL,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.NOTICE: logging.INFO,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.DEBUG: logging.DEBUG,
}


# ----------------------------------------------------------------
# Structured Log Entry
# ----------------------------------------------------------------


@dataclass
class LogEntry:
    """Structured log entry for ICS events."""

    wall_time: float
    severity: EventSeverity
    category: EventCategory
    message: str

    # Context
    device: str = ""  # IED name
    component: str = ""
    user: str = ""

    # Object reference the event concerns, if any
    reference: str = ""

    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialisation."""
        entry_dict = {
            "wall_time": self.wall_time,
            "severity": self.severity.name,
            "category": self.category.value,
            "message": self.message,
        }

        if self.device:
            entry_dict["device"] = self.device
        if self.component:
            entry_dict["component"] = self.component
        if self.user:
            entry_dict["user"] = self.user
        if self.reference:
            entry_dict["reference"] = self.reference
        if self.data:
            entry_dict["data"] = json.dumps(self.data, default=str)

        return entry_dict

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())

    def to_human_readable(self) -> str:
        """Convert to human-readable format."""
        severity_str = f"[{self.severity.name:8s}]"
        device_str = f"{self.device}:" if self.device else ""
        component_str = f"{self.component}:" if self.component else ""

        return f"{severity_str} {device_str}{component_str} {self.message}"


# ----------------------------------------------------------------
# JSON Formatter for Python logging
# ----------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def __init__(self, device: str = ""):
        super().__init__()
        self.device = device

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        severity = LOGGING_TO_SEVERITY.get(record.levelno, EventSeverity.INFO)

        log_entry = LogEntry(
            wall_time=record.created,
            severity=severity,
            category=EventCategory.SYSTEM,
            message=record.getMessage(),
            device=self.device,
            component=record.name,
        )

        if record.exc_info:
            log_entry.data["exception"] = self.formatException(record.exc_info)

        return log_entry.to_json()


# ----------------------------------------------------------------
# ICS Logger - Enhanced logging with structured output
# ----------------------------------------------------------------


class ICSLogger:
    """
    Enhanced logger for the IED server.

    Wraps Python's logging with ICS-specific features:
    - Structured logging (JSON)
    - Event classification
    - Audit trail support

    Callable from any thread: the protocol server's request context and
    the bridge ingest thread both log through the same instance.
    """

    def __init__(
        self,
        name: str,
        device: str = "",
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
        max_audit_entries: int = 10000,
    ):
        """
        Initialise ICS logger.

        Args:
            name: Logger name (typically module name)
            device: IED name for context
            log_dir: Directory for log files (None = no file logging)
            enable_json: Enable JSON formatted logs (requires log_dir)
            enable_console: Enable stderr output
            max_audit_entries: Maximum audit trail entries to retain
        """
        self.name = name
        self.device = device
        self.log_dir = log_dir

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        self.logger.handlers.clear()

        if enable_console:
            self._add_console_handler()

        if enable_json and log_dir:
            self._add_json_handler()

        self.audit_trail: list[LogEntry] = []
        self._audit_lock = threading.Lock()
        self._max_audit_entries = max_audit_entries

    def _add_console_handler(self) -> None:
        """Add stderr handler."""
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.INFO)
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)8s] %(name)s: %(message)s")
        )
        self.logger.addHandler(handler)

    def set_log_dir(self, log_dir: Path | None, enable_json: bool = True) -> None:
        """Replace the JSON file handler, e.g. after configure_logging()."""
        for handler in list(self.logger.handlers):
            # Shared with other loggers; closed by configure_logging()
            if isinstance(handler, logging.handlers.RotatingFileHandler):
                self.logger.removeHandler(handler)

        self.log_dir = log_dir
        if enable_json and log_dir:
            self._add_json_handler()

    def _add_json_handler(self) -> None:
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{self.device or 'system'}.json.log"
        self.logger.addHandler(_shared_file_handler(log_file, self.device))

    # ----------------------------------------------------------------
    # Standard logging methods
    # ----------------------------------------------------------------

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.logger.critical(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)

    # ----------------------------------------------------------------
    # ICS-specific logging methods
    # ----------------------------------------------------------------

    def log_event(
        self,
        severity: EventSeverity,
        category: EventCategory,
        message: str,
        **kwargs,
    ) -> LogEntry:
        """
        Log structured ICS event.

        Args:
            severity: Event severity level
            category: Event category
            message: Event message
            **kwargs: Additional context (user, component, reference, data)

        Returns:
            LogEntry that was created
        """
        device = kwargs.pop("device", self.device)

        entry = LogEntry(
            wall_time=time.time(),
            severity=severity,
            category=category,
            message=message,
            device=device,
            **kwargs,
        )

        log_level = SEVERITY_TO_LOGGING.get(severity, logging.INFO)
        self.logger.log(log_level, entry.to_human_readable())

        if category in (EventCategory.AUDIT, EventCategory.SECURITY):
            with self._audit_lock:
                self.audit_trail.append(entry)
                if len(self.audit_trail) > self._max_audit_entries:
                    self.audit_trail = self.audit_trail[-self._max_audit_entries :]

        return entry

    def log_audit(
        self, message: str, user: str = "", action: str = "", result: str = "", **kwargs
    ) -> LogEntry:
        """
        Log audit trail event.

        Args:
            message: Audit message
            user: Originator of the action
            action: Action performed (operate, bridge_update, ...)
            result: Result of action
            **kwargs: Additional context

        Returns:
            LogEntry that was created
        """
        data = kwargs.get("data", {})
        data.update(
            {
                "action": action,
                "result": result,
            }
        )
        kwargs["data"] = data

        return self.log_event(
            severity=EventSeverity.NOTICE,
            category=EventCategory.AUDIT,
            message=message,
            user=user,
            **kwargs,
        )

    # ----------------------------------------------------------------
    # Audit trail access
    # ----------------------------------------------------------------

    def get_audit_trail(
        self,
        limit: int = 100,
        category: EventCategory | None = None,
    ) -> list[LogEntry]:
        """
        Get audit trail entries (most recent last).

        Args:
            limit: Maximum number of entries to return
            category: Filter by category
        """
        with self._audit_lock:
            entries = self.audit_trail
            if category:
                entries = [e for e in entries if e.category == category]
            return entries[-limit:]

    def clear_audit_trail(self) -> int:
        """Clear audit trail and return the number of entries removed."""
        with self._audit_lock:
            count = len(self.audit_trail)
            self.audit_trail.clear()
            return count


# ----------------------------------------------------------------
# Global logger factory
# ----------------------------------------------------------------

_loggers: dict[str, ICSLogger] = {}
_loggers_lock = threading.Lock()
_default_log_dir: Path | None = None
_default_enable_json: bool = True

# One rotating handler per log file, shared by all loggers of a device
_file_handlers: dict[Path, logging.Handler] = {}
_file_handlers_lock = threading.Lock()

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _shared_file_handler(log_file: Path, device: str) -> logging.Handler:
    with _file_handlers_lock:
        handler = _file_handlers.get(log_file)
        if handler is None:
            handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
            )
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(JSONFormatter(device=device))
            _file_handlers[log_file] = handler
        return handler


def _close_file_handlers(keep_dir: Path | None) -> None:
    """Close shared handlers for files outside keep_dir."""
    with _file_handlers_lock:
        for log_file in list(_file_handlers):
            if keep_dir is None or log_file.parent != keep_dir:
                _file_handlers.pop(log_file).close()


def configure_logging(
    log_dir: Path | str | None = None,
    enable_json: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers already handed out by get_logger() are switched to the new
    log directory as well.

    Args:
        log_dir: Directory for JSON log files
        enable_json: Write JSON logs when a log directory is set
    """
    global _default_log_dir, _default_enable_json

    if log_dir:
        _default_log_dir = Path(log_dir)
        _default_log_dir.mkdir(parents=True, exist_ok=True)
    else:
        _default_log_dir = None

    _default_enable_json = enable_json

    with _loggers_lock:
        for ics_logger in _loggers.values():
            ics_logger.set_log_dir(_default_log_dir, enable_json)

    _close_file_handlers(_default_log_dir)


def get_logger(name: str, device: str = "", **kwargs) -> ICSLogger:
    """
    Get or create an ICS logger.

    Thread-safe logger factory.

    Args:
        name: Logger name (typically __name__)
        device: IED name for context
        **kwargs: Additional ICSLogger arguments

    Returns:
        ICSLogger instance
    """
    logger_key = f"{name}:{device}"

    with _loggers_lock:
        if logger_key not in _loggers:
            if "log_dir" not in kwargs and _default_log_dir:
                kwargs["log_dir"] = _default_log_dir
            if "enable_json" not in kwargs:
                kwargs["enable_json"] = _default_enable_json

            _loggers[logger_key] = ICSLogger(name, device, **kwargs)

        return _loggers[logger_key]
