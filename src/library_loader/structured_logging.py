"""
Structured logging configuration for library-loader.

Provides consistent, machine-readable events for dependency loading,
repository access and import path injection.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """
    Event-style logger.

    Every call logs an ``event_type`` plus keyword context. The underlying
    ``logging.Logger`` can be supplied by the host application; otherwise a
    JSON-formatted stdout logger is created.
    """

    def __init__(self, name: str = "library_loader", logger: Optional[logging.Logger] = None):
        if logger is not None:
            self.logger = logger
        else:
            self.logger = logging.getLogger(name)
            self._setup_logger()

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **kwargs}
        message = event_type
        details = ", ".join(f"{k}={v}" for k, v in kwargs.items())
        if details:
            message = f"{event_type}: {details}"
        self.logger.log(level, message, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


_loader_logger = EventLogger("library_loader.loader")
_repository_logger = EventLogger("library_loader.repository")
_injection_logger = EventLogger("library_loader.injection")
_cache_logger = EventLogger("library_loader.cache")


def get_loader_logger() -> EventLogger:
    """Get dependency registry logger."""
    return _loader_logger


def get_repository_logger() -> EventLogger:
    """Get repository access logger."""
    return _repository_logger


def get_injection_logger() -> EventLogger:
    """Get injection port logger."""
    return _injection_logger


def get_cache_logger() -> EventLogger:
    """Get artifact cache logger."""
    return _cache_logger


def log_dependency_event(
    event_type: str,
    coordinates: str,
    severity: str = "info",
    logger: Optional[EventLogger] = None,
    **kwargs,
) -> None:
    """
    Log a dependency lifecycle event.

    Args:
        event_type: Type of lifecycle event
        coordinates: ``group:artifact:version`` of the dependency
        severity: Log severity level
        logger: Event logger to use, the loader logger by default
        **kwargs: Additional context
    """
    target = logger or get_loader_logger()
    getattr(target, severity.lower(), target.info)(event_type, coordinates=coordinates, **kwargs)


def log_url_resolution(
    coordinates: str, url: str, fallback: bool, reason: Optional[str] = None
) -> None:
    """Log the outcome of artifact URL resolution."""
    logger = get_repository_logger()
    if fallback:
        logger.info(
            "artifact_url_fallback", coordinates=coordinates, url=url, reason=reason
        )
    else:
        logger.debug("artifact_url_resolved", coordinates=coordinates, url=url)


def log_artifact_download(
    coordinates: str,
    url: str,
    destination: str,
    size_bytes: Optional[int] = None,
    relocated: bool = False,
) -> None:
    """Log a completed artifact download."""
    log_data: Dict[str, Any] = {
        "coordinates": coordinates,
        "url": url,
        "destination": destination,
        "relocated": relocated,
    }
    if size_bytes is not None:
        log_data["size_bytes"] = size_bytes
    get_repository_logger().info("artifact_downloaded", **log_data)


def configure_logging(log_level: str = "INFO") -> None:
    """Configure logging levels for the library loggers."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    for logger in [_loader_logger, _repository_logger, _injection_logger, _cache_logger]:
        logger.logger.setLevel(level)
