"""
Structured logging utilities with JSON formatting and context injection.

This module provides structured logging capabilities with:
- JSON formatted log output for machine-readable logs
- Context injection (session_id, change_id, status) via LoggerAdapter
- Standardized log fields for session transitions and change results
- Integration with Python's standard logging module
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, MutableMapping
from logging import LogRecord


# Fields promoted to the top level of every JSON record
_CONTEXT_FIELDS = ("session_id", "change_id", "status")

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
]) | frozenset(_CONTEXT_FIELDS)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - session_id / change_id / status: promoted context fields
    - context: Any other extra fields
    - error: Error details (when exc_info is attached)
    """

    def format(self, record: LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class LogContext:
    """
    Context manager for adding temporary context to logs.

    Usage:
        with LogContext(logger, session_id="a1b2", change_id="c-7"):
            logger.info("Applying change")  # Will include session_id and change_id
    """

    def __init__(self, logger: logging.LoggerAdapter, **context: Any):
        self.logger = logger
        self.context = context
        self.old_extra = None

    def __enter__(self) -> logging.LoggerAdapter:
        """Enter context and add fields to logger."""
        self.old_extra = self.logger.extra.copy() if self.logger.extra else {}
        self.logger.extra.update(self.context)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context and restore original logger state."""
        if self.old_extra is not None:
            self.logger.extra = self.old_extra


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        """
        Process log message and inject context.

        Explicit `extra` passed to a call wins over the adapter's context.
        """
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = self.extra.copy()
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for a host process.

    Installs a JSON formatted stdout handler on the root logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to the configured log level
    """
    if log_level is None:
        from changekit.config import settings
        log_level = settings.log_level
    log_level = log_level.upper()

    formatter = JSONFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Args:
        name: Logger name (typically __name__)
        **context: Initial context fields (session_id, change_id, etc.)

    Returns:
        Context logger adapter

    Example:
        logger = get_logger(__name__, session_id="a1b2")
        logger.info("Session started")  # Will include session_id
    """
    base_logger = logging.getLogger(name)
    return ContextLoggerAdapter(base_logger, context)


def log_session_transition(
    logger: logging.LoggerAdapter,
    session_id: str,
    from_status: str,
    to_status: str,
    **context: Any
) -> None:
    """
    Log an apply session state transition.

    Args:
        logger: Logger to use
        session_id: Apply session ID
        from_status: Previous status value
        to_status: New status value
        **context: Additional context fields (progress, reason, ...)
    """
    logger.info(
        f"Session transition: {from_status} -> {to_status}",
        extra={
            "session_id": session_id,
            "status": to_status,
            "from_status": from_status,
            **context,
        }
    )


def log_change_result(
    logger: logging.LoggerAdapter,
    session_id: Optional[str],
    change_id: str,
    applied: bool,
    error: Optional[str] = None
) -> None:
    """
    Log the outcome of applying a single change.

    Args:
        logger: Logger to use
        session_id: Owning session ID (None for individual applies)
        change_id: Change ID
        applied: Whether the host reported success
        error: Error message recorded on the change, if any
    """
    extra: Dict[str, Any] = {
        "session_id": session_id,
        "change_id": change_id,
        "applied": applied,
    }
    if error is not None:
        extra["error"] = error

    if applied:
        logger.info(f"Change applied: {change_id}", extra=extra)
    else:
        logger.warning(f"Change not applied: {change_id}", extra=extra)


def log_callback(
    logger: logging.LoggerAdapter,
    callback: str,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None,
    **context: Any
) -> None:
    """
    Log a host callback invocation.

    Args:
        logger: Logger to use
        callback: Callback name (e.g., 'apply_one', 'preview')
        duration_ms: Call duration in milliseconds (if available)
        error: Error message (if the callback raised)
        **context: Additional context fields
    """
    extra: Dict[str, Any] = {"callback": callback, **context}

    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    if error is not None:
        extra["error"] = error

    if error:
        logger.warning(f"Callback failed: {callback}", extra=extra)
    else:
        logger.debug(f"Callback: {callback}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """
    Log error with full stack trace and context.

    Args:
        logger: Logger to use
        message: Error message
        error: Exception object
        **context: Additional context fields
    """
    logger.error(
        message,
        extra={"error_type": type(error).__name__, **context},
        exc_info=error
    )
