"""
Utility modules for changekit.
"""

from changekit.utils.logging import (
    get_logger,
    setup_logging,
    LogContext,
    log_session_transition,
    log_change_result,
    log_callback,
    log_error_with_context,
)
from changekit.utils.metrics import (
    SessionMetrics,
    track_callback,
    emit_metric,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "log_session_transition",
    "log_change_result",
    "log_callback",
    "log_error_with_context",
    "SessionMetrics",
    "track_callback",
    "emit_metric",
]
