"""
Metrics collection and emission for observability.

This module provides metrics tracking for:
- Apply session execution time
- Number of changes applied and failed
- Inter-batch pauses
- Host callback latency
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from changekit.utils.logging import get_logger, log_callback

logger = get_logger(__name__)


class SessionMetrics:
    """
    Collects metrics during an apply session.

    Tracks:
    - Execution start/end time
    - Applied and failed change counts
    - Batch pauses taken in incremental mode
    - Callback counts and latency
    """

    def __init__(self, session_id: str, mode: str):
        """
        Initialize metrics collector.

        Args:
            session_id: Apply session ID
            mode: Apply mode name ('atomic' or 'incremental')
        """
        self.session_id = session_id
        self.mode = mode

        # Timing metrics
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        # Application metrics
        self.applied_count: int = 0
        self.failed_count: int = 0
        self.batch_pauses: int = 0

        # Callback metrics
        self.callback_calls: Dict[str, int] = {}
        self.callback_latencies: Dict[str, list[float]] = {}

        self.status: str = "pending"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark session execution start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"
        logger.debug(
            f"Metrics collection started for session {self.session_id}",
            extra={"session_id": self.session_id, "mode": self.mode}
        )

    def complete(self, status: str = "completed", error_message: Optional[str] = None) -> None:
        """
        Mark session execution completion.

        Args:
            status: Final status ('completed' or 'failed')
            error_message: Error message if failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"Metrics collection completed for session {self.session_id}",
            extra={
                "session_id": self.session_id,
                "status": self.status,
                "duration_ms": self.duration_ms,
                "applied_count": self.applied_count,
                "failed_count": self.failed_count,
                "batch_pauses": self.batch_pauses,
            }
        )

    def record_change_result(self, applied: bool) -> None:
        """
        Record the outcome of one change application.

        Args:
            applied: Whether the change was applied
        """
        if applied:
            self.applied_count += 1
        else:
            self.failed_count += 1

    def record_batch_pause(self) -> None:
        """Record one inter-batch delay."""
        self.batch_pauses += 1

    def record_callback(self, callback: str, duration_ms: float) -> None:
        """
        Record callback invocation and latency.

        Args:
            callback: Callback name (e.g., 'apply_one', 'apply_all')
            duration_ms: Call duration in milliseconds
        """
        self.callback_calls[callback] = self.callback_calls.get(callback, 0) + 1
        self.callback_latencies.setdefault(callback, []).append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary = {
            "session_id": self.session_id,
            "mode": self.mode,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "applied_count": self.applied_count,
            "failed_count": self.failed_count,
            "batch_pauses": self.batch_pauses,
            "callback_calls": self.callback_calls,
        }

        if self.callback_latencies:
            latency_stats = {}
            for callback, latencies in self.callback_latencies.items():
                if latencies:
                    latency_stats[callback] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["callback_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_callback(
    metrics: Optional[SessionMetrics],
    callback: str,
    logger_adapter,
    **context: Any
):
    """
    Context manager to track host callback timing.

    Usage:
        async with track_callback(metrics, "apply_one", logger, change_id=change.id):
            result = await apply_one(change)

    Args:
        metrics: Session metrics (optional)
        callback: Callback name
        logger_adapter: Logger for logging callback calls
        **context: Extra log fields
    """
    start_time = time.perf_counter()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000

        if metrics:
            metrics.record_callback(callback, duration_ms)

        log_callback(
            logger_adapter,
            callback=callback,
            duration_ms=duration_ms,
            error=str(error) if error else None,
            **context
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log record.

    Hosts that ship metrics elsewhere can attach a handler that picks up
    records carrying `metric_name`.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
