"""
Unit tests for metrics collection utilities.
"""

import pytest
from datetime import datetime

from changekit.utils.logging import get_logger
from changekit.utils.metrics import SessionMetrics, emit_metric, track_callback


def test_session_metrics_initialization():
    """Test metrics collector initialization."""
    metrics = SessionMetrics(session_id="s-1", mode="incremental")

    assert metrics.session_id == "s-1"
    assert metrics.mode == "incremental"
    assert metrics.status == "pending"
    assert metrics.applied_count == 0
    assert metrics.failed_count == 0
    assert metrics.batch_pauses == 0


def test_session_metrics_start():
    """Test starting metrics collection."""
    metrics = SessionMetrics("s-1", "incremental")

    metrics.start()

    assert isinstance(metrics.start_time, datetime)
    assert metrics.status == "running"


def test_session_metrics_complete():
    """Test completing metrics collection."""
    metrics = SessionMetrics("s-1", "atomic")

    metrics.start()
    metrics.complete(status="completed")

    assert metrics.end_time is not None
    assert metrics.status == "completed"
    assert metrics.duration_ms is not None
    assert metrics.duration_ms >= 0


def test_session_metrics_complete_with_error():
    """Test completing metrics collection with error."""
    metrics = SessionMetrics("s-1", "atomic")

    metrics.start()
    metrics.complete(status="failed", error_message="Stopped by operator")

    assert metrics.status == "failed"
    assert metrics.error_message == "Stopped by operator"


def test_record_change_results_and_pauses():
    """Test recording change outcomes and batch pauses."""
    metrics = SessionMetrics("s-1", "incremental")

    metrics.record_change_result(True)
    metrics.record_change_result(True)
    metrics.record_change_result(False)
    metrics.record_batch_pause()

    assert metrics.applied_count == 2
    assert metrics.failed_count == 1
    assert metrics.batch_pauses == 1


def test_record_callback():
    """Test recording callback metrics."""
    metrics = SessionMetrics("s-1", "incremental")

    metrics.record_callback("apply_one", 10.0)
    metrics.record_callback("apply_one", 20.0)
    metrics.record_callback("preview", 5.0)

    assert metrics.callback_calls == {"apply_one": 2, "preview": 1}
    assert len(metrics.callback_latencies["apply_one"]) == 2


def test_get_metrics_summary():
    """Test getting metrics summary."""
    metrics = SessionMetrics("s-1", "incremental")

    metrics.start()
    metrics.record_change_result(True)
    metrics.record_callback("apply_one", 150.0)
    metrics.record_callback("apply_one", 200.0)
    metrics.complete(status="failed", error_message="boom")

    summary = metrics.get_metrics_summary()

    assert summary["session_id"] == "s-1"
    assert summary["mode"] == "incremental"
    assert summary["status"] == "failed"
    assert summary["applied_count"] == 1
    assert summary["error_message"] == "boom"
    assert summary["callback_latencies"]["apply_one"]["count"] == 2
    assert summary["callback_latencies"]["apply_one"]["avg_ms"] == 175.0


@pytest.mark.asyncio
async def test_track_callback_records_latency():
    """Test track_callback records a call on success."""
    metrics = SessionMetrics("s-1", "incremental")

    async with track_callback(metrics, "apply_one", get_logger("test.track"), change_id="c-1"):
        pass

    assert metrics.callback_calls["apply_one"] == 1


@pytest.mark.asyncio
async def test_track_callback_reraises():
    """Test track_callback records the call and propagates errors."""
    metrics = SessionMetrics("s-1", "incremental")

    with pytest.raises(RuntimeError):
        async with track_callback(metrics, "apply_all", get_logger("test.track")):
            raise RuntimeError("host failure")

    assert metrics.callback_calls["apply_all"] == 1


@pytest.mark.asyncio
async def test_track_callback_without_metrics():
    """Test track_callback works outside of a session."""
    async with track_callback(None, "preview", get_logger("test.track")):
        pass


def test_emit_metric():
    """Test emitting a metric."""
    # This should not raise an exception
    emit_metric("changes_applied", 3.0, mode="incremental")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
