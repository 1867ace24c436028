"""Data models for changekit."""

from .diff import DiffLine, DiffLineKind, DiffStats, EditKind, EditOp, Granularity
from .hunk import CollapsedRegion, Hunk, HunkKind
from .change import (
    Change,
    ChangeKind,
    ChangeStatistics,
    ChangeStatus,
    ConfidenceBand,
)
from .session import ApplySession, SessionStatus, TERMINAL_STATUSES
from .api_response import OperationResult, ValidationResult

__all__ = [
    # Diff models
    "Granularity",
    "EditKind",
    "EditOp",
    "DiffLineKind",
    "DiffLine",
    "DiffStats",
    # Hunk models
    "HunkKind",
    "Hunk",
    "CollapsedRegion",
    # Change models
    "ChangeKind",
    "ChangeStatus",
    "ConfidenceBand",
    "Change",
    "ChangeStatistics",
    # Session models
    "SessionStatus",
    "ApplySession",
    "TERMINAL_STATUSES",
    # Result models
    "OperationResult",
    "ValidationResult",
]
