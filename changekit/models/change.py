"""Proposed change data models."""

from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6


class ChangeKind(str, Enum):
    """Type of proposed edit."""

    ADDITION = "addition"
    DELETION = "deletion"
    MODIFICATION = "modification"
    MOVE = "move"
    RENAME = "rename"


class ChangeStatus(str, Enum):
    """Application outcome of a change."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class ConfidenceBand(str, Enum):
    """Coarse confidence bucket used for display and triage."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Change(BaseModel):
    """A proposed, independently applicable edit."""

    id: str
    kind: ChangeKind
    file_path: str
    description: str
    original_content: Optional[str] = None
    new_content: Optional[str] = None
    line_start: Optional[int] = Field(None, ge=1)
    line_end: Optional[int] = Field(None, ge=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    dependencies: Set[str] = Field(default_factory=set)
    conflicts: List[str] = Field(default_factory=list)
    applied: bool = False
    error: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_serializer("dependencies")
    def _serialize_dependencies(self, dependencies: Set[str]) -> List[str]:
        return sorted(dependencies)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def status(self) -> ChangeStatus:
        if self.applied:
            return ChangeStatus.APPLIED
        if self.error is not None:
            return ChangeStatus.FAILED
        return ChangeStatus.PENDING

    @property
    def confidence_band(self) -> ConfidenceBand:
        if self.confidence >= HIGH_CONFIDENCE:
            return ConfidenceBand.HIGH
        if self.confidence >= MEDIUM_CONFIDENCE:
            return ConfidenceBand.MEDIUM
        return ConfidenceBand.LOW


class ChangeStatistics(BaseModel):
    """Aggregate counts over a list of changes."""

    total: int = 0
    applied: int = 0
    pending: int = 0
    failed: int = 0
    conflicted: int = 0
    high_confidence: int = 0
