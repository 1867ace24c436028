"""Apply session data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionStatus(str, Enum):
    """Apply session status."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset([SessionStatus.COMPLETED, SessionStatus.FAILED])


class ApplySession(BaseModel):
    """A batch-application run over an ordered selection of changes."""

    id: str
    name: str
    change_ids: List[str]
    status: SessionStatus = SessionStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    created_at: datetime
    applied_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
