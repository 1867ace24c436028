"""Host-facing result data models."""

from typing import List

from pydantic import BaseModel

from .session import SessionStatus


class ValidationResult(BaseModel):
    """Advisory result of validating a change."""

    valid: bool
    errors: List[str] = []


class OperationResult(BaseModel):
    """Result of a session controller operation."""

    status: SessionStatus
    message: str
    applied_count: int = 0
    failed_count: int = 0

    @property
    def ok(self) -> bool:
        return self.status != SessionStatus.FAILED
