"""Diff data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Granularity(str, Enum):
    """Tokenization used before alignment."""

    LINES = "lines"
    WORDS = "words"
    CHARS = "chars"


class EditKind(str, Enum):
    """Kind of an atomic diff unit."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


class EditOp(BaseModel):
    """Atomic diff unit: a span of text kept, inserted or deleted."""

    kind: EditKind
    text: str
    # Modified-side text of an equal span when it differs from `text`
    # (whitespace-insensitive diffs only)
    new_text: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def original_text(self) -> str:
        """Text this op contributes to the original side."""
        return "" if self.kind == EditKind.INSERT else self.text

    @property
    def modified_text(self) -> str:
        """Text this op contributes to the modified side."""
        if self.kind == EditKind.DELETE:
            return ""
        if self.kind == EditKind.EQUAL and self.new_text is not None:
            return self.new_text
        return self.text


class DiffLineKind(str, Enum):
    """Kind of a rendered diff line."""

    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class DiffLine(BaseModel):
    """Line-oriented projection of an edit op."""

    kind: DiffLineKind
    content: str
    original_line_number: Optional[int] = Field(None, description="1-indexed line in the original text")
    modified_line_number: Optional[int] = Field(None, description="1-indexed line in the modified text")
    op_index: int = Field(..., description="Index of the EditOp that produced this line")

    @property
    def is_change(self) -> bool:
        return self.kind != DiffLineKind.UNCHANGED


class DiffStats(BaseModel):
    """Line counts of a diff."""

    added: int = 0
    removed: int = 0
    unchanged: int = 0
    total: int = 0
