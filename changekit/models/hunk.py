"""Hunk data models."""

from enum import Enum
from typing import List, Union

from pydantic import BaseModel, Field

from .diff import DiffLine


class HunkKind(str, Enum):
    """Classification of a contiguous run of diff lines."""

    CHANGE = "change"
    UNCHANGED = "unchanged"


class CollapsedRegion(BaseModel):
    """Placeholder standing in for the hidden interior of a collapsed hunk."""

    hidden_count: int
    start_index: int = Field(..., description="Flat index of the first hidden line")


class Hunk(BaseModel):
    """
    Contiguous run of same-classification diff lines.

    Collapsing only changes what `visible_items` returns; `lines` always holds
    the complete run.
    """

    kind: HunkKind
    lines: List[DiffLine]
    start_index: int
    context_lines: int = 3
    collapsed: bool = False

    @property
    def collapsible(self) -> bool:
        return (
            self.kind == HunkKind.UNCHANGED
            and len(self.lines) > 2 * self.context_lines + 1
        )

    @property
    def hidden_count(self) -> int:
        """Number of lines hidden while collapsed (0 if not collapsible)."""
        if not self.collapsible:
            return 0
        return len(self.lines) - 2 * self.context_lines

    @property
    def is_collapsed(self) -> bool:
        return self.collapsed and self.collapsible

    def collapse(self) -> "Hunk":
        if self.collapsible:
            self.collapsed = True
        return self

    def expand(self) -> "Hunk":
        self.collapsed = False
        return self

    def toggle(self) -> "Hunk":
        if self.is_collapsed:
            return self.expand()
        return self.collapse()

    def visible_items(self) -> List[Union[DiffLine, CollapsedRegion]]:
        """Lines to display, with a placeholder replacing the hidden interior."""
        if not self.is_collapsed:
            return list(self.lines)

        head = self.lines[:self.context_lines]
        tail = self.lines[len(self.lines) - self.context_lines:]
        placeholder = CollapsedRegion(
            hidden_count=self.hidden_count,
            start_index=self.start_index + self.context_lines,
        )
        return [*head, placeholder, *tail]
