"""
Hunk Grouper component.

Groups a flat list of diff lines into contiguous change and unchanged runs,
and manages collapsing long unchanged runs down to a context window.
"""

from typing import List, Optional, Sequence

from changekit.models.diff import DiffLine
from changekit.models.hunk import Hunk, HunkKind
from changekit.utils.logging import get_logger


logger = get_logger(__name__)


class HunkGrouper:
    """Splits diff lines into hunks for review."""

    def __init__(self, context_lines: int = 3, collapse_by_default: bool = True):
        """
        Initialize the hunk grouper.

        Args:
            context_lines: Unchanged lines kept visible at each end of a
                collapsed hunk
            collapse_by_default: Whether collapsible hunks start collapsed
        """
        if context_lines < 0:
            raise ValueError("context_lines must be non-negative")
        self.context_lines = context_lines
        self.collapse_by_default = collapse_by_default

    def group(self, lines: Sequence[DiffLine], context_lines: Optional[int] = None) -> List[Hunk]:
        """
        Group diff lines into hunks.

        A new hunk starts whenever a line's classification (unchanged versus
        any change) differs from the previous line's, so interleaved added and
        removed lines share one change hunk.

        Args:
            lines: Flat diff lines
            context_lines: Override of the grouper's context window

        Returns:
            Hunks in order; their lines concatenate back to `lines`
        """
        if context_lines is None:
            context_lines = self.context_lines
        elif context_lines < 0:
            raise ValueError("context_lines must be non-negative")

        hunks: List[Hunk] = []
        current: List[DiffLine] = []
        current_kind: Optional[HunkKind] = None
        start_index = 0

        for index, line in enumerate(lines):
            kind = HunkKind.CHANGE if line.is_change else HunkKind.UNCHANGED
            if kind != current_kind:
                if current:
                    hunks.append(self._make_hunk(current_kind, current, start_index, context_lines))
                current = [line]
                current_kind = kind
                start_index = index
            else:
                current.append(line)

        if current:
            hunks.append(self._make_hunk(current_kind, current, start_index, context_lines))

        logger.debug(
            "Diff lines grouped",
            extra={
                "lines": len(lines),
                "hunks": len(hunks),
                "collapsible": sum(1 for hunk in hunks if hunk.collapsible),
            }
        )
        return hunks

    def _make_hunk(
        self,
        kind: HunkKind,
        lines: List[DiffLine],
        start_index: int,
        context_lines: int
    ) -> Hunk:
        hunk = Hunk(
            kind=kind,
            lines=lines,
            start_index=start_index,
            context_lines=context_lines,
        )
        if self.collapse_by_default:
            hunk.collapse()
        return hunk

    @staticmethod
    def flatten(hunks: Sequence[Hunk]) -> List[DiffLine]:
        """Concatenate every hunk's full line list, regardless of collapse state."""
        return [line for hunk in hunks for line in hunk.lines]

    @staticmethod
    def expand_all(hunks: Sequence[Hunk]) -> None:
        for hunk in hunks:
            hunk.expand()

    @staticmethod
    def collapse_all(hunks: Sequence[Hunk]) -> None:
        for hunk in hunks:
            hunk.collapse()


def get_hunk_grouper() -> HunkGrouper:
    """
    Factory function to create a HunkGrouper with settings from config.

    Returns:
        HunkGrouper instance configured with library settings
    """
    from changekit.config import settings

    return HunkGrouper(context_lines=settings.context_lines)
