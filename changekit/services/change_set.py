"""
Change Set component.

Owns the list of proposed changes and provides filtering, ordering,
statistics and bulk selection over it.
"""

from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from changekit.models.change import Change, ChangeKind, ChangeStatistics, ChangeStatus, HIGH_CONFIDENCE
from changekit.utils.logging import get_logger


logger = get_logger(__name__)


class SortKey(str, Enum):
    """Orderings offered for change lists."""

    CONFIDENCE = "confidence"  # descending
    KIND = "kind"  # ascending
    FILE_PATH = "file_path"  # ascending


_SORTERS: Dict[SortKey, Callable[[List[Change]], List[Change]]] = {
    SortKey.CONFIDENCE: lambda changes: sorted(changes, key=lambda c: c.confidence, reverse=True),
    SortKey.KIND: lambda changes: sorted(changes, key=lambda c: c.kind.value),
    SortKey.FILE_PATH: lambda changes: sorted(changes, key=lambda c: c.file_path),
}


def compute_statistics(
    changes: Iterable[Change],
    high_confidence_threshold: float = HIGH_CONFIDENCE
) -> ChangeStatistics:
    """
    Aggregate counts over changes.

    Every change is exactly one of applied, failed or pending.
    """
    stats = ChangeStatistics()
    for change in changes:
        stats.total += 1
        status = change.status
        if status == ChangeStatus.APPLIED:
            stats.applied += 1
        elif status == ChangeStatus.FAILED:
            stats.failed += 1
        else:
            stats.pending += 1
        if change.has_conflicts:
            stats.conflicted += 1
        if change.confidence >= high_confidence_threshold:
            stats.high_confidence += 1
    return stats


class ChangeSet:
    """
    Ordered collection of proposed changes.

    Query methods return new lists and never reorder the set itself. Only
    `applied` and `error` on the contained changes are ever mutated, and
    only by the applicator or `reset`.
    """

    def __init__(
        self,
        changes: Iterable[Change],
        high_confidence_threshold: float = HIGH_CONFIDENCE
    ):
        """
        Initialize the change set.

        Args:
            changes: Proposed changes, in the order they were produced
            high_confidence_threshold: Confidence at or above which a change
                counts as high confidence in statistics

        Raises:
            ValueError: If two changes share an id
        """
        self.high_confidence_threshold = high_confidence_threshold
        self._changes: List[Change] = list(changes)
        self._by_id: Dict[str, Change] = {}
        for change in self._changes:
            if change.id in self._by_id:
                raise ValueError(f"Duplicate change id: {change.id}")
            self._by_id[change.id] = change

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[Change]:
        return iter(self._changes)

    def __contains__(self, change_id: object) -> bool:
        return change_id in self._by_id

    @property
    def changes(self) -> List[Change]:
        return list(self._changes)

    def get(self, change_id: str) -> Change:
        """
        Look up a change by id.

        Raises:
            KeyError: If no change has that id
        """
        try:
            return self._by_id[change_id]
        except KeyError:
            raise KeyError(f"Unknown change id: {change_id}") from None

    def filter(
        self,
        predicate: Callable[[Change], bool],
        changes: Optional[Iterable[Change]] = None
    ) -> List[Change]:
        """Changes (from `changes`, or the whole set) satisfying `predicate`."""
        source = self._changes if changes is None else changes
        return [change for change in source if predicate(change)]

    def filter_by_kind(self, kind: ChangeKind, changes: Optional[Iterable[Change]] = None) -> List[Change]:
        kind = ChangeKind(kind)
        return self.filter(lambda change: change.kind == kind, changes)

    def without_conflicts(self, changes: Optional[Iterable[Change]] = None) -> List[Change]:
        return self.filter(lambda change: not change.has_conflicts, changes)

    def sort(self, key: SortKey, changes: Optional[Iterable[Change]] = None) -> List[Change]:
        """
        Order changes by the given key.

        Sorting is stable, so entries that compare equal (e.g. the same
        confidence) keep their relative order.
        """
        source = list(self._changes if changes is None else changes)
        return _SORTERS[SortKey(key)](source)

    def statistics(self, high_confidence_threshold: Optional[float] = None) -> ChangeStatistics:
        if high_confidence_threshold is None:
            high_confidence_threshold = self.high_confidence_threshold
        return compute_statistics(self._changes, high_confidence_threshold)

    def select_all(
        self,
        changes: Optional[Iterable[Change]] = None,
        include_conflicted: bool = False
    ) -> List[Change]:
        """
        Bulk selection for a session.

        Already applied changes are skipped. Changes with conflicts are only
        included when the caller opts in; they can still be applied one at a
        time regardless.

        Args:
            changes: Candidate changes (defaults to the whole set)
            include_conflicted: Include changes that list conflicts

        Returns:
            Selected changes in candidate order
        """
        selected = self.filter(
            lambda change: not change.applied and (include_conflicted or not change.has_conflicts),
            changes,
        )
        skipped = self.filter(lambda change: not change.applied and change.has_conflicts, changes)
        if skipped and not include_conflicted:
            logger.info(
                f"Skipped {len(skipped)} conflicted changes in bulk selection",
                extra={"skipped_change_ids": [change.id for change in skipped]}
            )
        return selected

    def reset(self, change_id: str) -> Change:
        """Clear the outcome of a change so it can be selected again."""
        change = self.get(change_id)
        change.applied = False
        change.error = None
        return change


def get_change_set(changes: Iterable[Change]) -> ChangeSet:
    """
    Factory function to create a ChangeSet with settings from config.

    Args:
        changes: Proposed changes

    Returns:
        ChangeSet instance configured with library settings
    """
    from changekit.config import settings

    return ChangeSet(changes, high_confidence_threshold=settings.high_confidence_threshold)
