"""
Diff Engine component.

Computes the ordered edit operations that turn one text blob into another.
Text is tokenized at line, word or character granularity and aligned with
Myers' O(ND) shortest edit script, so identical inputs always produce
identical operations.
"""

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from changekit.models.diff import (
    DiffLine,
    DiffLineKind,
    DiffStats,
    EditKind,
    EditOp,
    Granularity,
)
from changekit.utils.logging import get_logger


logger = get_logger(__name__)

_LINE_TOKEN = re.compile(r"[^\n]*\n|[^\n]+")
_WORD_TOKEN = re.compile(r"\s+|\S+")
_HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")

# (kind, original token index, modified token index)
Move = Tuple[EditKind, int, int]


class DiffComputationError(ValueError):
    """Raised when a diff cannot be computed from the given input."""
    pass


def tokenize(text: str, granularity: Granularity) -> List[str]:
    """
    Split text into alignment tokens.

    Concatenating the returned tokens always gives back `text`.

    Args:
        text: Text to split
        granularity: Token granularity

    Returns:
        List of tokens
    """
    if granularity == Granularity.LINES:
        return _LINE_TOKEN.findall(text)
    if granularity == Granularity.WORDS:
        return _WORD_TOKEN.findall(text)
    return list(text)


def _line_key(token: str) -> str:
    body, newline = (token[:-1], "\n") if token.endswith("\n") else (token, "")
    return _HORIZONTAL_SPACE.sub(" ", body).strip() + newline


def _word_key(token: str) -> str:
    return _HORIZONTAL_SPACE.sub(" ", token)


def _char_key(token: str) -> str:
    return " " if token != "\n" and token.isspace() else token


_WHITESPACE_KEYS: Dict[Granularity, Callable[[str], str]] = {
    Granularity.LINES: _line_key,
    Granularity.WORDS: _word_key,
    Granularity.CHARS: _char_key,
}


def _step(
    previous: Dict[int, int],
    k: int,
    n: int,
    m: int
) -> Optional[Tuple[int, int]]:
    """
    Pick the furthest in-bounds start on diagonal k after one more edit.

    Returns:
        (x, diagonal the edit came from), or None if no in-bounds move exists
    """
    down = previous.get(k + 1)
    if down is not None and down - k > m:
        down = None

    right = previous.get(k - 1)
    if right is not None:
        right += 1
        if right > n:
            right = None

    if down is None and right is None:
        return None
    if right is None or (down is not None and down >= right):
        return down, k + 1
    return right, k - 1


def _shortest_edit(a: Sequence[str], b: Sequence[str]) -> List[Move]:
    """
    Myers' greedy shortest edit script between two key sequences.

    Args:
        a: Original keys
        b: Modified keys

    Returns:
        Forward-ordered moves covering every token of both sequences
    """
    n, m = len(a), len(b)

    x = 0
    while x < n and x < m and a[x] == b[x]:
        x += 1
    # trace[d][k] is the furthest x reached on diagonal k with d edits
    trace: List[Dict[int, int]] = [{0: x}]

    done = x >= n and x >= m
    d = 0
    while not done:
        d += 1
        previous = trace[-1]
        current: Dict[int, int] = {}
        for k in range(-d, d + 1, 2):
            if k < -m or k > n:
                continue
            chosen = _step(previous, k, n, m)
            if chosen is None:
                continue
            x = chosen[0]
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            current[k] = x
            if x >= n and y >= m:
                done = True
                break
        trace.append(current)

    moves: List[Move] = []
    x, y = n, m
    for d in range(len(trace) - 1, 0, -1):
        k = x - y
        start_x, prev_k = _step(trace[d - 1], k, n, m)
        start_y = start_x - k
        while x > start_x and y > start_y:
            x -= 1
            y -= 1
            moves.append((EditKind.EQUAL, x, y))

        prev_x = trace[d - 1][prev_k]
        prev_y = prev_x - prev_k
        if prev_k == k + 1:
            moves.append((EditKind.INSERT, prev_x, prev_y))
        else:
            moves.append((EditKind.DELETE, prev_x, prev_y))
        x, y = prev_x, prev_y

    while x > 0 and y > 0:
        x -= 1
        y -= 1
        moves.append((EditKind.EQUAL, x, y))

    moves.reverse()
    return moves


def _align(a: Sequence[str], b: Sequence[str]) -> List[Move]:
    """Trim the common suffix, then run the edit search on the rest."""
    n, m = len(a), len(b)
    suffix = 0
    while suffix < n and suffix < m and a[n - 1 - suffix] == b[m - 1 - suffix]:
        suffix += 1

    moves = _shortest_edit(a[:n - suffix], b[:m - suffix])
    moves.extend(
        (EditKind.EQUAL, n - suffix + i, m - suffix + i) for i in range(suffix)
    )
    return moves


def _coalesce(moves: List[Move], a_tokens: List[str], b_tokens: List[str]) -> List[EditOp]:
    """
    Merge per-token moves into edit ops.

    Runs of one kind become a single op; inside a changed region all
    deletions are emitted before all insertions.
    """
    ops: List[EditOp] = []
    kept_original: List[str] = []
    kept_modified: List[str] = []
    deleted: List[str] = []
    inserted: List[str] = []

    def flush_equal() -> None:
        if kept_original:
            text = "".join(kept_original)
            new_text = "".join(kept_modified)
            ops.append(EditOp(
                kind=EditKind.EQUAL,
                text=text,
                new_text=new_text if new_text != text else None,
            ))
            kept_original.clear()
            kept_modified.clear()

    def flush_changes() -> None:
        if deleted:
            ops.append(EditOp(kind=EditKind.DELETE, text="".join(deleted)))
            deleted.clear()
        if inserted:
            ops.append(EditOp(kind=EditKind.INSERT, text="".join(inserted)))
            inserted.clear()

    for kind, i, j in moves:
        if kind == EditKind.EQUAL:
            flush_changes()
            kept_original.append(a_tokens[i])
            kept_modified.append(b_tokens[j])
        else:
            flush_equal()
            if kind == EditKind.DELETE:
                deleted.append(a_tokens[i])
            else:
                inserted.append(b_tokens[j])

    flush_equal()
    flush_changes()
    return ops


def reconstruct_original(ops: Sequence[EditOp]) -> str:
    """Replay equal and delete ops to rebuild the original text."""
    return "".join(op.original_text for op in ops)


def reconstruct_modified(ops: Sequence[EditOp]) -> str:
    """Replay equal and insert ops to rebuild the modified text."""
    return "".join(op.modified_text for op in ops)


def to_diff_lines(ops: Sequence[EditOp]) -> List[DiffLine]:
    """
    Project edit ops onto display lines.

    Each op's text is split on newlines; a trailing empty fragment is
    dropped. The original line counter advances on removed and unchanged
    lines, the modified counter on added and unchanged lines.

    Args:
        ops: Edit ops in diff order

    Returns:
        Flat list of diff lines
    """
    lines: List[DiffLine] = []
    original_line = 1
    modified_line = 1

    for index, op in enumerate(ops):
        fragments = op.text.split("\n")
        last = len(fragments) - 1
        for position, fragment in enumerate(fragments):
            if position == last and not fragment:
                continue

            if op.kind == EditKind.INSERT:
                lines.append(DiffLine(
                    kind=DiffLineKind.ADDED,
                    content=fragment,
                    modified_line_number=modified_line,
                    op_index=index,
                ))
                modified_line += 1
            elif op.kind == EditKind.DELETE:
                lines.append(DiffLine(
                    kind=DiffLineKind.REMOVED,
                    content=fragment,
                    original_line_number=original_line,
                    op_index=index,
                ))
                original_line += 1
            else:
                lines.append(DiffLine(
                    kind=DiffLineKind.UNCHANGED,
                    content=fragment,
                    original_line_number=original_line,
                    modified_line_number=modified_line,
                    op_index=index,
                ))
                original_line += 1
                modified_line += 1

    return lines


def compute_stats(lines: Sequence[DiffLine]) -> DiffStats:
    """Count added, removed and unchanged lines."""
    stats = DiffStats()
    for line in lines:
        if line.kind == DiffLineKind.ADDED:
            stats.added += 1
        elif line.kind == DiffLineKind.REMOVED:
            stats.removed += 1
        else:
            stats.unchanged += 1
    stats.total = stats.added + stats.removed + stats.unchanged
    return stats


class DiffEngine:
    """
    Computes edit operations between two text blobs.

    The two blobs are always the source of truth: switching granularity means
    calling `diff` again, never transforming previously computed ops.
    """

    def __init__(
        self,
        ignore_whitespace: bool = False,
        default_granularity: Union[Granularity, str] = Granularity.LINES
    ):
        """
        Initialize the diff engine.

        Args:
            ignore_whitespace: Compare tokens with horizontal whitespace runs
                normalized. Emitted ops still carry the original text.
            default_granularity: Granularity used when a call names none

        Raises:
            DiffComputationError: If the default granularity is unknown
        """
        try:
            self.default_granularity = Granularity(default_granularity)
        except ValueError as e:
            raise DiffComputationError(f"Unknown diff granularity: {default_granularity!r}") from e
        self.ignore_whitespace = ignore_whitespace

    def diff(
        self,
        original: str,
        modified: str,
        granularity: Optional[Union[Granularity, str]] = None
    ) -> List[EditOp]:
        """
        Compute ordered edit operations from `original` to `modified`.

        Args:
            original: Original text
            modified: Modified text
            granularity: Tokenization granularity (defaults to the engine's
                default granularity)

        Returns:
            List of edit ops

        Raises:
            DiffComputationError: If either input is not a string or the
                granularity is unknown
        """
        if not isinstance(original, str):
            raise DiffComputationError(
                f"Original content must be a string, got {type(original).__name__}"
            )
        if not isinstance(modified, str):
            raise DiffComputationError(
                f"Modified content must be a string, got {type(modified).__name__}"
            )
        if granularity is None:
            granularity = self.default_granularity
        try:
            granularity = Granularity(granularity)
        except ValueError as e:
            raise DiffComputationError(f"Unknown diff granularity: {granularity!r}") from e

        a_tokens = tokenize(original, granularity)
        b_tokens = tokenize(modified, granularity)

        if self.ignore_whitespace:
            key = _WHITESPACE_KEYS[granularity]
            a_keys = [key(token) for token in a_tokens]
            b_keys = [key(token) for token in b_tokens]
        else:
            a_keys, b_keys = a_tokens, b_tokens

        moves = _align(a_keys, b_keys)
        ops = _coalesce(moves, a_tokens, b_tokens)

        logger.debug(
            "Diff computed",
            extra={
                "granularity": granularity.value,
                "original_tokens": len(a_tokens),
                "modified_tokens": len(b_tokens),
                "edit_ops": len(ops),
                "ignore_whitespace": self.ignore_whitespace,
            }
        )
        return ops

    def diff_lines(
        self,
        original: str,
        modified: str,
        granularity: Optional[Union[Granularity, str]] = None
    ) -> List[DiffLine]:
        """Compute the diff and project it onto display lines."""
        return to_diff_lines(self.diff(original, modified, granularity))


def get_diff_engine() -> DiffEngine:
    """
    Factory function to create a DiffEngine with settings from config.

    Returns:
        DiffEngine instance configured with library settings
    """
    from changekit.config import settings

    return DiffEngine(
        ignore_whitespace=settings.ignore_whitespace,
        default_granularity=settings.default_granularity,
    )
