"""
Plain-text renderings of a diff.

Provides the prefixed listing used when copying a diff and the standard
unified diff format used when saving one to a `.diff` file.
"""

from typing import List, Sequence, Tuple

from changekit.models.diff import DiffLine, DiffLineKind, EditKind, EditOp


_OP_PREFIX = {
    EditKind.INSERT: "+",
    EditKind.DELETE: "-",
    EditKind.EQUAL: " ",
}

_LINE_PREFIX = {
    DiffLineKind.ADDED: "+",
    DiffLineKind.REMOVED: "-",
    DiffLineKind.UNCHANGED: " ",
}


def format_prefixed(ops: Sequence[EditOp]) -> str:
    """
    Render every line of every op with a `+ `, `- ` or `  ` prefix.

    Args:
        ops: Edit ops in diff order

    Returns:
        Newline-joined listing
    """
    rendered: List[str] = []
    for op in ops:
        fragments = op.text.split("\n")
        if fragments and not fragments[-1]:
            fragments.pop()
        prefix = _OP_PREFIX[op.kind]
        rendered.extend(f"{prefix} {fragment}" for fragment in fragments)
    return "\n".join(rendered)


def _format_range(start: int, length: int) -> str:
    """Unified diff range; `start` is the 0-based index of the first line."""
    beginning = start + 1
    if length == 1:
        return f"{beginning}"
    if not length:
        beginning -= 1
    return f"{beginning},{length}"


def _hunk_windows(lines: Sequence[DiffLine], context_lines: int) -> List[Tuple[int, int]]:
    """Half-open index windows around changed lines, merged where they touch."""
    windows: List[Tuple[int, int]] = []
    for index, line in enumerate(lines):
        if not line.is_change:
            continue
        start = max(0, index - context_lines)
        stop = min(len(lines), index + context_lines + 1)
        if windows and start <= windows[-1][1]:
            windows[-1] = (windows[-1][0], max(windows[-1][1], stop))
        else:
            windows.append((start, stop))
    return windows


def _track_range(lines: Sequence[DiffLine], start: int, stop: int, attr: str) -> str:
    numbers = [
        getattr(line, attr)
        for line in lines[start:stop]
        if getattr(line, attr) is not None
    ]
    if numbers:
        return _format_range(numbers[0] - 1, len(numbers))

    preceding = 0
    for line in lines[:start]:
        if getattr(line, attr) is not None:
            preceding = getattr(line, attr)
    return _format_range(preceding, 0)


def format_unified(
    lines: Sequence[DiffLine],
    from_path: str = "original",
    to_path: str = "modified",
    context_lines: int = 3
) -> str:
    """
    Render diff lines as a unified diff.

    Args:
        lines: Flat diff lines
        from_path: Path shown on the `---` header (prefixed with `a/`)
        to_path: Path shown on the `+++` header (prefixed with `b/`)
        context_lines: Unchanged lines kept around each change

    Returns:
        Unified diff text, or an empty string when nothing changed
    """
    if context_lines < 0:
        raise ValueError("context_lines must be non-negative")

    windows = _hunk_windows(lines, context_lines)
    if not windows:
        return ""

    output = [f"--- a/{from_path}\n", f"+++ b/{to_path}\n"]
    for start, stop in windows:
        old_range = _track_range(lines, start, stop, "original_line_number")
        new_range = _track_range(lines, start, stop, "modified_line_number")
        output.append(f"@@ -{old_range} +{new_range} @@\n")
        for line in lines[start:stop]:
            output.append(f"{_LINE_PREFIX[line.kind]}{line.content}\n")

    return "".join(output)
