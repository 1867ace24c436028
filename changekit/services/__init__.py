"""Diff and change application services package."""

from changekit.services.diff_engine import (
    DiffEngine,
    DiffComputationError,
    compute_stats,
    reconstruct_modified,
    reconstruct_original,
    to_diff_lines,
    get_diff_engine
)
from changekit.services.diff_format import (
    format_prefixed,
    format_unified
)
from changekit.services.hunk_grouper import (
    HunkGrouper,
    get_hunk_grouper
)
from changekit.services.change_set import (
    ChangeSet,
    SortKey,
    compute_statistics,
    get_change_set
)
from changekit.services.applicator import (
    ChangeApplicator,
    ApplicatorError,
    SessionStateError,
    EmptySelectionError,
    UnsatisfiedDependencyOrder,
    ApplyMode,
    AtomicMode,
    IncrementalMode,
    resolve_apply_mode,
    validate_structure,
    get_change_applicator
)
from changekit.services.exporter import (
    SessionSnapshot,
    ExportFormatError,
    serialize,
    to_json,
    from_json,
    to_yaml,
    from_yaml,
    default_filename
)

__all__ = [
    'DiffEngine',
    'DiffComputationError',
    'compute_stats',
    'reconstruct_modified',
    'reconstruct_original',
    'to_diff_lines',
    'get_diff_engine',
    'format_prefixed',
    'format_unified',
    'HunkGrouper',
    'get_hunk_grouper',
    'ChangeSet',
    'SortKey',
    'compute_statistics',
    'get_change_set',
    'ChangeApplicator',
    'ApplicatorError',
    'SessionStateError',
    'EmptySelectionError',
    'UnsatisfiedDependencyOrder',
    'ApplyMode',
    'AtomicMode',
    'IncrementalMode',
    'resolve_apply_mode',
    'validate_structure',
    'get_change_applicator',
    'SessionSnapshot',
    'ExportFormatError',
    'serialize',
    'to_json',
    'from_json',
    'to_yaml',
    'from_yaml',
    'default_filename'
]
