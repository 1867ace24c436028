"""
Session export.

Serializes an apply session and its changes into a portable snapshot that
can be written out as JSON or YAML and parsed back into the same models.
Where the snapshot is stored is up to the host.
"""

import json
from typing import List, Optional, Sequence

import yaml
from pydantic import BaseModel, ValidationError

from changekit.models.change import Change
from changekit.models.session import ApplySession
from changekit.utils.logging import get_logger


logger = get_logger(__name__)

SUPPORTED_FORMATS = ("json", "yaml")


class ExportFormatError(ValueError):
    """Raised when an export artifact cannot be parsed."""
    pass


class SessionSnapshot(BaseModel):
    """Point-in-time export of a session and the changes it covers."""

    session: ApplySession
    changes: List[Change]

    def to_dict(self) -> dict:
        """JSON-compatible dict using the camelCase export field names."""
        return self.model_dump(mode="json", by_alias=True)


def serialize(session: ApplySession, changes: Sequence[Change]) -> SessionSnapshot:
    """
    Snapshot a session and its changes.

    The snapshot holds deep copies, so later changes to the live models do
    not leak into an export already taken.
    """
    return SessionSnapshot(
        session=session.model_copy(deep=True),
        changes=[change.model_copy(deep=True) for change in changes],
    )


def to_json(snapshot: SessionSnapshot, indent: Optional[int] = 2) -> str:
    return json.dumps(snapshot.to_dict(), indent=indent)


def from_json(text: str) -> SessionSnapshot:
    """
    Parse a JSON export.

    Raises:
        ExportFormatError: If the text is not a valid export
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExportFormatError(f"Invalid JSON export: {e}") from e
    return _load(data)


def to_yaml(snapshot: SessionSnapshot) -> str:
    return yaml.safe_dump(snapshot.to_dict(), sort_keys=False, allow_unicode=True)


def from_yaml(text: str) -> SessionSnapshot:
    """
    Parse a YAML export.

    Raises:
        ExportFormatError: If the text is not a valid export
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ExportFormatError(f"Invalid YAML export: {e}") from e
    return _load(data)


def _load(data: object) -> SessionSnapshot:
    if not isinstance(data, dict):
        raise ExportFormatError("Export must be a mapping with 'session' and 'changes'")
    try:
        snapshot = SessionSnapshot.model_validate(data)
    except ValidationError as e:
        raise ExportFormatError(f"Export does not match the snapshot schema: {e}") from e

    logger.debug(
        "Session snapshot loaded",
        extra={"session_id": snapshot.session.id, "change_count": len(snapshot.changes)}
    )
    return snapshot


def dumps(snapshot: SessionSnapshot, fmt: str = "json", indent: Optional[int] = None) -> str:
    """
    Render a snapshot in the requested format.

    Args:
        snapshot: Snapshot to render
        fmt: 'json' or 'yaml'
        indent: JSON indent (defaults to the configured export indent)
    """
    if fmt == "json":
        if indent is None:
            from changekit.config import settings
            indent = settings.export_indent
        return to_json(snapshot, indent=indent)
    if fmt == "yaml":
        return to_yaml(snapshot)
    raise ValueError(f"Unsupported export format: {fmt}")


def loads(text: str, fmt: str = "json") -> SessionSnapshot:
    if fmt == "json":
        return from_json(text)
    if fmt == "yaml":
        return from_yaml(text)
    raise ValueError(f"Unsupported export format: {fmt}")


def default_filename(session: ApplySession, fmt: str = "json") -> str:
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    return f"code-changes-{session.id}.{fmt}"
