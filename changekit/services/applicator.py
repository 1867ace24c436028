"""
Change Applicator component.

Applies an ordered selection of changes through host-supplied callbacks.
Each batch runs inside an apply session whose state machine is driven by
explicit controller calls:

    pending --start--> running --(done)--> completed
    running --pause--> paused --resume--> running
    running|paused --stop--> failed
    running --(atomic apply fails)--> failed

Every controller operation returns an OperationResult instead of emitting
user-facing notifications; the host decides how to surface it.
"""

import asyncio
import inspect
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from changekit.models.api_response import OperationResult, ValidationResult
from changekit.models.change import Change, ChangeKind
from changekit.models.diff import Granularity
from changekit.models.session import ApplySession, SessionStatus
from changekit.services.change_set import ChangeSet
from changekit.services.diff_engine import DiffEngine
from changekit.services.diff_format import format_unified
from changekit.utils.logging import (
    get_logger,
    log_change_result,
    log_error_with_context,
    log_session_transition,
)
from changekit.utils.metrics import SessionMetrics, track_callback


logger = get_logger(__name__)

ApplyOneCallback = Callable[[Change], Union[bool, Awaitable[bool]]]
ApplyAllCallback = Callable[[List[Change]], Union[bool, Awaitable[bool]]]
PreviewCallback = Callable[[Change], Union[str, Awaitable[str]]]
ValidateCallback = Callable[
    [Change],
    Union[ValidationResult, Dict[str, Any], Awaitable[Union[ValidationResult, Dict[str, Any]]]]
]

_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset([SessionStatus.RUNNING]),
    SessionStatus.RUNNING: frozenset([
        SessionStatus.PAUSED,
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
    ]),
    # completed: a pause requested during the final change finds nothing left to hold
    SessionStatus.PAUSED: frozenset([
        SessionStatus.RUNNING,
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
    ]),
}

APPLY_FAILED_MESSAGE = "Application failed"


class ApplicatorError(Exception):
    """Base exception for Change Applicator errors."""
    pass


class SessionStateError(ApplicatorError):
    """Operation not allowed in the session's current state."""
    pass


class EmptySelectionError(ApplicatorError):
    """No applicable changes were selected for a session."""
    pass


class UnsatisfiedDependencyOrder(ApplicatorError):
    """A selected change depends on a change that is neither applied nor ordered before it."""

    def __init__(self, change_id: str, dependency_id: str, reason: str):
        self.change_id = change_id
        self.dependency_id = dependency_id
        super().__init__(
            f"Change {change_id} depends on {dependency_id}, which {reason}"
        )


async def _call(callback: Callable[..., Any], *args: Any) -> Any:
    """Invoke a host callback that may be a plain or a coroutine function."""
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _percent(done: int, total: int) -> int:
    """round(100 * done / total), halves rounded up."""
    if total <= 0:
        return 100
    return int(100 * done / total + 0.5)


class ApplyMode(ABC):
    """How a batch of changes is handed to the host."""

    name: str

    @abstractmethod
    async def apply_single(self, change: Change) -> bool:
        """Apply one change outside of a batch."""
        pass


class AtomicMode(ApplyMode):
    """The whole selection is submitted in one apply-all call."""

    name = "atomic"

    def __init__(self, apply_all: ApplyAllCallback):
        self.apply_all = apply_all

    async def apply_batch(self, changes: List[Change]) -> bool:
        return bool(await _call(self.apply_all, list(changes)))

    async def apply_single(self, change: Change) -> bool:
        return await self.apply_batch([change])


class IncrementalMode(ApplyMode):
    """Changes are submitted one apply-one call at a time."""

    name = "incremental"

    def __init__(self, apply_one: ApplyOneCallback):
        self.apply_one = apply_one

    async def apply_single(self, change: Change) -> bool:
        return bool(await _call(self.apply_one, change))


def resolve_apply_mode(
    apply_one: Optional[ApplyOneCallback] = None,
    apply_all: Optional[ApplyAllCallback] = None
) -> ApplyMode:
    """
    Pick the apply mode from the callbacks the host supplied.

    An apply-all callback wins; apply-one is used only without one.

    Raises:
        ValueError: If neither callback is given
    """
    if apply_all is not None:
        return AtomicMode(apply_all)
    if apply_one is not None:
        return IncrementalMode(apply_one)
    raise ValueError("Either apply_one or apply_all callback is required")


class ChangeApplicator:
    """
    Session controller applying selected changes through host callbacks.

    One session is active at a time. While a session is running or paused it
    exclusively owns the `applied`/`error` fields of its changes.
    """

    def __init__(
        self,
        change_set: ChangeSet,
        apply_one: Optional[ApplyOneCallback] = None,
        apply_all: Optional[ApplyAllCallback] = None,
        preview: Optional[PreviewCallback] = None,
        validate: Optional[ValidateCallback] = None,
        batch_size: int = 5,
        batch_delay: float = 0.1,
        enforce_dependency_order: bool = True,
        diff_engine: Optional[DiffEngine] = None,
        context_lines: int = 3,
    ):
        """
        Initialize the applicator.

        Args:
            change_set: Changes this applicator may apply
            apply_one: Per-change callback (incremental mode)
            apply_all: Whole-batch callback (atomic mode, takes precedence)
            preview: Callback rendering a change's effect
            validate: Callback checking a change before selection
            batch_size: Changes per batch before an inter-batch delay
            batch_delay: Inter-batch delay in seconds
            enforce_dependency_order: Reject selections whose dependencies
                are not applied or ordered earlier
            diff_engine: Engine used for default previews
            context_lines: Context lines in default previews
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must be non-negative")

        self.change_set = change_set
        self.mode = resolve_apply_mode(apply_one, apply_all)
        self.preview_callback = preview
        self.validate_callback = validate
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.enforce_dependency_order = enforce_dependency_order
        self.diff_engine = diff_engine or DiffEngine()
        self.context_lines = context_lines

        self.metrics: Optional[SessionMetrics] = None
        self._session: Optional[ApplySession] = None
        self._selection: List[Change] = []
        self._cursor = 0
        self._pause_requested = False
        self._stop_requested = False
        self._loop_active = False

    @property
    def session(self) -> Optional[ApplySession]:
        return self._session

    @property
    def processed_count(self) -> int:
        """Number of session changes already handed to the host."""
        return self._cursor

    def _require_session(self) -> ApplySession:
        if self._session is None:
            raise SessionStateError("No apply session has been created")
        return self._session

    def _transition(self, to_status: SessionStatus, **context: Any) -> None:
        session = self._require_session()
        from_status = session.status
        if to_status not in _TRANSITIONS.get(from_status, frozenset()):
            raise SessionStateError(
                f"Cannot move session {session.id} from {from_status.value} to {to_status.value}"
            )
        session.status = to_status
        log_session_transition(
            logger,
            session_id=session.id,
            from_status=from_status.value,
            to_status=to_status.value,
            progress=session.progress,
            **context
        )

    def _result(self, status: SessionStatus, message: str) -> OperationResult:
        return OperationResult(
            status=status,
            message=message,
            applied_count=sum(1 for change in self._selection if change.applied),
            failed_count=sum(1 for change in self._selection if not change.applied and change.error is not None),
        )

    # Session lifecycle

    def create_session(
        self,
        change_ids: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
        include_conflicted: bool = False
    ) -> ApplySession:
        """
        Create a pending session over a selection of changes.

        Args:
            change_ids: Ordered ids to apply; defaults to a bulk selection of
                the whole change set. Duplicates and already applied changes
                are dropped.
            name: Session name (defaults to "Apply N changes")
            include_conflicted: With the bulk selection, include changes that
                list conflicts. Explicit ids are always honored.

        Returns:
            The new session

        Raises:
            SessionStateError: If the previous session is still active
            KeyError: If an id is not in the change set
            EmptySelectionError: If nothing is left to apply
            UnsatisfiedDependencyOrder: If dependency order is violated
        """
        if self._session is not None and not self._session.is_terminal:
            raise SessionStateError(
                f"Session {self._session.id} is still {self._session.status.value}"
            )

        if change_ids is None:
            selection = self.change_set.select_all(include_conflicted=include_conflicted)
        else:
            selection = []
            seen = set()
            for change_id in change_ids:
                if change_id in seen:
                    continue
                seen.add(change_id)
                change = self.change_set.get(change_id)
                if not change.applied:
                    selection.append(change)

        if not selection:
            raise EmptySelectionError("No changes selected for application")

        if self.enforce_dependency_order:
            self._check_dependency_order(selection)

        session = ApplySession(
            id=uuid.uuid4().hex,
            name=name or f"Apply {len(selection)} changes",
            change_ids=[change.id for change in selection],
            created_at=datetime.now(timezone.utc),
        )

        self._session = session
        self._selection = selection
        self._cursor = 0
        self._pause_requested = False
        self._stop_requested = False
        self.metrics = SessionMetrics(session.id, self.mode.name)

        logger.info(
            f"Apply session created: {session.name}",
            extra={
                "session_id": session.id,
                "status": session.status.value,
                "mode": self.mode.name,
                "change_count": len(selection),
            }
        )
        return session

    def _check_dependency_order(self, selection: List[Change]) -> None:
        """
        Require every dependency to be applied already or selected earlier.

        The selection order is never changed here; a violation is reported
        so the caller can fix the order.
        """
        positions = {change.id: index for index, change in enumerate(selection)}
        for index, change in enumerate(selection):
            for dependency_id in sorted(change.dependencies):
                position = positions.get(dependency_id)
                if position is not None:
                    if position < index:
                        continue
                    raise UnsatisfiedDependencyOrder(
                        change.id, dependency_id, "is ordered after it in the selection"
                    )
                if dependency_id in self.change_set and self.change_set.get(dependency_id).applied:
                    continue
                raise UnsatisfiedDependencyOrder(
                    change.id, dependency_id, "is neither applied nor selected"
                )

    async def start(self) -> OperationResult:
        """
        Start processing the pending session.

        Returns once the session completes, fails, is paused or is stopped.

        Raises:
            SessionStateError: If there is no pending session
        """
        session = self._require_session()
        if session.status != SessionStatus.PENDING:
            raise SessionStateError(
                f"Cannot start session {session.id}: it is {session.status.value}"
            )
        self._transition(SessionStatus.RUNNING)
        self.metrics.start()

        if isinstance(self.mode, AtomicMode):
            return await self._run_atomic(session)
        return await self._run_incremental(session)

    def pause(self) -> OperationResult:
        """
        Pause a running incremental session.

        A change already handed to the host finishes first; processing halts
        before the next one.

        Raises:
            SessionStateError: If the session is not running, or is atomic
        """
        session = self._require_session()
        if isinstance(self.mode, AtomicMode):
            raise SessionStateError("Atomic sessions cannot be paused")
        self._transition(SessionStatus.PAUSED)
        self._pause_requested = True
        return self._result(
            SessionStatus.PAUSED,
            f"Paused after {self._cursor} of {len(session.change_ids)} changes",
        )

    async def resume(self) -> OperationResult:
        """
        Resume a paused session from the next unprocessed change.

        If processing has not yet halted (a change was still in flight when
        the pause was requested) the pause is withdrawn and the running loop
        simply carries on.

        Raises:
            SessionStateError: If the session is not paused
        """
        session = self._require_session()
        if session.status != SessionStatus.PAUSED:
            raise SessionStateError(
                f"Cannot resume session {session.id}: it is {session.status.value}"
            )
        self._transition(SessionStatus.RUNNING)
        self._pause_requested = False
        if self._loop_active:
            return self._result(SessionStatus.RUNNING, "Resumed; processing continues")
        return await self._run_incremental(session)

    def stop(self) -> OperationResult:
        """
        Cancel the session.

        Changes already applied stay applied; no further change is started.

        Raises:
            SessionStateError: If the session is not running or paused
        """
        session = self._require_session()
        self._transition(SessionStatus.FAILED, reason="stopped")
        self._stop_requested = True
        self._pause_requested = False
        self.metrics.complete(status="failed", error_message="Stopped by operator")
        return self._result(
            SessionStatus.FAILED,
            f"Stopped after {self._cursor} of {len(session.change_ids)} changes",
        )

    # Processing

    async def _run_atomic(self, session: ApplySession) -> OperationResult:
        changes = self._selection
        error: Optional[str] = None
        try:
            async with track_callback(self.metrics, "apply_all", logger, session_id=session.id):
                success = await self.mode.apply_batch(changes)
        except Exception as e:
            success = False
            error = str(e) or type(e).__name__
            log_error_with_context(
                logger,
                f"Atomic apply raised for session {session.id}",
                e,
                session_id=session.id,
            )

        for change in changes:
            change.applied = success
            if success:
                change.error = None
            self.metrics.record_change_result(success)
        self._cursor = len(changes)

        if self._stop_requested:
            return self._result(SessionStatus.FAILED, "Session was stopped during application")

        if success:
            session.progress = 100
            session.applied_at = datetime.now(timezone.utc)
            self._transition(SessionStatus.COMPLETED)
            self.metrics.complete(status="completed")
            return self._result(
                SessionStatus.COMPLETED,
                f"Applied {len(changes)} changes successfully",
            )

        message = "Failed to apply changes"
        if error:
            message = f"{message}: {error}"
        self._transition(SessionStatus.FAILED, reason=error or "apply_all returned false")
        self.metrics.complete(status="failed", error_message=error or "apply_all returned false")
        return self._result(SessionStatus.FAILED, message)

    async def _run_incremental(self, session: ApplySession) -> OperationResult:
        total = len(self._selection)
        self._loop_active = True
        try:
            while self._cursor < total:
                if self._stop_requested:
                    return self._result(SessionStatus.FAILED, "Session was stopped")
                if self._pause_requested:
                    logger.info(
                        f"Session paused at change {self._cursor + 1} of {total}",
                        extra={"session_id": session.id, "status": session.status.value}
                    )
                    return self._result(
                        SessionStatus.PAUSED,
                        f"Paused after {self._cursor} of {total} changes",
                    )

                change = self._selection[self._cursor]
                await self._apply_one(change, session.id, self.metrics)
                self._cursor += 1
                session.progress = _percent(self._cursor, total)

                if self._cursor % self.batch_size == 0 and self._cursor < total:
                    self.metrics.record_batch_pause()
                    await asyncio.sleep(self.batch_delay)
        finally:
            self._loop_active = False

        if self._stop_requested:
            return self._result(SessionStatus.FAILED, "Session was stopped")

        self._pause_requested = False
        session.applied_at = datetime.now(timezone.utc)
        self._transition(SessionStatus.COMPLETED)
        self.metrics.complete(status="completed")

        result = self._result(SessionStatus.COMPLETED, "")
        result.message = f"Applied {result.applied_count} of {total} changes"
        if result.failed_count:
            result.message += f"; {result.failed_count} failed"
        return result

    async def _apply_one(
        self,
        change: Change,
        session_id: Optional[str],
        metrics: Optional[SessionMetrics]
    ) -> None:
        """Apply one change, recording failures on the change instead of raising."""
        try:
            async with track_callback(metrics, "apply_one", logger, session_id=session_id, change_id=change.id):
                success = await self.mode.apply_single(change)
        except Exception as e:
            change.applied = False
            change.error = str(e) or type(e).__name__
            log_error_with_context(
                logger,
                f"Error applying change {change.id}",
                e,
                session_id=session_id,
                change_id=change.id,
            )
        else:
            change.applied = success
            change.error = None if success else APPLY_FAILED_MESSAGE

        if metrics:
            metrics.record_change_result(change.applied)
        log_change_result(logger, session_id, change.id, change.applied, change.error)

    # Individual operations

    async def apply_change(self, change_id: str) -> OperationResult:
        """
        Apply a single change outside of any session.

        Conflicted changes are allowed here; the bulk selection gate does not
        apply to an explicit request.

        Raises:
            KeyError: If the id is unknown
            SessionStateError: If an active session holds the change
        """
        change = self.change_set.get(change_id)
        session = self._session
        if session is not None and not session.is_terminal and change_id in session.change_ids:
            raise SessionStateError(
                f"Change {change_id} belongs to active session {session.id}"
            )

        await self._apply_one(change, None, None)
        if change.applied:
            return OperationResult(
                status=SessionStatus.COMPLETED,
                message=f"Applied change: {change.description}",
                applied_count=1,
            )
        return OperationResult(
            status=SessionStatus.FAILED,
            message=f"Failed to apply change: {change.description}",
            failed_count=1,
        )

    async def preview(self, change_id: str) -> str:
        """
        Render a preview of a change's effect.

        Uses the host's preview callback, or a unified diff of the change's
        original and new content. The change itself is never modified.
        """
        change = self.change_set.get(change_id)
        if self.preview_callback is None:
            lines = self.diff_engine.diff_lines(
                change.original_content or "",
                change.new_content or "",
                Granularity.LINES,
            )
            return format_unified(lines, change.file_path, change.file_path, self.context_lines)

        async with track_callback(self.metrics, "preview", logger, change_id=change.id):
            return str(await _call(self.preview_callback, change.model_copy(deep=True)))

    async def validate(self, change_id: str) -> ValidationResult:
        """
        Check a change before it is selected.

        Advisory only: the applicator never refuses to apply an invalid change.
        """
        change = self.change_set.get(change_id)
        if self.validate_callback is None:
            return validate_structure(change)

        async with track_callback(self.metrics, "validate", logger, change_id=change.id):
            result = await _call(self.validate_callback, change.model_copy(deep=True))
        if isinstance(result, ValidationResult):
            return result
        return ValidationResult.model_validate(result)


def validate_structure(change: Change) -> ValidationResult:
    """Built-in structural checks used when the host supplies no validator."""
    errors: List[str] = []

    if change.line_start is not None and change.line_end is not None and change.line_end < change.line_start:
        errors.append(f"line_end ({change.line_end}) precedes line_start ({change.line_start})")

    if change.kind in (ChangeKind.ADDITION, ChangeKind.MODIFICATION) and change.new_content is None:
        errors.append(f"{change.kind.value} requires new content")

    if change.kind == ChangeKind.DELETION and change.original_content is None and change.line_start is None:
        errors.append("deletion requires original content or a line range")

    if (
        change.kind == ChangeKind.MODIFICATION
        and change.original_content is not None
        and change.original_content == change.new_content
    ):
        errors.append("modification does not change the content")

    return ValidationResult(valid=not errors, errors=errors)


def get_change_applicator(change_set: ChangeSet, **callbacks: Any) -> ChangeApplicator:
    """
    Factory function to create a ChangeApplicator with settings from config.

    Args:
        change_set: Changes to apply
        **callbacks: apply_one / apply_all / preview / validate

    Returns:
        ChangeApplicator instance configured with library settings
    """
    from changekit.config import settings
    from changekit.services.diff_engine import get_diff_engine

    return ChangeApplicator(
        change_set,
        batch_size=settings.batch_size,
        batch_delay=settings.batch_delay_seconds,
        enforce_dependency_order=settings.enforce_dependency_order,
        diff_engine=get_diff_engine(),
        context_lines=settings.context_lines,
        **callbacks
    )
