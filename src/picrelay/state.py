"""Relay lifecycle state machines.

Two machines share one transition-table implementation:

* :class:`TaskStateMachine` tracks an :class:`~picrelay.models.AssetTask`
  from capture to cleanup.
* :class:`RelayStateMachine` tracks the orchestrator phases of one relay
  and guarantees ``CLEANUP`` is visited before ``DONE`` on every path
  that got past deduplication.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, Generic, TypeVar

from picrelay.models import RelayState, TaskState

S = TypeVar("S", bound=Enum)


class _StateMachine(Generic[S]):
    """Finite state machine driven by a ``VALID_TRANSITIONS`` table."""

    VALID_TRANSITIONS: ClassVar[dict]
    INITIAL: ClassVar[Enum]

    def __init__(self, label: str) -> None:
        self.label: str = label
        self.state: S = self.INITIAL  # type: ignore[assignment]
        self.history: list[S] = [self.state]

    def can_transition(self, new_state: S) -> bool:
        return new_state in self.VALID_TRANSITIONS.get(self.state, set())

    def transition(self, new_state: S) -> None:
        """Attempt to transition to *new_state*.

        Raises
        ------
        ValueError
            If the transition from the current state to *new_state* is
            not valid.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid state transition: {self.state.value} -> {new_state.value} "
                f"for {self.label}. "
                f"Allowed transitions from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self) -> bool:
        return not self.VALID_TRANSITIONS.get(self.state)


class TaskStateMachine(_StateMachine[TaskState]):
    """State machine for a single asset task.

    Valid transitions::

        PENDING    -> STAGED | UPLOADING | FAILED
        STAGED     -> UPLOADING | FAILED
        UPLOADING  -> SUCCEEDED | FAILED
        SUCCEEDED  -> CLEANED
        FAILED     -> CLEANED
        CLEANED    -> (terminal)

    ``PENDING -> UPLOADING`` is taken by on-disk assets, which are
    uploaded from where they live and never staged.
    """

    INITIAL = TaskState.PENDING

    VALID_TRANSITIONS: ClassVar[dict[TaskState, set[TaskState]]] = {
        TaskState.PENDING: {TaskState.STAGED, TaskState.UPLOADING, TaskState.FAILED},
        TaskState.STAGED: {TaskState.UPLOADING, TaskState.FAILED},
        TaskState.UPLOADING: {TaskState.SUCCEEDED, TaskState.FAILED},
        TaskState.SUCCEEDED: {TaskState.CLEANED},
        TaskState.FAILED: {TaskState.CLEANED},
        TaskState.CLEANED: set(),
    }


class RelayStateMachine(_StateMachine[RelayState]):
    """State machine for the orchestrator phases of one relay.

    Valid transitions::

        IDLE           -> DEDUPLICATING
        DEDUPLICATING  -> STAGING | DONE        (DONE on duplicate)
        STAGING        -> RESOLVING | CLEANUP
        RESOLVING      -> UPLOADING | CLEANUP
        UPLOADING      -> PATCHING | CLEANUP
        PATCHING       -> CLEANUP
        CLEANUP        -> DONE
        DONE           -> (terminal)
    """

    INITIAL = RelayState.IDLE

    VALID_TRANSITIONS: ClassVar[dict[RelayState, set[RelayState]]] = {
        RelayState.IDLE: {RelayState.DEDUPLICATING},
        RelayState.DEDUPLICATING: {RelayState.STAGING, RelayState.DONE},
        RelayState.STAGING: {RelayState.RESOLVING, RelayState.CLEANUP},
        RelayState.RESOLVING: {RelayState.UPLOADING, RelayState.CLEANUP},
        RelayState.UPLOADING: {RelayState.PATCHING, RelayState.CLEANUP},
        RelayState.PATCHING: {RelayState.CLEANUP},
        RelayState.CLEANUP: {RelayState.DONE},
        RelayState.DONE: set(),
    }

    def fail_to_cleanup(self) -> None:
        """Jump to ``CLEANUP`` from whichever phase failed.

        A no-op when already in ``CLEANUP`` or ``DONE``.
        """
        if self.state in (RelayState.CLEANUP, RelayState.DONE):
            return
        self.transition(RelayState.CLEANUP)
