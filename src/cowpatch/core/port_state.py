"""State machine for porting commits onto HEAD.

Apply, remove and update all move commits with the same procedure:
cherry-pick, and on failure abort, retry without committing, hand lockfile
conflicts to the lockfile handler and commit what remains. The machine makes
that path explicit so it can be asserted without a repository, and so a
rollback can only be recorded from a state that had something to roll back.
"""

import logging
from enum import Enum

from cowpatch.core.errors import IllegalTransitionError

logger = logging.getLogger(__name__)


class PortState(Enum):
    IDLE = "idle"
    SNAPSHOTTED = "snapshotted"
    CHERRY_PICKING = "cherry-picking"
    RESOLVING_CONFLICTS = "resolving-conflicts"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled-back"


TRANSITIONS: dict[PortState, frozenset[PortState]] = {
    PortState.IDLE: frozenset({PortState.SNAPSHOTTED}),
    PortState.SNAPSHOTTED: frozenset(
        {PortState.CHERRY_PICKING, PortState.ROLLED_BACK, PortState.COMMITTED}
    ),
    PortState.CHERRY_PICKING: frozenset(
        {PortState.COMMITTING, PortState.RESOLVING_CONFLICTS, PortState.ROLLED_BACK}
    ),
    PortState.RESOLVING_CONFLICTS: frozenset({PortState.COMMITTING, PortState.ROLLED_BACK}),
    # COMMITTING -> CHERRY_PICKING replays the next commit of a multi-commit rebuild
    PortState.COMMITTING: frozenset(
        {PortState.CHERRY_PICKING, PortState.COMMITTED, PortState.ROLLED_BACK}
    ),
    PortState.COMMITTED: frozenset(),
    PortState.ROLLED_BACK: frozenset(),
}


class PortStateMachine:
    """Tracks one mutating operation from snapshot to commit or rollback."""

    def __init__(self) -> None:
        self._state = PortState.IDLE
        self._history: list[PortState] = [PortState.IDLE]

    @property
    def state(self) -> PortState:
        return self._state

    @property
    def history(self) -> tuple[PortState, ...]:
        """Every state visited, in order, starting with IDLE."""
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self._state]

    def can_transition(self, target: PortState) -> bool:
        return target in TRANSITIONS[self._state]

    def transition(self, target: PortState) -> None:
        """Move to target.

        Raises:
            IllegalTransitionError: If the table does not allow the move
        """
        if not self.can_transition(target):
            raise IllegalTransitionError(self._state.value, target.value)
        logger.debug("port: %s -> %s", self._state.value, target.value)
        self._state = target
        self._history.append(target)
