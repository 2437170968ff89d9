from typing import Dict, Hashable, List, Sequence, Tuple
from datetime import datetime

from matrix_runner.common.config.constants import EntryState
from matrix_runner.common.config.logging_config import get_logger
from matrix_runner.common.exceptions.build_exceptions import InvalidStateTransition
from matrix_runner.common.utils.time_utils import utc_now


logger = get_logger(__name__)


_ALLOWED_TRANSITIONS: Dict[EntryState, Tuple[EntryState, ...]] = {
    EntryState.PENDING: (EntryState.PROVISIONING, EntryState.FAILED),
    EntryState.PROVISIONING: (EntryState.CACHE_BINDING, EntryState.FAILED),
    EntryState.CACHE_BINDING: (EntryState.EXECUTING, EntryState.FAILED),
    EntryState.EXECUTING: (EntryState.SUCCEEDED, EntryState.FAILED),
    EntryState.SUCCEEDED: (),
    EntryState.FAILED: (),
}


class StateManager:
    """Tracks the lifecycle of every matrix entry of one run.

    Entries are keyed by their position in the matrix so a version listed
    twice still gets two independent entries.
    """

    def __init__(self, keys: Sequence[Hashable]):
        now = utc_now()
        self._states: Dict[Hashable, EntryState] = {k: EntryState.PENDING for k in keys}
        self._history: Dict[Hashable, List[Tuple[EntryState, datetime]]] = {
            k: [(EntryState.PENDING, now)] for k in keys
        }

    def get_state(self, key: Hashable) -> EntryState:
        return self._states[key]

    def transition(self, key: Hashable, state: EntryState) -> None:
        current = self._states[key]
        if state not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStateTransition(
                current=current.value,
                requested=state.value,
            )
        self._states[key] = state
        self._history[key].append((state, utc_now()))
        logger.debug(f"Entry {key}: {current.value} -> {state.value}")

    def fail(self, key: Hashable) -> None:
        if not self._states[key].is_terminal:
            self.transition(key, EntryState.FAILED)

    def history(self, key: Hashable) -> List[EntryState]:
        return [state for state, _ in self._history[key]]

    def snapshot(self) -> Dict[Hashable, EntryState]:
        return dict(self._states)

    def in_flight(self) -> List[Hashable]:
        return [k for k, state in self._states.items() if not state.is_terminal]

    @property
    def all_terminal(self) -> bool:
        return not self.in_flight()
