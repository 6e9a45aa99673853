"""State tracking for a single transaction from build to receipt."""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from rpcprobe.models import TransactionReceipt


class TxState(Enum):
    BUILT = "BUILT"
    SIMULATED = "SIMULATED"
    ACCESS_LIST_REQUESTED = "ACCESS_LIST_REQUESTED"
    ACCESS_LIST_SKIPPED = "ACCESS_LIST_SKIPPED"
    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


class LifecycleError(ValueError):
    """Raised when a transition is not allowed from the current state."""


_TRANSITIONS: Dict[TxState, FrozenSet[TxState]] = {
    TxState.BUILT: frozenset({TxState.SIMULATED}),
    TxState.SIMULATED: frozenset({TxState.ACCESS_LIST_REQUESTED, TxState.ACCESS_LIST_SKIPPED}),
    TxState.ACCESS_LIST_REQUESTED: frozenset({TxState.SUBMITTED}),
    TxState.ACCESS_LIST_SKIPPED: frozenset({TxState.SUBMITTED}),
    TxState.SUBMITTED: frozenset({TxState.PENDING}),
    TxState.PENDING: frozenset({TxState.CONFIRMED, TxState.FAILED, TxState.TIMED_OUT}),
    TxState.CONFIRMED: frozenset(),
    TxState.FAILED: frozenset(),
    TxState.TIMED_OUT: frozenset(),
}

TERMINAL_STATES: FrozenSet[TxState] = frozenset(s for s, nxt in _TRANSITIONS.items() if not nxt)


class TransactionLifecycle:
    def __init__(self) -> None:
        self._state = TxState.BUILT
        self._history: List[TxState] = [TxState.BUILT]
        self.tx_hash: Optional[str] = None
        self.receipt: Optional[TransactionReceipt] = None

    @property
    def state(self) -> TxState:
        return self._state

    @property
    def history(self) -> Tuple[TxState, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def advance(self, new_state: TxState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise LifecycleError(f"Cannot move from {self._state.value} to {new_state.value}.")
        self._state = new_state
        self._history.append(new_state)

    def mark_submitted(self, tx_hash: str) -> None:
        self.advance(TxState.SUBMITTED)
        self.tx_hash = tx_hash
        self.advance(TxState.PENDING)

    def resolve(self, receipt: TransactionReceipt) -> TxState:
        self.advance(TxState.CONFIRMED if receipt.succeeded else TxState.FAILED)
        self.receipt = receipt
        return self._state

    def time_out(self) -> None:
        self.advance(TxState.TIMED_OUT)
