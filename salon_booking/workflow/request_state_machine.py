"""
Finite state machine for the booking-request negotiation.

A request starts ``PENDING``. The operator approves, rejects or attaches
a counter-offer (``CHANGED``); a counter-offer is then accepted or
rejected by the client. Every terminal state deletes the request from
the store, so only ``PENDING`` and ``CHANGED`` are ever persisted.

The table is also the source of the compare-and-set guard handed to the
store: :func:`expected_statuses` lists the persisted statuses a trigger
may fire from.

Usage:
    sm = RequestStateMachine()
    sm.transition(RequestTrigger.PROPOSE_ALTERNATIVE)
    assert sm.current_state == RequestState.CHANGED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from salon_booking.errors import InvalidTransitionError
from salon_booking.schemas.booking_schema import AppointmentRequest, RequestStatus

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    """All states in a request's lifecycle."""
    PENDING = "pending"
    CHANGED = "changed"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACCEPTED_FROM_CHANGED = "accepted_from_changed"
    REJECTED_FROM_CHANGED = "rejected_from_changed"
    CANCELLED = "cancelled"


class RequestTrigger(str, Enum):
    """Operator- and client-invoked events."""
    APPROVE = "approve"
    REJECT = "reject"
    PROPOSE_ALTERNATIVE = "propose_alternative"
    ACCEPT_ALTERNATIVE = "accept_alternative"
    REJECT_ALTERNATIVE = "reject_alternative"
    CANCEL = "cancel"


TERMINAL_STATES = frozenset({
    RequestState.APPROVED,
    RequestState.REJECTED,
    RequestState.ACCEPTED_FROM_CHANGED,
    RequestState.REJECTED_FROM_CHANGED,
    RequestState.CANCELLED,
})

_STATE_BY_STATUS = {
    RequestStatus.PENDING: RequestState.PENDING,
    RequestStatus.CHANGED: RequestState.CHANGED,
    RequestStatus.APPROVED: RequestState.APPROVED,
    RequestStatus.REJECTED: RequestState.REJECTED,
}

_STATUS_BY_STATE = {
    RequestState.PENDING: RequestStatus.PENDING,
    RequestState.CHANGED: RequestStatus.CHANGED,
}


@dataclass(frozen=True)
class Transition:
    """A single valid state transition."""
    from_state: RequestState
    to_state: RequestState
    trigger: RequestTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: RequestState
    entered_at: datetime
    trigger: Optional[RequestTrigger] = None


TRANSITIONS: list[Transition] = [
    # --- Operator decisions on a fresh request ---
    Transition(RequestState.PENDING, RequestState.APPROVED, RequestTrigger.APPROVE),
    Transition(RequestState.PENDING, RequestState.REJECTED, RequestTrigger.REJECT),
    Transition(RequestState.PENDING, RequestState.CHANGED, RequestTrigger.PROPOSE_ALTERNATIVE),

    # --- Client withdraws before the operator answers ---
    Transition(RequestState.PENDING, RequestState.CANCELLED, RequestTrigger.CANCEL),

    # --- Counter-offer ---
    Transition(RequestState.CHANGED, RequestState.ACCEPTED_FROM_CHANGED,
               RequestTrigger.ACCEPT_ALTERNATIVE),
    Transition(RequestState.CHANGED, RequestState.REJECTED_FROM_CHANGED,
               RequestTrigger.REJECT_ALTERNATIVE),
    # Re-propose after the suggested slot was taken.
    Transition(RequestState.CHANGED, RequestState.CHANGED, RequestTrigger.PROPOSE_ALTERNATIVE),
    Transition(RequestState.CHANGED, RequestState.REJECTED, RequestTrigger.REJECT),
]


def expected_statuses(trigger: RequestTrigger) -> list[RequestStatus]:
    """Persisted statuses from which ``trigger`` may fire."""
    return [
        _STATUS_BY_STATE[t.from_state]
        for t in TRANSITIONS
        if t.trigger == trigger and t.from_state in _STATUS_BY_STATE
    ]


def persisted_status(state: RequestState) -> Optional[RequestStatus]:
    """Status stored for ``state``; None for terminal states, whose request is deleted."""
    return _STATUS_BY_STATE.get(state)


class RequestStateMachine:
    """
    Deterministic state machine for one booking request.

    Every transition must be in :data:`TRANSITIONS`; anything else is
    rejected with an error listing the triggers allowed from the current
    state.
    """

    def __init__(self, initial: RequestState = RequestState.PENDING) -> None:
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @classmethod
    def for_request(cls, request: AppointmentRequest) -> "RequestStateMachine":
        return cls(initial=_STATE_BY_STATUS[request.status])

    @property
    def current_state(self) -> RequestState:
        return self._current_state

    def transition(self, trigger: RequestTrigger) -> RequestState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Request transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[RequestTrigger]:
        return [t.trigger for t in TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
