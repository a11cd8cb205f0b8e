"""
Ticket status lifecycle.

Work moves forward along new -> acknowledged -> scheduled -> in_progress
-> completed and may skip steps. Any non-terminal ticket can be put on
hold or cancelled. A ticket on hold resumes into active work. Completed
and cancelled are terminal.

Usage:
    validate_transition(ticket.status, TicketStatus.ACKNOWLEDGED)
    assert not is_terminal(TicketStatus.ACKNOWLEDGED)
"""

from dataclasses import dataclass

from servicedesk.errors import InvalidStatusTransitionError
from servicedesk.schemas.ticket import TicketStatus

TERMINAL_STATES = frozenset({TicketStatus.COMPLETED, TicketStatus.CANCELLED})


@dataclass(frozen=True)
class Transition:
    """A single valid status change."""
    from_state: TicketStatus
    to_state: TicketStatus


def _forward(order: list[TicketStatus]) -> list[Transition]:
    return [
        Transition(order[i], later)
        for i in range(len(order))
        for later in order[i + 1:]
    ]


_WORKFLOW = [
    TicketStatus.NEW,
    TicketStatus.ACKNOWLEDGED,
    TicketStatus.SCHEDULED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.COMPLETED,
]

TRANSITIONS: list[Transition] = [
    # --- Forward progress, skips allowed ---
    *_forward(_WORKFLOW),

    # --- Hold and cancel from any open state ---
    *[Transition(s, TicketStatus.ON_HOLD) for s in _WORKFLOW[:-1]],
    *[Transition(s, TicketStatus.CANCELLED) for s in _WORKFLOW[:-1]],
    Transition(TicketStatus.ON_HOLD, TicketStatus.CANCELLED),

    # --- Resume from hold ---
    Transition(TicketStatus.ON_HOLD, TicketStatus.ACKNOWLEDGED),
    Transition(TicketStatus.ON_HOLD, TicketStatus.SCHEDULED),
    Transition(TicketStatus.ON_HOLD, TicketStatus.IN_PROGRESS),
]


def can_transition(from_state: TicketStatus, to_state: TicketStatus) -> bool:
    return any(t.from_state == from_state and t.to_state == to_state for t in TRANSITIONS)


def valid_targets(from_state: TicketStatus) -> list[TicketStatus]:
    return [t.to_state for t in TRANSITIONS if t.from_state == from_state]


def validate_transition(from_state: TicketStatus, to_state: TicketStatus) -> None:
    """
    Check a status change against the transition table.

    Raises:
        InvalidStatusTransitionError: If the change is not allowed.
    """
    if can_transition(from_state, to_state):
        return
    allowed = [s.value for s in valid_targets(from_state)]
    raise InvalidStatusTransitionError(
        f"Cannot move ticket from '{from_state.value}' to '{to_state.value}'. "
        f"Allowed: {allowed}"
    )


def is_terminal(status: TicketStatus) -> bool:
    return status in TERMINAL_STATES
