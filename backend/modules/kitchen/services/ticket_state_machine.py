# backend/modules/kitchen/services/ticket_state_machine.py

"""
Legal status transitions for kitchen tickets.

The machine never writes to the ticket it is given. ``apply`` returns the
field changes a transition implies and the orchestrator persists them, so an
illegal request leaves the ticket exactly as it was.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping

from ..enums.kitchen_enums import KitchenTicketStatus
from ..exceptions import InvalidTransitionError

TRANSITIONS: Mapping[KitchenTicketStatus, FrozenSet[KitchenTicketStatus]] = {
    KitchenTicketStatus.PENDING: frozenset(
        {KitchenTicketStatus.HOLD, KitchenTicketStatus.FIRED}
    ),
    KitchenTicketStatus.HOLD: frozenset({KitchenTicketStatus.FIRED}),
    KitchenTicketStatus.FIRED: frozenset({KitchenTicketStatus.READY}),
    KitchenTicketStatus.READY: frozenset({KitchenTicketStatus.SERVED}),
    KitchenTicketStatus.SERVED: frozenset(),
}

# Timestamp each status stamps on entry
ENTRY_TIMESTAMPS = {
    KitchenTicketStatus.FIRED: "fired_at",
    KitchenTicketStatus.READY: "ready_at",
    KitchenTicketStatus.SERVED: "served_at",
}


@dataclass(frozen=True)
class TicketTransition:
    """Outcome of applying a transition to a ticket"""

    from_status: KitchenTicketStatus
    to_status: KitchenTicketStatus
    changes: Dict[str, Any] = field(default_factory=dict)
    applied: bool = True


def can_transition(from_status, to_status) -> bool:
    """Check whether ``from_status -> to_status`` is a legal edge"""
    return KitchenTicketStatus(to_status) in TRANSITIONS[KitchenTicketStatus(from_status)]


def apply(ticket, to_status, now: datetime) -> TicketTransition:
    """
    Validate and compute a status transition.

    Re-firing an already fired ticket is a no-op (``applied=False``) so that
    duplicate client requests are harmless.

    Raises:
        InvalidTransitionError: if the edge is not legal
    """
    current = KitchenTicketStatus(ticket.status)
    target = KitchenTicketStatus(to_status)

    if current == KitchenTicketStatus.FIRED and target == KitchenTicketStatus.FIRED:
        return TicketTransition(from_status=current, to_status=target, applied=False)

    if not can_transition(current, target):
        raise InvalidTransitionError(
            current_status=current.value,
            requested_status=target.value,
            ticket_id=getattr(ticket, "id", None),
        )

    changes: Dict[str, Any] = {"status": target}
    timestamp_field = ENTRY_TIMESTAMPS.get(target)
    if timestamp_field and getattr(ticket, timestamp_field, None) is None:
        changes[timestamp_field] = now

    return TicketTransition(from_status=current, to_status=target, changes=changes)
