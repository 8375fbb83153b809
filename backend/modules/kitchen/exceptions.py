# backend/modules/kitchen/exceptions.py

from typing import Dict, Optional


class KitchenError(Exception):
    """Base exception for kitchen ticket errors"""

    status_code = 500
    default_error_code = "KITCHEN_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)


class DuplicateTicketError(KitchenError):
    """Raised when a reservation already has an active ticket"""

    status_code = 409
    default_error_code = "DUPLICATE_TICKET"

    def __init__(self, reservation_id: str, existing_ticket_id: Optional[str] = None):
        self.reservation_id = reservation_id
        self.existing_ticket_id = existing_ticket_id
        super().__init__(
            f"Reservation {reservation_id} already has an active kitchen ticket",
            details={
                "reservation_id": reservation_id,
                "existing_ticket_id": existing_ticket_id,
            },
        )


class TicketNotFoundError(KitchenError):
    """Raised when a ticket id is unknown"""

    status_code = 404
    default_error_code = "TICKET_NOT_FOUND"

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(
            f"Kitchen ticket {ticket_id} not found",
            details={"ticket_id": ticket_id},
        )


class InvalidTransitionError(KitchenError):
    """
    Raised for a status change that is not a legal edge.

    Carries the ticket's current status so a display can resync.
    """

    status_code = 409
    default_error_code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str,
                 ticket_id: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        self.ticket_id = ticket_id
        super().__init__(
            f"Cannot move ticket from {current_status} to {requested_status}",
            details={
                "ticket_id": ticket_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class TransitionConflictError(KitchenError):
    """Raised when a ticket keeps changing underneath a transition"""

    status_code = 409
    default_error_code = "TRANSITION_CONFLICT"

    def __init__(self, ticket_id: str, attempts: int):
        self.ticket_id = ticket_id
        self.attempts = attempts
        super().__init__(
            f"Kitchen ticket {ticket_id} was modified concurrently "
            f"{attempts} times; retry the request",
            details={"ticket_id": ticket_id, "attempts": attempts},
        )


class StoreUnavailableError(KitchenError):
    """Transient failure talking to the ticket store"""

    status_code = 503
    default_error_code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"Ticket store unavailable during {operation}",
            details={"operation": operation},
        )


class ChannelDeliveryFailure(KitchenError):
    """
    Delivery to one display session failed.

    Only ever logged by the notifier; it never reaches the request that
    triggered the event.
    """

    default_error_code = "CHANNEL_DELIVERY_FAILURE"

    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(
            f"Delivery to session {session_id} failed: {reason}",
            details={"session_id": session_id, "reason": reason},
        )
