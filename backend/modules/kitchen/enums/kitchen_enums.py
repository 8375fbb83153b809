from enum import Enum


class KitchenTicketStatus(str, Enum):
    PENDING = "PENDING"
    HOLD = "HOLD"
    FIRED = "FIRED"
    READY = "READY"
    SERVED = "SERVED"


class PacingStatus(str, Enum):
    ON_TIME = "on_time"
    WARNING = "warning"
    LATE = "late"
    READY = "ready"


class TicketAction(str, Enum):
    FIRE = "fire"
    HOLD = "hold"
    READY = "ready"
    SERVED = "served"


class KitchenEventType(str, Enum):
    NEW_TICKET = "new_ticket"
    TICKET_UPDATED = "ticket_updated"
    TICKET_READY = "ticket_ready"


PRE_FIRE_STATUSES = (KitchenTicketStatus.PENDING, KitchenTicketStatus.HOLD)

ACTION_TARGET_STATUS = {
    TicketAction.FIRE: KitchenTicketStatus.FIRED,
    TicketAction.HOLD: KitchenTicketStatus.HOLD,
    TicketAction.READY: KitchenTicketStatus.READY,
    TicketAction.SERVED: KitchenTicketStatus.SERVED,
}
