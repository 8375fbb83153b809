from .kitchen_enums import (
    KitchenTicketStatus,
    PacingStatus,
    TicketAction,
    KitchenEventType,
    PRE_FIRE_STATUSES,
    ACTION_TARGET_STATUS,
)

__all__ = [
    "KitchenTicketStatus",
    "PacingStatus",
    "TicketAction",
    "KitchenEventType",
    "PRE_FIRE_STATUSES",
    "ACTION_TARGET_STATUS",
]
