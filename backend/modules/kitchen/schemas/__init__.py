from .kitchen_schemas import (
    KitchenEvent,
    KitchenSummaryResponse,
    KitchenTicketResponse,
    PreOrderTicketCreate,
    ReservationRef,
    SubscriptionFilters,
    SweepResultResponse,
    TicketItem,
    TicketStatusUpdate,
    TicketTransitionRequest,
)

__all__ = [
    "KitchenEvent",
    "KitchenSummaryResponse",
    "KitchenTicketResponse",
    "PreOrderTicketCreate",
    "ReservationRef",
    "SubscriptionFilters",
    "SweepResultResponse",
    "TicketItem",
    "TicketStatusUpdate",
    "TicketTransitionRequest",
]
