# backend/modules/kitchen/schemas/kitchen_schemas.py

"""
Pydantic schemas for kitchen tickets, the HTTP API and the push channel.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ..enums.kitchen_enums import (
    KitchenEventType,
    KitchenTicketStatus,
    PacingStatus,
)
from ..utils.time_utils import to_naive_utc


# ========== Tickets ==========


class TicketItem(BaseModel):
    """One ordered item as captured on the ticket"""

    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(1, ge=1, le=100)
    prep_time_minutes: Optional[int] = Field(None, ge=0, le=240)
    modifiers: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=500)
    allergens: List[str] = Field(default_factory=list)


class ReservationRef(BaseModel):
    """The reservation a pre-order belongs to"""

    id: str = Field(..., min_length=1, max_length=64)
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    party_size: int = Field(1, ge=1, le=100)
    start_at: datetime

    @field_validator("start_at")
    @classmethod
    def normalise_start_at(cls, v):
        return to_naive_utc(v)


class PreOrderTicketCreate(BaseModel):
    """Request body for creating a ticket from a confirmed pre-order"""

    reservation: ReservationRef
    items: List[TicketItem] = Field(..., min_length=1)
    prep_minutes_override: Optional[int] = Field(None, ge=1, le=240)


class TicketTransitionRequest(BaseModel):
    """Optional body for an action request"""

    estimated_prep_minutes: Optional[int] = Field(
        None, ge=1, le=240, description="Prep time override, honoured on fire"
    )


class TicketStatusUpdate(BaseModel):
    """PATCH body: move a ticket to a target status"""

    status: KitchenTicketStatus
    estimated_prep_minutes: Optional[int] = Field(None, ge=1, le=240)


class KitchenTicketResponse(BaseModel):
    """A ticket plus its freshly evaluated pacing"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    reservation_id: str
    status: KitchenTicketStatus
    party_size: int
    reservation_start_at: datetime
    estimated_prep_minutes: int
    prep_minutes_override: Optional[int] = None
    target_fire_time: datetime
    fired_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    served_at: Optional[datetime] = None
    items_snapshot: List[TicketItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived, never stored
    pacing_status: PacingStatus
    minutes_until_fire: Optional[int] = None
    minutes_since_fired: Optional[int] = None
    estimated_ready_time: Optional[datetime] = None

    @classmethod
    def from_ticket(cls, ticket, evaluation) -> "KitchenTicketResponse":
        return cls(
            id=ticket.id,
            restaurant_id=ticket.restaurant_id,
            reservation_id=ticket.reservation_id,
            status=ticket.status,
            party_size=ticket.party_size,
            reservation_start_at=ticket.reservation_start_at,
            estimated_prep_minutes=ticket.estimated_prep_minutes,
            prep_minutes_override=ticket.prep_minutes_override,
            target_fire_time=evaluation.target_fire_time,
            fired_at=ticket.fired_at,
            ready_at=ticket.ready_at,
            served_at=ticket.served_at,
            items_snapshot=ticket.items_snapshot or [],
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            pacing_status=evaluation.pacing_status,
            minutes_until_fire=evaluation.minutes_until_fire,
            minutes_since_fired=evaluation.minutes_since_fired,
            estimated_ready_time=evaluation.estimated_ready_time,
        )


class KitchenSummaryResponse(BaseModel):
    """Kitchen dashboard summary for one restaurant"""

    restaurant_id: str
    ticket_counts: Dict[str, int]
    pacing_counts: Dict[str, int]
    average_prep_minutes: float
    active_tickets: int
    generated_at: datetime


class SweepResultResponse(BaseModel):
    """Outcome of one pacing sweep"""

    model_config = ConfigDict(from_attributes=True)

    restaurant_id: str
    evaluated: int
    changed: int
    failed: int


# ========== Push channel ==========


class KitchenEvent(BaseModel):
    """Server-to-display ticket event"""

    type: KitchenEventType
    ticket: KitchenTicketResponse
    timestamp: datetime
    sound: Optional[str] = None
    priority: Optional[Literal["high"]] = None


class SubscriptionFilters(BaseModel):
    """Optional narrowing of the events a display receives"""

    statuses: List[KitchenTicketStatus] = Field(default_factory=list)
    ticket_ids: List[str] = Field(default_factory=list)

    def matches(self, ticket: dict) -> bool:
        if self.ticket_ids and str(ticket.get("id")) not in self.ticket_ids:
            return False
        if self.statuses and ticket.get("status") not in {s.value for s in self.statuses}:
            return False
        return True


class PingMessage(BaseModel):
    type: Literal["ping"]


class SubscribeMessage(BaseModel):
    type: Literal["subscribe"]
    filters: SubscriptionFilters = Field(default_factory=SubscriptionFilters)


class UnsubscribeMessage(BaseModel):
    type: Literal["unsubscribe"]


class AckMessage(BaseModel):
    type: Literal["ack"]
    message_id: str


ClientMessage = Annotated[
    Union[PingMessage, SubscribeMessage, UnsubscribeMessage, AckMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)
