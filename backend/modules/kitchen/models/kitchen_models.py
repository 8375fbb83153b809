# backend/modules/kitchen/models/kitchen_models.py

"""
Kitchen ticket model: one work order per confirmed pre-order.
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, Index, text

from core.database import Base
from core.mixins import TimestampMixin
from ..enums.kitchen_enums import KitchenTicketStatus


class KitchenTicket(Base, TimestampMixin):
    """Kitchen ticket derived from a reservation's pre-order"""

    __tablename__ = "kitchen_tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    restaurant_id = Column(String(64), nullable=False, index=True)
    reservation_id = Column(String(64), nullable=False, index=True)

    status = Column(
        Enum(KitchenTicketStatus, name="kitchen_ticket_status"),
        nullable=False,
        default=KitchenTicketStatus.PENDING,
        index=True,
    )

    # Pacing inputs
    estimated_prep_minutes = Column(Integer, nullable=False)
    prep_minutes_override = Column(Integer, nullable=True)
    reservation_start_at = Column(DateTime, nullable=False)
    party_size = Column(Integer, nullable=False, default=1)
    target_fire_time = Column(DateTime, nullable=False, index=True)

    # Set once each, by the matching transition only
    fired_at = Column(DateTime, nullable=True)
    ready_at = Column(DateTime, nullable=True)
    served_at = Column(DateTime, nullable=True)

    # Frozen copy of the ordered items taken at creation
    items_snapshot = Column(JSON, nullable=False, default=list)

    # Pacing status last pushed to displays
    last_broadcast_pacing_status = Column(String(16), nullable=True)

    # Optimistic lock, bumped by every status transition
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_kitchen_ticket_restaurant_status", "restaurant_id", "status"),
        Index(
            "uq_kitchen_ticket_active_reservation",
            "reservation_id",
            unique=True,
            postgresql_where=text("status != 'SERVED'"),
            sqlite_where=text("status != 'SERVED'"),
        ),
    )

    def __repr__(self):
        return (
            f"<KitchenTicket {self.id} reservation={self.reservation_id} "
            f"status={self.status.value if self.status else None}>"
        )
