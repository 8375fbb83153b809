# backend/modules/kitchen/services/ticket_store.py

"""
Relational ticket store.

Thin persistence layer over the ``kitchen_tickets`` table. Status writes go
through a version-checked update so that two writers racing on the same
ticket cannot both win; everything else is last-write-wins.
"""

from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..enums.kitchen_enums import KitchenTicketStatus
from ..exceptions import DuplicateTicketError, StoreUnavailableError
from ..models.kitchen_models import KitchenTicket

logger = logging.getLogger(__name__)


def store_operation(name: str):
    """Roll back and translate transient database failures"""

    def decorator(method):
        @wraps(method)
        def wrapper(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except IntegrityError:
                self.db.rollback()
                raise
            except (OperationalError, DBAPIError) as e:
                self.db.rollback()
                logger.warning(f"Ticket store {name} failed: {str(e)}")
                raise StoreUnavailableError(name, cause=e) from e

        return wrapper

    return decorator


class TicketStore:
    """SQLAlchemy-backed store for kitchen tickets"""

    def __init__(self, db: Session):
        self.db = db

    @store_operation("create")
    def create(self, ticket: KitchenTicket) -> KitchenTicket:
        """Insert a new ticket"""
        self.db.add(ticket)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateTicketError(ticket.reservation_id)
        self.db.refresh(ticket)
        return ticket

    @store_operation("get")
    def get(self, ticket_id: str) -> Optional[KitchenTicket]:
        return self.db.get(KitchenTicket, ticket_id, populate_existing=True)

    @store_operation("get_active_for_reservation")
    def get_active_for_reservation(self, reservation_id: str) -> Optional[KitchenTicket]:
        stmt = select(KitchenTicket).where(
            KitchenTicket.reservation_id == reservation_id,
            KitchenTicket.status != KitchenTicketStatus.SERVED,
        )
        return self.db.execute(stmt).scalars().first()

    @store_operation("list_active_by_restaurant")
    def list_active_by_restaurant(
        self,
        restaurant_id: str,
        status: Optional[KitchenTicketStatus] = None,
    ) -> List[KitchenTicket]:
        """Non-served tickets for a restaurant, soonest fire time first"""
        stmt = select(KitchenTicket).where(
            KitchenTicket.restaurant_id == restaurant_id,
            KitchenTicket.status != KitchenTicketStatus.SERVED,
        )
        if status is not None:
            stmt = stmt.where(KitchenTicket.status == KitchenTicketStatus(status))

        stmt = stmt.order_by(KitchenTicket.target_fire_time, KitchenTicket.created_at)
        return list(
            self.db.execute(stmt.execution_options(populate_existing=True)).scalars()
        )

    @store_operation("update")
    def update(
        self, ticket_id: str, patch: Dict[str, Any], expected_version: int
    ) -> Optional[KitchenTicket]:
        """
        Apply ``patch`` if the ticket is still at ``expected_version``.

        Returns:
            The refreshed ticket, or None when another writer got there first
        """
        stmt = (
            update(KitchenTicket)
            .where(
                KitchenTicket.id == ticket_id,
                KitchenTicket.version == expected_version,
            )
            .values(**patch, version=KitchenTicket.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()

        if result.rowcount == 0:
            logger.info(
                f"Version conflict updating ticket {ticket_id} "
                f"(expected version {expected_version})"
            )
            return None

        return self.db.get(KitchenTicket, ticket_id, populate_existing=True)

    @store_operation("mark_broadcast")
    def mark_broadcast(self, ticket_id: str, pacing_status: str) -> None:
        """Record the pacing status last pushed to displays"""
        stmt = (
            update(KitchenTicket)
            .where(KitchenTicket.id == ticket_id)
            .values(last_broadcast_pacing_status=pacing_status)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()

    @store_operation("status_counts")
    def status_counts(self, restaurant_id: str, since: datetime) -> Dict[str, int]:
        """Tickets created since ``since`` grouped by status"""
        stmt = (
            select(KitchenTicket.status, func.count(KitchenTicket.id))
            .where(
                KitchenTicket.restaurant_id == restaurant_id,
                KitchenTicket.created_at >= since,
            )
            .group_by(KitchenTicket.status)
        )
        counts = {status.value: 0 for status in KitchenTicketStatus}
        for status, count in self.db.execute(stmt).all():
            counts[KitchenTicketStatus(status).value] = count
        return counts

    @store_operation("list_served_since")
    def list_served_since(self, restaurant_id: str, since: datetime) -> List[KitchenTicket]:
        """Served tickets created since ``since`` that have full cook timings"""
        stmt = select(KitchenTicket).where(
            KitchenTicket.restaurant_id == restaurant_id,
            KitchenTicket.status == KitchenTicketStatus.SERVED,
            KitchenTicket.created_at >= since,
            KitchenTicket.fired_at.isnot(None),
            KitchenTicket.ready_at.isnot(None),
        )
        return list(self.db.execute(stmt).scalars())
