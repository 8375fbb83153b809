# backend/modules/kitchen/services/ticket_orchestrator.py

"""
Ticket orchestration.

Creates tickets from confirmed pre-orders, drives status transitions through
the state machine, recomputes pacing on demand and publishes the resulting
events to the kitchen notifier.
"""

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..config.kitchen_config import KitchenConfig, get_kitchen_config
from ..enums.kitchen_enums import (
    ACTION_TARGET_STATUS,
    PRE_FIRE_STATUSES,
    KitchenEventType,
    KitchenTicketStatus,
    PacingStatus,
    TicketAction,
)
from ..exceptions import (
    DuplicateTicketError,
    InvalidTransitionError,
    KitchenError,
    TicketNotFoundError,
    TransitionConflictError,
)
from ..models.kitchen_models import KitchenTicket
from ..schemas.kitchen_schemas import (
    KitchenEvent,
    KitchenSummaryResponse,
    KitchenTicketResponse,
    ReservationRef,
    TicketItem,
)
from ..utils.store_retry import retry_on_store_unavailable
from ..utils.time_utils import utcnow
from . import pacing_calculator, ticket_state_machine
from .kitchen_notifier import kitchen_notifier
from .pacing_calculator import PacingEvaluation
from .ticket_store import TicketStore

logger = logging.getLogger(__name__)

READY_ALERT_SOUND = "ready_alert"


@dataclass(frozen=True)
class OrchestratorConfig:
    ready_buffer_minutes: int = pacing_calculator.DEFAULT_READY_BUFFER_MINUTES
    default_prep_minutes: int = pacing_calculator.DEFAULT_PREP_MINUTES
    transition_max_attempts: int = 3
    store_retry_attempts: int = 3
    store_retry_initial_delay: float = 0.1
    store_retry_max_delay: float = 2.0

    @classmethod
    def from_settings(cls, settings: KitchenConfig) -> "OrchestratorConfig":
        return cls(
            ready_buffer_minutes=settings.READY_BUFFER_MINUTES,
            default_prep_minutes=settings.DEFAULT_PREP_MINUTES,
            transition_max_attempts=settings.TRANSITION_MAX_ATTEMPTS,
            store_retry_attempts=settings.STORE_RETRY_ATTEMPTS,
            store_retry_initial_delay=settings.STORE_RETRY_INITIAL_DELAY,
            store_retry_max_delay=settings.STORE_RETRY_MAX_DELAY,
        )


@dataclass(frozen=True)
class TicketView:
    """A ticket together with its pacing at one instant"""

    ticket: KitchenTicket
    evaluation: PacingEvaluation

    def to_response(self) -> KitchenTicketResponse:
        return KitchenTicketResponse.from_ticket(self.ticket, self.evaluation)


@dataclass
class SweepResult:
    restaurant_id: str
    evaluated: int = 0
    changed: int = 0
    failed: int = 0


class TicketOrchestrator:
    """Service coordinating the ticket store, pacing and notifications"""

    def __init__(
        self,
        store: TicketStore,
        notifier,
        config: Optional[OrchestratorConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or OrchestratorConfig()
        self.clock = clock

    # ========== Creation ==========

    def create_ticket_for_pre_order(
        self,
        reservation: Any,
        items: Iterable[Any],
        prep_minutes_override: Optional[int] = None,
    ) -> TicketView:
        """
        Create a PENDING ticket for a reservation's confirmed pre-order.

        Raises:
            DuplicateTicketError: if the reservation already has an active ticket
        """
        reservation = ReservationRef.model_validate(reservation)
        snapshot = [TicketItem.model_validate(item).model_dump() for item in items]

        existing = self.store.get_active_for_reservation(reservation.id)
        if existing is not None:
            raise DuplicateTicketError(reservation.id, existing_ticket_id=existing.id)

        prep_minutes = pacing_calculator.derive_estimated_prep_minutes(
            snapshot,
            default_minutes=self.config.default_prep_minutes,
            override=prep_minutes_override,
        )
        now = self.clock()
        evaluation = pacing_calculator.evaluate(
            now=now,
            reservation_start_time=reservation.start_at,
            estimated_prep_minutes=prep_minutes,
            status=KitchenTicketStatus.PENDING,
            ready_buffer_minutes=self.config.ready_buffer_minutes,
        )

        ticket = KitchenTicket(
            restaurant_id=reservation.restaurant_id,
            reservation_id=reservation.id,
            status=KitchenTicketStatus.PENDING,
            estimated_prep_minutes=prep_minutes,
            prep_minutes_override=prep_minutes_override,
            reservation_start_at=reservation.start_at,
            party_size=reservation.party_size,
            target_fire_time=evaluation.target_fire_time,
            items_snapshot=snapshot,
            last_broadcast_pacing_status=evaluation.pacing_status.value,
            created_at=now,
            updated_at=now,
        )
        ticket = self.store.create(ticket)

        logger.info(
            f"Created kitchen ticket {ticket.id} for reservation {reservation.id} "
            f"(restaurant {reservation.restaurant_id}, prep {prep_minutes}m, "
            f"fire at {ticket.target_fire_time.isoformat()})"
        )

        view = TicketView(ticket=ticket, evaluation=evaluation)
        self._publish(KitchenEventType.NEW_TICKET, view, now)
        return view

    # ========== Transitions ==========

    def request_transition(
        self,
        ticket_id: str,
        action,
        prep_minutes_override: Optional[int] = None,
    ) -> TicketView:
        """
        Apply a kitchen action to a ticket.

        A concurrent writer causes a reload and re-apply, so two simultaneous
        fire requests both succeed and the second is a no-op.

        Raises:
            TicketNotFoundError: unknown ticket
            InvalidTransitionError: the action is not legal from the current status
            TransitionConflictError: the ticket kept changing on every attempt
        """
        action = TicketAction(action)
        target = ACTION_TARGET_STATUS[action]

        for attempt in range(1, self.config.transition_max_attempts + 1):
            ticket = self._load(ticket_id)
            now = self.clock()

            transition = ticket_state_machine.apply(ticket, target, now)
            if not transition.applied:
                logger.info(
                    f"Ticket {ticket_id} already {ticket.status.value}; "
                    f"{action.value} ignored"
                )
                return self._view(ticket, now)

            changes = dict(transition.changes)
            if (
                action == TicketAction.FIRE
                and prep_minutes_override is not None
                and ticket.status in PRE_FIRE_STATUSES
            ):
                changes.update(self._prep_override_changes(ticket, prep_minutes_override))

            updated = self.store.update(ticket.id, changes, expected_version=ticket.version)
            if updated is None:
                logger.info(
                    f"Ticket {ticket_id} changed during {action.value} "
                    f"(attempt {attempt}/{self.config.transition_max_attempts})"
                )
                continue

            logger.info(
                f"Ticket {ticket_id} moved {transition.from_status.value} -> "
                f"{transition.to_status.value}"
            )

            view = self._view(updated, now)
            self._record_broadcast(view)
            event_type = (
                KitchenEventType.TICKET_READY
                if target == KitchenTicketStatus.READY
                else KitchenEventType.TICKET_UPDATED
            )
            self._publish(event_type, view, now)
            return view

        raise TransitionConflictError(ticket_id, self.config.transition_max_attempts)

    def update_status(
        self,
        ticket_id: str,
        status,
        prep_minutes_override: Optional[int] = None,
    ) -> TicketView:
        """Move a ticket to ``status`` via the equivalent action"""
        status = KitchenTicketStatus(status)
        action = next(
            (a for a, target in ACTION_TARGET_STATUS.items() if target == status),
            None,
        )
        if action is None:
            ticket = self._load(ticket_id)
            raise InvalidTransitionError(
                current_status=ticket.status.value,
                requested_status=status.value,
                ticket_id=ticket_id,
            )
        return self.request_transition(ticket_id, action, prep_minutes_override)

    # ========== Pacing ==========

    async def recompute_pacing_sweep(
        self, restaurant_id: str, executor: Optional[Executor] = None
    ) -> SweepResult:
        """
        Re-evaluate every active ticket of a restaurant and publish the ones
        whose pacing status moved since the last broadcast.

        Store calls run on ``executor`` (the loop's default pool when None) so
        a slow database never blocks the event loop, and a cancelled sweep
        stops between tickets. Loading retries transient store failures with
        backoff. A failure on a single ticket is logged and counted without
        stopping the sweep.
        """
        loop = asyncio.get_running_loop()

        async def run_blocking(func, *args):
            return await loop.run_in_executor(executor, partial(func, *args))

        tickets = await retry_on_store_unavailable(
            run_blocking,
            self.store.list_active_by_restaurant,
            restaurant_id,
            max_retries=self.config.store_retry_attempts,
            initial_delay=self.config.store_retry_initial_delay,
            max_delay=self.config.store_retry_max_delay,
        )

        now = self.clock()
        result = SweepResult(restaurant_id=restaurant_id)

        # Ids read before any commit expires the loaded rows
        for ticket_id, ticket in [(ticket.id, ticket) for ticket in tickets]:
            result.evaluated += 1
            try:
                response = await run_blocking(self._sweep_ticket, ticket, now)
            except Exception as e:
                result.failed += 1
                logger.error(f"Pacing sweep failed for ticket {ticket_id}: {str(e)}")
                continue

            if response is not None:
                self._publish_response(KitchenEventType.TICKET_UPDATED, response, now)
                result.changed += 1

        if result.changed or result.failed:
            logger.info(
                f"Pacing sweep for restaurant {restaurant_id}: "
                f"{result.evaluated} evaluated, {result.changed} changed, "
                f"{result.failed} failed"
            )
        return result

    # ========== Queries ==========

    def list_active(self, restaurant_id: str, status=None) -> List[TicketView]:
        """Active tickets with pacing evaluated now"""
        if status is not None:
            status = KitchenTicketStatus(status)
        now = self.clock()
        return [
            self._view(ticket, now)
            for ticket in self.store.list_active_by_restaurant(restaurant_id, status)
        ]

    def get_ticket(self, ticket_id: str) -> TicketView:
        return self._view(self._load(ticket_id), self.clock())

    def get_dashboard_summary(self, restaurant_id: str) -> KitchenSummaryResponse:
        """Today's ticket counts, average cook time and live pacing breakdown"""
        now = self.clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        ticket_counts = self.store.status_counts(restaurant_id, start_of_day)

        cook_minutes = [
            (ticket.ready_at - ticket.fired_at).total_seconds() / 60
            for ticket in self.store.list_served_since(restaurant_id, start_of_day)
        ]
        average_prep = round(sum(cook_minutes) / len(cook_minutes), 1) if cook_minutes else 0.0

        pacing_counts: Dict[str, int] = {status.value: 0 for status in PacingStatus}
        active_tickets = 0
        for view in self.list_active(restaurant_id):
            pacing_counts[view.evaluation.pacing_status.value] += 1
            if view.ticket.status in (KitchenTicketStatus.FIRED, KitchenTicketStatus.READY):
                active_tickets += 1

        return KitchenSummaryResponse(
            restaurant_id=restaurant_id,
            ticket_counts=ticket_counts,
            pacing_counts=pacing_counts,
            average_prep_minutes=average_prep,
            active_tickets=active_tickets,
            generated_at=now,
        )

    # ========== Helpers ==========

    def _load(self, ticket_id: str) -> KitchenTicket:
        ticket = self.store.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def _view(self, ticket: KitchenTicket, now: datetime) -> TicketView:
        evaluation = pacing_calculator.evaluate_ticket(
            ticket, now, ready_buffer_minutes=self.config.ready_buffer_minutes
        )
        return TicketView(ticket=ticket, evaluation=evaluation)

    def _prep_override_changes(self, ticket: KitchenTicket, minutes: int) -> Dict[str, Any]:
        return {
            "estimated_prep_minutes": minutes,
            "prep_minutes_override": minutes,
            "target_fire_time": pacing_calculator.calculate_target_fire_time(
                ticket.reservation_start_at, minutes, self.config.ready_buffer_minutes
            ),
        }

    def _record_broadcast(self, view: TicketView) -> None:
        pacing_status = view.evaluation.pacing_status.value
        if pacing_status == view.ticket.last_broadcast_pacing_status:
            return
        try:
            self.store.mark_broadcast(view.ticket.id, pacing_status)
        except KitchenError as e:
            # The next sweep will broadcast again
            logger.warning(f"Could not record broadcast for ticket {view.ticket.id}: {e.message}")

    def _sweep_ticket(
        self, ticket: KitchenTicket, now: datetime
    ) -> Optional[KitchenTicketResponse]:
        """Evaluate one ticket and record the broadcast if its pacing moved"""
        view = self._view(ticket, now)
        pacing_status = view.evaluation.pacing_status.value
        if pacing_status == ticket.last_broadcast_pacing_status:
            return None

        response = view.to_response()
        self.store.mark_broadcast(ticket.id, pacing_status)
        return response

    def _publish(self, event_type: KitchenEventType, view: TicketView, now: datetime) -> None:
        self._publish_response(event_type, view.to_response(), now)

    def _publish_response(
        self, event_type: KitchenEventType, response: KitchenTicketResponse, now: datetime
    ) -> None:
        alert = {}
        if event_type == KitchenEventType.TICKET_READY:
            alert = {"sound": READY_ALERT_SOUND, "priority": "high"}
        event = KitchenEvent(type=event_type, ticket=response, timestamp=now, **alert)

        try:
            self.notifier.publish(response.restaurant_id, event.model_dump(mode="json"))
        except Exception as e:
            logger.error(
                f"Failed to publish {event_type.value} for ticket {response.id}: {str(e)}"
            )


def create_ticket_orchestrator(
    db: Session,
    notifier=None,
    settings: Optional[KitchenConfig] = None,
) -> TicketOrchestrator:
    """Wire an orchestrator to a database session and the shared notifier"""
    return TicketOrchestrator(
        store=TicketStore(db),
        notifier=notifier or kitchen_notifier,
        config=OrchestratorConfig.from_settings(settings or get_kitchen_config()),
    )
