# backend/modules/kitchen/services/pacing_calculator.py

"""
Pacing calculation for kitchen tickets.

Everything here is a pure function of its arguments: the caller supplies
``now``, so the same inputs always produce the same evaluation and nothing
needs the wall clock to be mocked in tests.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional

from ..enums.kitchen_enums import KitchenTicketStatus, PacingStatus

DEFAULT_READY_BUFFER_MINUTES = 5
DEFAULT_PREP_MINUTES = 15

# Minutes before the fire time at which a waiting ticket turns amber
FIRE_WARNING_MINUTES = 2
# Fraction of the prep time after which a cooking ticket turns amber
COOK_WARNING_RATIO = 0.8


@dataclass(frozen=True)
class PacingEvaluation:
    """Derived pacing state of one ticket at one instant"""

    target_fire_time: datetime
    pacing_status: PacingStatus
    minutes_until_fire: Optional[int] = None
    minutes_since_fired: Optional[int] = None
    estimated_ready_time: Optional[datetime] = None


def _whole_minutes(delta: timedelta) -> int:
    return math.floor(delta.total_seconds() / 60)


def calculate_target_fire_time(
    reservation_start_time: datetime,
    estimated_prep_minutes: int,
    ready_buffer_minutes: int = DEFAULT_READY_BUFFER_MINUTES,
) -> datetime:
    """Instant cooking should begin so food is ready just after seating"""
    return reservation_start_time - timedelta(
        minutes=estimated_prep_minutes - ready_buffer_minutes
    )


def derive_estimated_prep_minutes(
    items: Iterable[Any],
    default_minutes: int = DEFAULT_PREP_MINUTES,
    override: Optional[int] = None,
) -> int:
    """
    Effective prep time for a ticket.

    Items cook in parallel, so the slowest item sets the pace rather than the
    sum. Items without a prep time count as ``default_minutes``. An explicit
    override wins over the derived value.
    """
    if override is not None:
        return override

    prep_times = []
    for item in items:
        if isinstance(item, Mapping):
            prep = item.get("prep_time_minutes")
        else:
            prep = getattr(item, "prep_time_minutes", None)
        prep_times.append(prep if prep is not None else default_minutes)

    return max(prep_times) if prep_times else default_minutes


def evaluate(
    now: datetime,
    reservation_start_time: datetime,
    estimated_prep_minutes: int,
    status: KitchenTicketStatus,
    fired_at: Optional[datetime] = None,
    ready_at: Optional[datetime] = None,
    ready_buffer_minutes: int = DEFAULT_READY_BUFFER_MINUTES,
) -> PacingEvaluation:
    """
    Evaluate the pacing of a ticket at ``now``.

    Args:
        now: Evaluation instant (naive UTC)
        reservation_start_time: When the guest is seated
        estimated_prep_minutes: Effective prep time of the ticket
        status: Current ticket status
        fired_at: When cooking started, for fired tickets
        ready_at: When the ticket was marked ready, if it was
        ready_buffer_minutes: Minutes after seating food should be ready

    Returns:
        PacingEvaluation with the target fire time, the minutes remaining or
        elapsed, and the pacing status
    """
    status = KitchenTicketStatus(status)
    prep = timedelta(minutes=estimated_prep_minutes)
    target_fire_time = calculate_target_fire_time(
        reservation_start_time, estimated_prep_minutes, ready_buffer_minutes
    )

    if status in (KitchenTicketStatus.READY, KitchenTicketStatus.SERVED):
        return PacingEvaluation(
            target_fire_time=target_fire_time,
            pacing_status=PacingStatus.READY,
            estimated_ready_time=ready_at,
        )

    if status == KitchenTicketStatus.FIRED:
        if fired_at is None:
            return PacingEvaluation(
                target_fire_time=target_fire_time,
                pacing_status=PacingStatus.ON_TIME,
            )

        minutes_since_fired = _whole_minutes(now - fired_at)
        if minutes_since_fired > estimated_prep_minutes:
            pacing_status = PacingStatus.LATE
        elif minutes_since_fired > estimated_prep_minutes * COOK_WARNING_RATIO:
            pacing_status = PacingStatus.WARNING
        else:
            pacing_status = PacingStatus.ON_TIME

        return PacingEvaluation(
            target_fire_time=target_fire_time,
            pacing_status=pacing_status,
            minutes_since_fired=minutes_since_fired,
            estimated_ready_time=fired_at + prep,
        )

    # PENDING / HOLD
    minutes_until_fire = _whole_minutes(target_fire_time - now)
    if minutes_until_fire < 0:
        pacing_status = PacingStatus.LATE
    elif minutes_until_fire <= FIRE_WARNING_MINUTES:
        pacing_status = PacingStatus.WARNING
    else:
        pacing_status = PacingStatus.ON_TIME

    return PacingEvaluation(
        target_fire_time=target_fire_time,
        pacing_status=pacing_status,
        minutes_until_fire=minutes_until_fire,
        estimated_ready_time=target_fire_time + prep,
    )


def evaluate_ticket(
    ticket, now: datetime, ready_buffer_minutes: int = DEFAULT_READY_BUFFER_MINUTES
) -> PacingEvaluation:
    """Evaluate a persisted ticket"""
    return evaluate(
        now=now,
        reservation_start_time=ticket.reservation_start_at,
        estimated_prep_minutes=ticket.estimated_prep_minutes,
        status=ticket.status,
        fired_at=ticket.fired_at,
        ready_at=ticket.ready_at,
        ready_buffer_minutes=ready_buffer_minutes,
    )
