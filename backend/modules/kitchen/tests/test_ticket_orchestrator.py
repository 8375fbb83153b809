# backend/modules/kitchen/tests/test_ticket_orchestrator.py

"""
Tests for ticket orchestration against a real SQLite store
"""

import threading
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from unittest.mock import Mock

from modules.kitchen.enums.kitchen_enums import KitchenTicketStatus, PacingStatus, TicketAction
from modules.kitchen.exceptions import (
    DuplicateTicketError,
    InvalidTransitionError,
    StoreUnavailableError,
    TicketNotFoundError,
    TransitionConflictError,
)
from modules.kitchen.services.ticket_orchestrator import OrchestratorConfig, TicketOrchestrator

SEATING_TIME = datetime(2026, 10, 19, 19, 0, 0)


def published_events(notifier):
    return [c.args[1] for c in notifier.publish.call_args_list]


class TestCreateTicket:
    def test_creates_pending_ticket_with_slowest_prep(self, orchestrator, notifier, reservation, items):
        view = orchestrator.create_ticket_for_pre_order(reservation, items)
        ticket = view.ticket

        assert ticket.status == KitchenTicketStatus.PENDING
        assert ticket.estimated_prep_minutes == 15
        assert ticket.target_fire_time == SEATING_TIME - timedelta(minutes=10)
        assert ticket.party_size == 4
        assert [i["name"] for i in ticket.items_snapshot] == ["Salmon", "Soup"]
        assert ticket.items_snapshot[1]["notes"] == "No cream"
        assert ticket.last_broadcast_pacing_status == PacingStatus.ON_TIME.value

    def test_publishes_new_ticket(self, orchestrator, notifier, reservation, items):
        view = orchestrator.create_ticket_for_pre_order(reservation, items)

        notifier.publish.assert_called_once()
        restaurant_id, event = notifier.publish.call_args.args
        assert restaurant_id == "rest-1"
        assert event["type"] == "new_ticket"
        assert event["ticket"]["id"] == view.ticket.id
        assert event["ticket"]["pacing_status"] == "on_time"
        assert event["ticket"]["minutes_until_fire"] == 30

    def test_override_wins_over_items(self, orchestrator, reservation, items):
        view = orchestrator.create_ticket_for_pre_order(reservation, items, prep_minutes_override=25)

        assert view.ticket.estimated_prep_minutes == 25
        assert view.ticket.prep_minutes_override == 25
        assert view.ticket.target_fire_time == SEATING_TIME - timedelta(minutes=20)

    def test_duplicate_reservation_rejected(self, orchestrator, notifier, reservation, items):
        first = orchestrator.create_ticket_for_pre_order(reservation, items)

        with pytest.raises(DuplicateTicketError) as exc_info:
            orchestrator.create_ticket_for_pre_order(reservation, items)

        assert exc_info.value.existing_ticket_id == first.ticket.id
        assert notifier.publish.call_count == 1

    def test_new_ticket_allowed_once_previous_served(self, orchestrator, reservation, items):
        first = orchestrator.create_ticket_for_pre_order(reservation, items)
        for action in ("fire", "ready", "served"):
            orchestrator.request_transition(first.ticket.id, action)

        second = orchestrator.create_ticket_for_pre_order(reservation, items)
        assert second.ticket.id != first.ticket.id

    def test_aware_start_time_normalised(self, orchestrator, reservation, items):
        from datetime import timezone

        reservation["start_at"] = SEATING_TIME.replace(tzinfo=timezone.utc)
        view = orchestrator.create_ticket_for_pre_order(reservation, items)

        assert view.ticket.reservation_start_at == SEATING_TIME


class TestTransitions:
    def test_fire_sets_fired_at(self, orchestrator, ticket_factory, clock):
        ticket = ticket_factory()

        view = orchestrator.request_transition(ticket.id, TicketAction.FIRE)

        assert view.ticket.status == KitchenTicketStatus.FIRED
        assert view.ticket.fired_at == clock.now
        assert view.evaluation.minutes_since_fired == 0

    def test_refire_is_idempotent(self, orchestrator, notifier, ticket_factory, clock):
        ticket = ticket_factory()
        first = orchestrator.request_transition(ticket.id, "fire")
        fired_at = first.ticket.fired_at
        notifier.publish.reset_mock()

        clock.advance(minutes=3)
        second = orchestrator.request_transition(ticket.id, "fire")

        assert second.ticket.status == KitchenTicketStatus.FIRED
        assert second.ticket.fired_at == fired_at
        assert second.evaluation.minutes_since_fired == 3
        notifier.publish.assert_not_called()

    def test_served_from_pending_is_invalid(self, orchestrator, store, notifier, ticket_factory):
        ticket = ticket_factory()
        notifier.publish.reset_mock()

        with pytest.raises(InvalidTransitionError) as exc_info:
            orchestrator.request_transition(ticket.id, "served")

        assert exc_info.value.current_status == "PENDING"
        reloaded = store.get(ticket.id)
        assert reloaded.status == KitchenTicketStatus.PENDING
        assert reloaded.served_at is None
        assert reloaded.version == 1
        notifier.publish.assert_not_called()

    def test_ready_publishes_alert(self, orchestrator, notifier, ticket_factory):
        ticket = ticket_factory()
        orchestrator.request_transition(ticket.id, "fire")
        notifier.publish.reset_mock()

        view = orchestrator.request_transition(ticket.id, "ready")

        event = notifier.publish.call_args.args[1]
        assert view.ticket.ready_at is not None
        assert event["type"] == "ticket_ready"
        assert event["sound"] == "ready_alert"
        assert event["priority"] == "high"
        assert event["ticket"]["pacing_status"] == "ready"

    def test_hold_then_fire(self, orchestrator, notifier, ticket_factory):
        ticket = ticket_factory()

        held = orchestrator.request_transition(ticket.id, "hold")
        assert held.ticket.status == KitchenTicketStatus.HOLD
        assert held.ticket.fired_at is None

        fired = orchestrator.request_transition(ticket.id, "fire")
        assert fired.ticket.status == KitchenTicketStatus.FIRED
        assert [e["type"] for e in published_events(notifier)] == [
            "new_ticket", "ticket_updated", "ticket_updated",
        ]

    def test_fire_with_prep_override_recomputes_target(self, orchestrator, ticket_factory):
        ticket = ticket_factory()

        view = orchestrator.request_transition(ticket.id, "fire", prep_minutes_override=30)

        assert view.ticket.estimated_prep_minutes == 30
        assert view.ticket.prep_minutes_override == 30
        assert view.ticket.target_fire_time == SEATING_TIME - timedelta(minutes=25)

    def test_unknown_ticket(self, orchestrator):
        with pytest.raises(TicketNotFoundError):
            orchestrator.request_transition("missing", "fire")

    def test_update_status_maps_to_action(self, orchestrator, ticket_factory):
        ticket = ticket_factory()

        view = orchestrator.update_status(ticket.id, "FIRED")

        assert view.ticket.status == KitchenTicketStatus.FIRED

    def test_update_status_to_pending_is_invalid(self, orchestrator, ticket_factory):
        ticket = ticket_factory()
        orchestrator.request_transition(ticket.id, "hold")

        with pytest.raises(InvalidTransitionError) as exc_info:
            orchestrator.update_status(ticket.id, KitchenTicketStatus.PENDING)

        assert exc_info.value.current_status == "HOLD"


class TestVersionConflicts:
    @pytest.fixture
    def racing_store(self, store):
        """Store whose first update loses a race to another writer"""
        real_update = store.update
        state = {"calls": 0}

        def update(ticket_id, patch, expected_version):
            state["calls"] += 1
            if state["calls"] == 1:
                # Another display fires the ticket first
                real_update(
                    ticket_id,
                    {"status": KitchenTicketStatus.FIRED, "fired_at": patch["fired_at"]},
                    expected_version,
                )
                return None
            return real_update(ticket_id, patch, expected_version)

        store.update = update
        return store

    def test_concurrent_fire_resolves_to_noop(self, racing_store, notifier, clock, ticket_factory):
        ticket = ticket_factory()
        orchestrator = TicketOrchestrator(racing_store, notifier, OrchestratorConfig(), clock=clock)

        view = orchestrator.request_transition(ticket.id, "fire")

        assert view.ticket.status == KitchenTicketStatus.FIRED
        assert view.ticket.version == 2

    def test_gives_up_after_max_attempts(self, store, notifier, clock, ticket_factory):
        ticket = ticket_factory()
        store.update = Mock(return_value=None)
        orchestrator = TicketOrchestrator(
            store, notifier, OrchestratorConfig(transition_max_attempts=2), clock=clock
        )

        with pytest.raises(TransitionConflictError) as exc_info:
            orchestrator.request_transition(ticket.id, "fire")

        assert exc_info.value.attempts == 2
        assert store.update.call_count == 2


class TestPacingSweep:
    @pytest.mark.asyncio
    async def test_unchanged_tickets_publish_nothing(self, orchestrator, notifier, ticket_factory):
        for _ in range(100):
            ticket_factory()
        notifier.publish.reset_mock()

        result = await orchestrator.recompute_pacing_sweep("rest-1")

        assert result.evaluated == 100
        assert result.changed == 0
        assert result.failed == 0
        notifier.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_changed_pacing_published_once(self, orchestrator, notifier, clock, ticket_factory):
        ticket = ticket_factory()
        ticket_factory(start_at=SEATING_TIME + timedelta(hours=2))
        notifier.publish.reset_mock()

        # Past the first ticket's fire time
        clock.advance(minutes=35)
        first = await orchestrator.recompute_pacing_sweep("rest-1")
        second = await orchestrator.recompute_pacing_sweep("rest-1")

        assert first.changed == 1
        assert second.changed == 0
        notifier.publish.assert_called_once()
        event = notifier.publish.call_args.args[1]
        assert event["type"] == "ticket_updated"
        assert event["ticket"]["id"] == ticket.id
        assert event["ticket"]["pacing_status"] == "late"

    @pytest.mark.asyncio
    async def test_ticket_failure_isolated(self, orchestrator, store, notifier, clock, ticket_factory):
        bad = ticket_factory()
        good = ticket_factory()
        clock.advance(minutes=35)

        real_mark = store.mark_broadcast

        def mark_broadcast(ticket_id, pacing_status):
            if ticket_id == bad.id:
                raise StoreUnavailableError("mark_broadcast")
            return real_mark(ticket_id, pacing_status)

        store.mark_broadcast = mark_broadcast
        notifier.publish.reset_mock()

        result = await orchestrator.recompute_pacing_sweep("rest-1")

        assert result.evaluated == 2
        assert result.changed == 1
        assert result.failed == 1
        assert notifier.publish.call_args.args[1]["ticket"]["id"] == good.id

    @pytest.mark.asyncio
    async def test_store_calls_run_off_the_event_loop(self, orchestrator, store, clock, ticket_factory):
        ticket_factory()
        clock.advance(minutes=35)
        loop_thread = threading.get_ident()
        store_threads = []

        real_list, real_mark = store.list_active_by_restaurant, store.mark_broadcast

        def list_active(restaurant_id):
            store_threads.append(threading.get_ident())
            return real_list(restaurant_id)

        def mark_broadcast(ticket_id, pacing_status):
            store_threads.append(threading.get_ident())
            return real_mark(ticket_id, pacing_status)

        store.list_active_by_restaurant = list_active
        store.mark_broadcast = mark_broadcast

        with ThreadPoolExecutor(max_workers=1) as executor:
            result = await orchestrator.recompute_pacing_sweep("rest-1", executor=executor)

        assert result.changed == 1
        assert len(store_threads) == 2
        assert loop_thread not in store_threads

    @pytest.mark.asyncio
    async def test_load_retried_on_store_unavailable(self, store, notifier, clock, ticket_factory):
        ticket_factory()
        real_list = store.list_active_by_restaurant
        store.list_active_by_restaurant = Mock(
            side_effect=[StoreUnavailableError("list_active_by_restaurant"), real_list("rest-1")]
        )
        orchestrator = TicketOrchestrator(
            store, notifier,
            OrchestratorConfig(store_retry_initial_delay=0.001, store_retry_max_delay=0.001),
            clock=clock,
        )

        result = await orchestrator.recompute_pacing_sweep("rest-1")

        assert result.evaluated == 1
        assert store.list_active_by_restaurant.call_count == 2

    @pytest.mark.asyncio
    async def test_load_gives_up_after_retries(self, store, notifier, clock):
        store.list_active_by_restaurant = Mock(
            side_effect=StoreUnavailableError("list_active_by_restaurant")
        )
        orchestrator = TicketOrchestrator(
            store, notifier,
            OrchestratorConfig(
                store_retry_attempts=2,
                store_retry_initial_delay=0.001,
                store_retry_max_delay=0.001,
            ),
            clock=clock,
        )

        with pytest.raises(StoreUnavailableError):
            await orchestrator.recompute_pacing_sweep("rest-1")

        assert store.list_active_by_restaurant.call_count == 3


class TestQueries:
    def test_list_active_evaluates_fresh_pacing(self, orchestrator, clock, ticket_factory):
        ticket_factory()
        clock.advance(minutes=29)

        views = orchestrator.list_active("rest-1")

        assert len(views) == 1
        assert views[0].evaluation.pacing_status == PacingStatus.WARNING
        assert views[0].evaluation.minutes_until_fire == 1

    def test_get_ticket(self, orchestrator, ticket_factory):
        ticket = ticket_factory()
        assert orchestrator.get_ticket(ticket.id).ticket.id == ticket.id

    def test_get_unknown_ticket(self, orchestrator):
        with pytest.raises(TicketNotFoundError):
            orchestrator.get_ticket("missing")

    def test_dashboard_summary(self, orchestrator, clock, ticket_factory):
        served = ticket_factory()
        orchestrator.request_transition(served.id, "fire")
        clock.advance(minutes=12)
        orchestrator.request_transition(served.id, "ready")
        orchestrator.request_transition(served.id, "served")

        cooking = ticket_factory()
        orchestrator.request_transition(cooking.id, "fire")
        ticket_factory(start_at=SEATING_TIME + timedelta(hours=1))

        summary = orchestrator.get_dashboard_summary("rest-1")

        assert summary.ticket_counts == {
            "PENDING": 1, "HOLD": 0, "FIRED": 1, "READY": 0, "SERVED": 1,
        }
        assert summary.average_prep_minutes == 12.0
        assert summary.active_tickets == 1
        assert summary.pacing_counts["on_time"] == 2
        assert sum(summary.pacing_counts.values()) == 2
