import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock
from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine, get_db
from app.main import app
from modules.kitchen.routes.kitchen_routes import get_orchestrator
from modules.kitchen.services.kitchen_notifier import kitchen_notifier
from modules.kitchen.services.ticket_orchestrator import (
    OrchestratorConfig,
    TicketOrchestrator,
)
from modules.kitchen.services.ticket_store import TicketStore

# Reservation seating time used across tests
SEATING_TIME = datetime(2026, 10, 19, 19, 0, 0)


class FixedClock:
    """Manually advanced clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0):
        self.now += timedelta(minutes=minutes, seconds=seconds)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    # 40 minutes before seating, well ahead of any fire time
    return FixedClock(SEATING_TIME - timedelta(minutes=40))


@pytest.fixture
def notifier():
    """Mock notifier recording published events"""
    mock = Mock()
    mock.publish = Mock(return_value=1)
    return mock


@pytest.fixture
def store(db_session):
    return TicketStore(db_session)


@pytest.fixture
def orchestrator(store, notifier, clock):
    return TicketOrchestrator(store, notifier, OrchestratorConfig(), clock=clock)


@pytest.fixture
def reservation():
    return {
        "id": "res-100",
        "restaurant_id": "rest-1",
        "party_size": 4,
        "start_at": SEATING_TIME,
    }


@pytest.fixture
def items():
    return [
        {"name": "Salmon", "quantity": 2, "prep_time_minutes": 15},
        {"name": "Soup", "quantity": 1, "prep_time_minutes": 5, "notes": "No cream"},
    ]


@pytest.fixture
def ticket_factory(orchestrator, items):
    """Create tickets through the orchestrator"""
    counter = {"n": 0}

    def _create(restaurant_id="rest-1", start_at=SEATING_TIME, override=None, ticket_items=None):
        counter["n"] += 1
        reservation = {
            "id": f"res-{counter['n']}",
            "restaurant_id": restaurant_id,
            "party_size": 2,
            "start_at": start_at,
        }
        view = orchestrator.create_ticket_for_pre_order(
            reservation, ticket_items or items, prep_minutes_override=override
        )
        return view.ticket

    return _create


@pytest.fixture
def client(db_session, clock):
    """Test client with database and clock overrides"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_get_orchestrator():
        return TicketOrchestrator(
            TicketStore(db_session), kitchen_notifier, OrchestratorConfig(), clock=clock
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = override_get_orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
