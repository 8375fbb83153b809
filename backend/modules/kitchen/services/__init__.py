from .kitchen_notifier import KitchenDisplaySession, KitchenNotifier, kitchen_notifier
from .pacing_calculator import PacingEvaluation
from .ticket_orchestrator import (
    OrchestratorConfig,
    SweepResult,
    TicketOrchestrator,
    TicketView,
    create_ticket_orchestrator,
)
from .ticket_store import TicketStore

__all__ = [
    "KitchenDisplaySession",
    "KitchenNotifier",
    "kitchen_notifier",
    "PacingEvaluation",
    "OrchestratorConfig",
    "SweepResult",
    "TicketOrchestrator",
    "TicketView",
    "create_ticket_orchestrator",
    "TicketStore",
]
