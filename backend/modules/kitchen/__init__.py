# backend/modules/kitchen/__init__.py

"""
Kitchen pacing module: tickets for reservation pre-orders, fire-time pacing
and real-time kitchen display updates.
"""

from .models import *
from .schemas import *
from .services import *

__all__ = [
    # Models
    "KitchenTicket",
    # Services
    "TicketOrchestrator",
    "TicketStore",
    "KitchenNotifier",
    "kitchen_notifier",
    "create_ticket_orchestrator",
    # Schemas
    "PreOrderTicketCreate",
    "KitchenTicketResponse",
    "KitchenEvent",
]
