# backend/modules/kitchen/routes/kitchen_routes.py

"""
API routes for kitchen ticket pacing and the kitchen display push channel.
"""

from fastapi import (
    APIRouter,
    Body,
    Depends,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from core.database import get_db
from ..enums.kitchen_enums import KitchenTicketStatus, TicketAction
from ..schemas.kitchen_schemas import (
    KitchenSummaryResponse,
    KitchenTicketResponse,
    PreOrderTicketCreate,
    SweepResultResponse,
    TicketStatusUpdate,
    TicketTransitionRequest,
)
from ..services.kitchen_notifier import kitchen_notifier
from ..services.ticket_orchestrator import TicketOrchestrator, create_ticket_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/kitchen", tags=["Kitchen Pacing"])


def get_orchestrator(db: Session = Depends(get_db)) -> TicketOrchestrator:
    return create_ticket_orchestrator(db)


# ========== Tickets ==========


@router.post(
    "/tickets",
    response_model=KitchenTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_ticket(
    payload: PreOrderTicketCreate,
    request: Request,
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    """Create a kitchen ticket from a confirmed pre-order"""
    view = orchestrator.create_ticket_for_pre_order(
        payload.reservation,
        payload.items,
        prep_minutes_override=payload.prep_minutes_override,
    )

    scheduler = getattr(request.app.state, "kitchen_sweep_scheduler", None)
    if scheduler is not None:
        scheduler.add_restaurant(view.ticket.restaurant_id)

    return view.to_response()


@router.get(
    "/restaurants/{restaurant_id}/tickets",
    response_model=List[KitchenTicketResponse],
)
async def list_active_tickets(
    restaurant_id: str,
    ticket_status: Optional[KitchenTicketStatus] = Query(None, alias="status"),
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    """Active tickets for a restaurant, soonest fire time first"""
    views = orchestrator.list_active(restaurant_id, ticket_status)
    return [view.to_response() for view in views]


@router.get("/tickets/{ticket_id}", response_model=KitchenTicketResponse)
async def get_ticket(
    ticket_id: str,
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_ticket(ticket_id).to_response()


@router.post("/tickets/{ticket_id}/{action}", response_model=KitchenTicketResponse)
async def transition_ticket(
    ticket_id: str,
    action: TicketAction,
    payload: Optional[TicketTransitionRequest] = Body(None),
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    """Fire, hold, mark ready or serve a ticket"""
    override = payload.estimated_prep_minutes if payload else None
    view = orchestrator.request_transition(ticket_id, action, prep_minutes_override=override)
    return view.to_response()


@router.patch("/tickets/{ticket_id}", response_model=KitchenTicketResponse)
async def update_ticket_status(
    ticket_id: str,
    payload: TicketStatusUpdate,
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    view = orchestrator.update_status(
        ticket_id,
        payload.status,
        prep_minutes_override=payload.estimated_prep_minutes,
    )
    return view.to_response()


# ========== Restaurant ==========


@router.get(
    "/restaurants/{restaurant_id}/summary",
    response_model=KitchenSummaryResponse,
)
async def get_kitchen_summary(
    restaurant_id: str,
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    """Kitchen dashboard summary for today"""
    return orchestrator.get_dashboard_summary(restaurant_id)


@router.post(
    "/restaurants/{restaurant_id}/sweep",
    response_model=SweepResultResponse,
)
async def run_pacing_sweep(
    restaurant_id: str,
    orchestrator: TicketOrchestrator = Depends(get_orchestrator),
):
    """Recompute pacing now instead of waiting for the next scheduled sweep"""
    return await orchestrator.recompute_pacing_sweep(restaurant_id)


# ========== WebSocket ==========


@router.get("/ws/health")
async def websocket_health():
    return kitchen_notifier.health_check()


@router.websocket("/ws/{restaurant_id}")
async def kitchen_display_endpoint(websocket: WebSocket, restaurant_id: str):
    """Push channel for a restaurant's kitchen displays"""
    session = await kitchen_notifier.connect(websocket, restaurant_id)

    try:
        while True:
            message = await websocket.receive_text()
            await kitchen_notifier.handle_client_message(session, message)
    except WebSocketDisconnect:
        logger.info(f"Kitchen display {session.id} closed the connection")
    except Exception as e:
        logger.error(f"Kitchen display {session.id} error: {str(e)}")
    finally:
        kitchen_notifier.disconnect(session.id)
