from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.exceptions import register_exception_handlers
from app.startup import configure_logging, run_startup_checks

# ========== Kitchen Pacing ==========
from modules.kitchen.config import get_kitchen_config
from modules.kitchen.routes import register_kitchen_exception_handlers
from modules.kitchen.routes.kitchen_routes import router as kitchen_router
from modules.kitchen.services.kitchen_notifier import kitchen_notifier
from modules.kitchen.services.sweep_scheduler import KitchenSweepScheduler
from modules.kitchen.services.ticket_orchestrator import create_ticket_orchestrator

configure_logging()

app = FastAPI(
    title="Kitchen Pacing API",
    description="""
    Kitchen ticket pacing and firing for reservation pre-orders.

    ## Features

    * **Tickets** - One kitchen ticket per confirmed pre-order
    * **Pacing** - Target fire times derived from seating time and prep time
    * **Firing** - Hold, fire, ready and served transitions with idempotent fire
    * **Kitchen Displays** - Real-time WebSocket push per restaurant
    """,
    version="1.0.0",
    debug=settings.debug,
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)
register_kitchen_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Kitchen Pacing
app.include_router(kitchen_router)


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    run_startup_checks()

    kitchen_settings = get_kitchen_config()
    if kitchen_settings.SWEEP_ENABLED:
        scheduler = KitchenSweepScheduler(
            orchestrator_factory=create_ticket_orchestrator,
            notifier=kitchen_notifier,
            settings=kitchen_settings,
        )
        scheduler.start()
        app.state.kitchen_sweep_scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    scheduler = getattr(app.state, "kitchen_sweep_scheduler", None)
    if scheduler is not None:
        scheduler.shutdown()
    await kitchen_notifier.close_all()


@app.get("/")
def read_root():
    return {"message": "Kitchen pacing service is running"}
