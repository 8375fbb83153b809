# backend/modules/kitchen/routes/error_handlers.py

from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from ..exceptions import KitchenError

logger = logging.getLogger(__name__)


async def handle_kitchen_error(request: Request, exc: KitchenError) -> JSONResponse:
    """Convert kitchen domain errors to API responses using their declared status"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} at {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.__class__.__name__} at {request.url.path}: {exc.message}")

    content = {
        "detail": exc.message,
        "error_code": exc.error_code,
        "path": str(request.url.path),
    }
    content.update(exc.details)
    return JSONResponse(status_code=exc.status_code, content=content)


def register_kitchen_exception_handlers(app):
    app.add_exception_handler(KitchenError, handle_kitchen_error)
