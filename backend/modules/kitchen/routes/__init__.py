from .error_handlers import register_kitchen_exception_handlers
from .kitchen_routes import router

__all__ = ["router", "register_kitchen_exception_handlers"]
