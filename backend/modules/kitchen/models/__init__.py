# backend/modules/kitchen/models/__init__.py

from .kitchen_models import KitchenTicket

__all__ = ["KitchenTicket"]
