from .kitchen_config import KitchenConfig, get_kitchen_config

__all__ = ["KitchenConfig", "get_kitchen_config"]
