"""API routers package."""

from .devices import router as devices_router
from .plugins import router as plugins_router

__all__ = ["devices_router", "plugins_router"]
