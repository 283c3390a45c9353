"""API module."""

from .exec import router as exec_router
from .ping import router as ping_router

__all__ = ["exec_router", "ping_router"]
