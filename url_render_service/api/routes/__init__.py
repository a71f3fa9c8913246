"""
API Routes sub-package for the URL Render Service.

Re-exports the routers that `api/main.py` includes.
"""

from .ops_routes import router as ops_router
from .render_routes import router as render_router
from .socket_routes import router as socket_router

__all__ = [
    "ops_router",
    "render_router",
    "socket_router",
]
