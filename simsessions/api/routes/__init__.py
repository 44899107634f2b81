"""
API Routes Package
==================

REST API route definitions.
"""

from simsessions.api.routes.health import router as health_router
from simsessions.api.routes.media import router as media_router
from simsessions.api.routes.sessions import router as sessions_router
from simsessions.api.routes.sessions import simulator_router
from simsessions.api.routes.ui import router as ui_router

__all__ = [
    "health_router",
    "media_router",
    "sessions_router",
    "simulator_router",
    "ui_router",
]
