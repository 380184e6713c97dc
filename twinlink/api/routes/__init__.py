"""
API Routes module - Endpoint definitions.

Each file in this module defines routes for a specific domain:
- health.py        : Health check endpoints
- conversations.py : Two-party messaging
- sessions.py      : Group sessions
- router.py        : Intent routing
"""
from twinlink.api.routes.conversations import router as conversations_router
from twinlink.api.routes.health import router as health_router
from twinlink.api.routes.router import router as routing_router
from twinlink.api.routes.sessions import router as sessions_router

__all__ = [
    "conversations_router",
    "health_router",
    "routing_router",
    "sessions_router",
]
