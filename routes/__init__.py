"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.planning import router as planning_router
from routes.outfeeds import router as outfeeds_router

__all__ = [
    "planning_router",
    "outfeeds_router",
]
