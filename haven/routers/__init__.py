"""
Haven API Routers.

All routers are imported here for easy access.
"""

from haven.routers.checkin import router as checkin_router
from haven.routers.achievements import router as achievements_router
from haven.routers.notifications import router as notifications_router

__all__ = [
    "checkin_router",
    "achievements_router",
    "notifications_router",
]
